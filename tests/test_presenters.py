from __future__ import annotations

import io
import json

import pytest
from rich.console import Console

from conftest import FakeRunner, make_params

from filament_installer.errors import ParameterValidationError, StepExecutionError
from filament_installer.modes import resolve_mode
from filament_installer.orchestrator import Pipeline, RunContext, Step
from filament_installer.parameters import InstallOptions
from filament_installer.presenters import ConsolePresenter, JsonPresenter, build_report

OPTIONS = InstallOptions(project_name="demo", json_output=True, non_interactive=True, yes=True)
MODE = resolve_mode(json_output=True, non_interactive=True, stdin_tty=False, stdout_tty=False)


def _run(params, steps):
    context = RunContext(
        params=params,
        runner=FakeRunner(),
        cwd=params.base_dir,
        tool_lookup=lambda _exe: True,
        port_probe=lambda _host, _port: True,
    )
    return Pipeline(steps).run(context)


def _ok(context):
    context.run_command("first_command", "echo one")
    context.run_command("second_command", "echo two")


def _broken(context):
    raise StepExecutionError("Failed to install Filament", step="composer_filament")


def test_success_document(tmp_path):
    params = make_params(tmp_path / "Herd")
    run = _run(params, [Step("one", "One", _ok)])
    stream = io.StringIO()

    JsonPresenter(OPTIONS, MODE, stream=stream).render_run(params, run)

    lines = stream.getvalue().splitlines()
    assert len(lines) == 1
    document = json.loads(lines[0])
    assert document["version"] == "1.0.0"
    assert document["command"] == "create"
    assert document["status"] == "success"
    assert document["flags"] == {"json": True, "nonInteractive": True, "yes": True, "verbose": False}
    assert set(document["environment"]) == {"tty", "runtimeVersion", "platform"}
    assert [task["name"] for task in document["tasks"]] == ["first_command", "second_command"]
    assert [task["index"] for task in document["tasks"]] == [0, 1]
    assert document["result"] == {
        "status": "success",
        "projectPath": str(params.project_path),
        "dbLabel": "SQLite",
        "supabase": None,
    }
    assert "error" not in document
    assert isinstance(document["metrics"]["totalDurationMs"], int)


def test_failure_document_names_the_failed_step(tmp_path):
    params = make_params(tmp_path / "Herd")
    run = _run(params, [Step("one", "One", _ok), Step("filament", "Filament", _broken)])

    document = build_report(OPTIONS, MODE, params, run)

    assert document["status"] == "error"
    assert "result" not in document
    assert document["error"] == {
        "message": "Failed to install Filament",
        "step": "composer_filament",
        "stage": "filament",
        "kind": "step_execution",
    }
    assert len(document["tasks"]) == 2


def test_document_never_contains_passwords(tmp_path):
    params = make_params(tmp_path / "Herd", database="mysql")
    run = _run(params, [Step("one", "One", _ok)])

    text = json.dumps(build_report(OPTIONS, MODE, params, run))

    assert "secret" not in text
    assert '"password"' not in text


def test_validation_document():
    stream = io.StringIO()
    error = ParameterValidationError.for_missing_flags(["--project-name"])

    JsonPresenter(OPTIONS, MODE, stream=stream).render_validation_error(error)

    document = json.loads(stream.getvalue())
    assert document["status"] == "error"
    assert document["error"] == {
        "message": "Missing required flags in non-interactive mode: --project-name",
        "code": "EINVAL",
        "missing": ["--project-name"],
    }
    assert "tasks" not in document


def _consoles():
    out, err = io.StringIO(), io.StringIO()
    return (
        Console(file=out, no_color=True, width=120),
        Console(file=err, no_color=True, width=120),
        out,
        err,
    )


def test_console_presenter_success(tmp_path):
    console, error_console, out, err = _consoles()
    presenter = ConsolePresenter(console, error_console, live=True)
    params = make_params(tmp_path / "Herd")
    run = _run(params, [Step("one", "One", _ok)])

    presenter.render_run(params, run, {"status": "success", "stdout": "API URL: http://127.0.0.1", "stderr": ""})

    text = out.getvalue()
    assert "Install Summary" in text
    assert "first_command" in text
    assert f"Project ready at {params.project_path}" in text
    assert "API URL: http://127.0.0.1" in text
    assert "Enjoy your new project!" in text
    assert err.getvalue() == ""


def test_silent_console_presenter_prints_only_the_outcome(tmp_path):
    console, error_console, out, _ = _consoles()
    presenter = ConsolePresenter(console, error_console, live=False)
    params = make_params(tmp_path / "Herd")
    steps = [Step("one", "One", _ok)]
    context = RunContext(params=params, runner=FakeRunner(), cwd=params.base_dir, tool_lookup=lambda _exe: True)

    run = Pipeline(steps, listener=presenter).run(context)
    presenter.render_run(params, run)

    text = out.getvalue()
    assert "Install Summary" not in text
    assert "✔" not in text
    assert "Project ready at" in text


def test_console_presenter_failure_goes_to_stderr(tmp_path):
    console, error_console, out, err = _consoles()
    presenter = ConsolePresenter(console, error_console, live=False)
    params = make_params(tmp_path / "Herd")
    context = RunContext(
        params=params,
        runner=FakeRunner(fail_on=["composer"]),
        cwd=params.base_dir,
        tool_lookup=lambda _exe: True,
    )

    def install(ctx):
        ctx.run_command("composer_filament", "composer require filament/filament", failure="Failed to install Filament")

    run = Pipeline([Step("filament", "Filament", install)]).run(context)
    presenter.render_run(params, run)

    assert "An error occurred: Failed to install Filament" in err.getvalue()
    assert "boom" in err.getvalue()
    assert "Project ready" not in out.getvalue()


class RecordingStatus:
    def __init__(self) -> None:
        self.started = False
        self.stopped = False

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.stopped = True


def test_close_stops_the_spinner_after_an_interrupt(tmp_path):
    console, error_console, _, _ = _consoles()
    status = RecordingStatus()
    console.status = lambda *args, **kwargs: status
    presenter = ConsolePresenter(console, error_console, live=True)
    params = make_params(tmp_path / "Herd")

    def interrupted(ctx):
        raise KeyboardInterrupt

    with pytest.raises(KeyboardInterrupt):
        _run_with_listener(params, [Step("scaffold", "Scaffold", interrupted)], presenter)

    assert status.started and not status.stopped
    presenter.close()
    assert status.stopped
    presenter.close()


def _run_with_listener(params, steps, listener):
    context = RunContext(params=params, runner=FakeRunner(), cwd=params.base_dir, tool_lookup=lambda _exe: True)
    return Pipeline(steps, listener=listener).run(context)
