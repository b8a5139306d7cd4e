from __future__ import annotations

from typing import List

import pytest

from filament_installer.errors import AdvisoryCondition, PreconditionError, StepExecutionError
from filament_installer.orchestrator import Pipeline, RunState, Step
from filament_installer.schemas import EventStatus


class RecordingListener:
    def __init__(self) -> None:
        self.calls: List[tuple] = []

    def step_started(self, step, index, total):
        self.calls.append(("start", step.name, index, total))

    def step_finished(self, step, index, total, run):
        self.calls.append(("finish", step.name, index, run.state))


def _ok(name: str):
    def action(context):
        context.run_command(name, f"echo {name}", failure=f"{name} failed")

    return action


def test_pipeline_runs_steps_in_declared_order(context, fake_runner):
    steps = [Step(f"step{i}", f"Step {i}", _ok(f"step{i}")) for i in range(1, 4)]
    listener = RecordingListener()

    run = Pipeline(steps, listener=listener).run(context)

    assert run.state is RunState.COMPLETED
    assert run.status == "success"
    assert [event.name for event in run.events] == ["step1", "step2", "step3"]
    assert fake_runner.commands == ["echo step1", "echo step2", "echo step3"]
    assert [call[0:2] for call in listener.calls] == [
        ("start", "step1"),
        ("finish", "step1"),
        ("start", "step2"),
        ("finish", "step2"),
        ("start", "step3"),
        ("finish", "step3"),
    ]


def test_pipeline_aborts_on_first_fatal_step(context):
    invoked = []

    def first(ctx):
        invoked.append("first")
        ctx.run_command("first_cmd", "echo one", failure="first failed")

    def second(ctx):
        invoked.append("second")
        ctx.run_command("second_partial", "echo partial", failure="partial failed")
        ctx.runner.fail_on.append("explode")
        ctx.run_command("second_explode", "explode now", failure="Second step exploded")

    def third(ctx):
        invoked.append("third")
        ctx.run_command("third_cmd", "echo three")

    run = Pipeline(
        [Step("first", "First", first), Step("second", "Second", second), Step("third", "Third", third)]
    ).run(context)

    assert invoked == ["first", "second"]
    assert run.state is RunState.FAILED
    assert run.status == "error"
    assert run.failed_step == "second"
    assert run.failed_event == "second_explode"
    assert run.error_message == "Second step exploded"
    assert [event.name for event in run.events] == ["first_cmd", "second_partial", "second_explode"]
    assert run.events[-1].status is EventStatus.ERROR
    assert run.events[-1].stderr == "boom"


def test_precondition_error_names_the_step(context):
    def needs_tool(ctx):
        raise PreconditionError("herd is missing")

    run = Pipeline([Step("prechecks", "Prechecks", needs_tool)]).run(context)

    assert run.state is RunState.FAILED
    assert run.failed_step == "prechecks"
    assert run.failed_event == "prechecks"
    assert run.error.kind.value == "precondition"


def test_require_tool_raises_precondition(context):
    context.tool_lookup = lambda exe: exe != "herd"
    with pytest.raises(PreconditionError) as excinfo:
        context.require_tool("herd", "Herd is not installed")
    assert excinfo.value.step == "require_herd"


def test_advisory_condition_is_recorded_and_run_continues(context):
    def advisory(ctx):
        raise AdvisoryCondition("service not detected", step="mysql_service_check")

    run = Pipeline(
        [Step("advisory", "Advisory", advisory), Step("after", "After", _ok("after"))]
    ).run(context)

    assert run.state is RunState.COMPLETED
    assert [(event.name, event.status) for event in run.events] == [
        ("mysql_service_check", EventStatus.WARNING),
        ("after", EventStatus.SUCCESS),
    ]


def test_warning_and_skipped_events_do_not_stop_the_pipeline(context):
    def soft(ctx):
        ctx.warn("service_check", "not listening")
        ctx.skip("patch", "already patched")

    run = Pipeline([Step("soft", "Soft", soft), Step("after", "After", _ok("after"))]).run(context)

    assert run.state is RunState.COMPLETED
    assert [event.status for event in run.events] == [EventStatus.WARNING, EventStatus.SKIPPED, EventStatus.SUCCESS]


def test_unexpected_exception_fails_the_run(context):
    def broken(ctx):
        raise OSError("disk full")

    run = Pipeline([Step("broken", "Broken", broken), Step("after", "After", _ok("after"))]).run(context)

    assert run.state is RunState.FAILED
    assert isinstance(run.error, StepExecutionError)
    assert run.error_message == "disk full"
    assert run.events == []


def test_non_fatal_command_error_is_recorded_without_abort(context, fake_runner):
    fake_runner.fail_on.append("optional")

    def lenient(ctx):
        result = ctx.run_command("optional_cmd", "optional thing")
        assert result.ok is False

    run = Pipeline([Step("lenient", "Lenient", lenient)]).run(context)

    assert run.state is RunState.COMPLETED
    assert run.events[0].status is EventStatus.ERROR


def test_enter_project_moves_cwd_once(context, tmp_path):
    project = tmp_path / "Herd" / "demo"
    context.enter_project(project)
    assert context.cwd == project
    assert context.project_path == project
    with pytest.raises(RuntimeError):
        context.enter_project(tmp_path / "elsewhere")


def test_commands_run_in_context_directory(context, fake_runner, tmp_path):
    project = tmp_path / "Herd" / "demo"

    def scaffold(ctx):
        ctx.run_command("before", "echo before")
        ctx.enter_project(project)

    Pipeline([Step("scaffold", "Scaffold", scaffold), Step("after", "After", _ok("after"))]).run(context)

    assert [call[1] for call in fake_runner.calls] == [tmp_path / "Herd", project]
