"""Render a pipeline run for people (rich console) or machines (one JSON document)."""
from __future__ import annotations

import json
import platform
import sys
import time
from typing import Any, Dict, Optional, TextIO

from rich.console import Console
from rich.status import Status
from rich.table import Table
from rich.text import Text

from .errors import InstallerError, ParameterValidationError
from .modes import ModeDescriptor
from .orchestrator import PipelineRun, RunState, Step
from .parameters import InstallOptions
from .schemas import EventStatus, ParameterSet

DOCUMENT_VERSION = "1.0.0"
COMMAND_NAME = "create"

_STATUS_STYLES = {
    EventStatus.SUCCESS: "green",
    EventStatus.ERROR: "red",
    EventStatus.WARNING: "yellow",
    EventStatus.SKIPPED: "dim",
}


def environment_info(mode: ModeDescriptor) -> Dict[str, Any]:
    return {
        "tty": mode.tty,
        "runtimeVersion": platform.python_version(),
        "platform": sys.platform,
    }


def build_report(
    options: InstallOptions,
    mode: ModeDescriptor,
    params: ParameterSet,
    run: PipelineRun,
    supabase: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Assemble the structured document for a finished run, successful or not."""
    document: Dict[str, Any] = {
        "version": DOCUMENT_VERSION,
        "command": COMMAND_NAME,
        "status": run.status,
        "flags": options.flags(),
        "environment": environment_info(mode),
        "input": params.echo(),
        "tasks": [event.as_task(index) for index, event in enumerate(run.events)],
    }
    if run.state is RunState.COMPLETED:
        document["result"] = {
            "status": "success",
            "projectPath": str(params.project_path),
            "dbLabel": params.db_label,
            "supabase": supabase,
        }
    else:
        error = run.error
        document["error"] = {
            "message": error.message if error else "Pipeline did not complete",
            "step": run.failed_event,
            "stage": run.failed_step,
            "kind": error.kind.value if error else None,
        }
    document["metrics"] = {"totalDurationMs": run.duration_ms}
    return document


def build_validation_report(
    options: InstallOptions,
    mode: ModeDescriptor,
    error: InstallerError,
) -> Dict[str, Any]:
    """Document emitted when parameters are rejected before any step runs."""
    payload: Dict[str, Any] = {"message": error.message, "code": "EINVAL"}
    if isinstance(error, ParameterValidationError):
        payload["missing"] = list(error.missing)
    return {
        "version": DOCUMENT_VERSION,
        "command": COMMAND_NAME,
        "status": "error",
        "flags": options.flags(),
        "environment": environment_info(mode),
        "error": payload,
    }


class JsonPresenter:
    """Writes exactly one JSON document to *stream* and nothing else."""

    def __init__(self, options: InstallOptions, mode: ModeDescriptor, stream: Optional[TextIO] = None) -> None:
        self._options = options
        self._mode = mode
        self._stream = stream

    def step_started(self, step: Step, index: int, total: int) -> None:
        pass

    def step_finished(self, step: Step, index: int, total: int, run: PipelineRun) -> None:
        pass

    def note(self, message: str, style: str = "") -> None:
        pass

    def close(self) -> None:
        pass

    def render_run(
        self,
        params: ParameterSet,
        run: PipelineRun,
        supabase: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._emit(build_report(self._options, self._mode, params, run, supabase))

    def render_validation_error(self, error: InstallerError) -> None:
        self._emit(build_validation_report(self._options, self._mode, error))

    def _emit(self, document: Dict[str, Any]) -> None:
        stream = self._stream or sys.stdout
        stream.write(json.dumps(document) + "\n")
        stream.flush()


class ConsolePresenter:
    """
    Human-facing output.

    With ``live=True`` (interactive mode) each step shows a spinner and a
    tick or cross when it ends; the silent variant only prints the outcome.
    """

    def __init__(self, console: Console, error_console: Console, live: bool = True) -> None:
        self._console = console
        self._error_console = error_console
        self._live = live
        self._status: Optional[Status] = None
        self._step_started_at = 0.0

    def step_started(self, step: Step, index: int, total: int) -> None:
        if not self._live:
            return
        self._step_started_at = time.monotonic()
        self._status = self._console.status(f"[bold green][{index + 1}/{total}] {step.title}...")
        self._status.start()

    def step_finished(self, step: Step, index: int, total: int, run: PipelineRun) -> None:
        self.close()
        if not self._live:
            return
        elapsed = time.monotonic() - self._step_started_at
        if run.failed_step == step.name:
            self._console.print(Text(f"✖ {step.title}", style="bold red"))
        else:
            self._console.print(Text.assemble(("✔ ", "green"), (step.title, "bold"), (f" ({elapsed:.1f}s)", "dim")))

    def close(self) -> None:
        """Stop the live step spinner, if one is running."""
        if self._status is not None:
            self._status.stop()
            self._status = None

    def note(self, message: str, style: str = "") -> None:
        self._console.print(Text(message, style=style))

    def render_run(
        self,
        params: ParameterSet,
        run: PipelineRun,
        supabase: Optional[Dict[str, Any]] = None,
    ) -> None:
        if run.state is not RunState.COMPLETED:
            message = run.error_message or "Pipeline did not complete"
            self._error_console.print(Text(f"\nAn error occurred: {message}", style="bold red"))
            failed = next((event for event in reversed(run.events) if event.status is EventStatus.ERROR), None)
            if failed is not None and failed.stderr:
                self._error_console.print(Text(failed.stderr, style="red"))
            return

        if self._live:
            self._console.print(_summary_table(run))
        self._console.print(Text(f"Project ready at {params.project_path}", style="bold"))

        if supabase is not None:
            if supabase.get("status") == "success":
                self._console.print(Text("\nSupabase containers are running.", style="bold green"))
                self._console.print(Text(supabase.get("stdout") or "", style="cyan"))
            else:
                self._console.print(Text("Could not read the Supabase container status.", style="red"))

        self._console.print(Text("\nEnjoy your new project! 🚀", style="bold"))

    def render_validation_error(self, error: InstallerError) -> None:
        self._error_console.print(Text(error.message, style="red"))


def _summary_table(run: PipelineRun) -> Table:
    table = Table(title="Install Summary", show_lines=False)
    table.add_column("#", justify="right")
    table.add_column("Task")
    table.add_column("Status")
    table.add_column("Duration", justify="right")
    for index, event in enumerate(run.events):
        duration = f"{event.duration_ms / 1000:.1f}s" if event.duration_ms is not None else ""
        table.add_row(
            str(index),
            event.name,
            Text(event.status.value, style=_STATUS_STYLES[event.status]),
            duration,
        )
    return table
