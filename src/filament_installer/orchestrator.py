from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Union

from .errors import InstallerError, PreconditionError, StepExecutionError
from .probe import command_exists, is_port_open
from .sandbox import CommandResult, CommandRunner
from .schemas import Event, EventStatus, ParameterSet


LOGGER = logging.getLogger("filament_installer.orchestrator")


class RunState(str, Enum):
    """Lifecycle of a pipeline run."""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class RunContext:
    """Mutable state shared across step executions."""

    params: ParameterSet
    runner: CommandRunner
    cwd: Path
    env: Dict[str, str] = field(default_factory=dict)
    events: List[Event] = field(default_factory=list)
    project_path: Optional[Path] = None
    app_locale: str = "es"
    test_locale: str = "en"
    required_tools: List[str] = field(default_factory=lambda: ["herd"])
    tool_lookup: Callable[[str], bool] = command_exists
    port_probe: Callable[[Optional[str], Union[int, str, None]], bool] = is_port_open

    def record(
        self,
        name: str,
        status: EventStatus,
        *,
        stdout: Optional[str] = None,
        stderr: Optional[str] = None,
        duration_ms: Optional[int] = None,
        error: Optional[str] = None,
    ) -> Event:
        event = Event(
            name=name,
            status=status,
            duration_ms=duration_ms,
            stdout=stdout,
            stderr=stderr,
            error=error,
        )
        self.events.append(event)
        return event

    def warn(self, name: str, message: str) -> Event:
        LOGGER.warning(message)
        return self.record(name, EventStatus.WARNING, stdout=message)

    def skip(self, name: str, message: str) -> Event:
        return self.record(name, EventStatus.SKIPPED, stdout=message)

    def run_command(self, name: str, command: str, failure: Optional[str] = None) -> CommandResult:
        """
        Run *command* in the current directory and record it as event *name*.

        When *failure* is given an error result is escalated to a
        `StepExecutionError` carrying that message.
        """
        result = self.runner.run(command, cwd=self.cwd, env=self.env)
        self.record(
            name,
            EventStatus.SUCCESS if result.ok else EventStatus.ERROR,
            stdout=result.stdout,
            stderr=result.stderr,
            duration_ms=result.duration_ms,
            error=result.error,
        )
        if not result.ok and failure is not None:
            raise StepExecutionError(failure, step=name)
        return result

    def require_tool(self, executable: str, message: str) -> None:
        if not self.tool_lookup(executable):
            raise PreconditionError(message, step=f"require_{executable}")

    def enter_project(self, path: Path) -> None:
        """Point every later command at the generated project; allowed once per run."""
        if self.project_path is not None:
            raise RuntimeError(f"working directory already moved to {self.project_path}")
        self.project_path = Path(path)
        self.cwd = self.project_path


@dataclass(frozen=True)
class Step:
    """One named unit of pipeline work."""

    name: str
    title: str
    action: Callable[[RunContext], None]


@dataclass
class PipelineRun:
    """Outcome of one pass over the pipeline."""

    started_at: datetime
    events: List[Event]
    state: RunState = RunState.NOT_STARTED
    current_step: Optional[int] = None
    failed_step: Optional[str] = None
    failed_event: Optional[str] = None
    error: Optional[InstallerError] = None
    completed_at: Optional[datetime] = None

    @property
    def status(self) -> str:
        return "success" if self.state is RunState.COMPLETED else "error"

    @property
    def duration_ms(self) -> int:
        end = self.completed_at or datetime.now(timezone.utc)
        return int((end - self.started_at).total_seconds() * 1000)

    @property
    def error_message(self) -> Optional[str]:
        return self.error.message if self.error else None


class PipelineListener(Protocol):
    def step_started(self, step: Step, index: int, total: int) -> None:
        ...

    def step_finished(self, step: Step, index: int, total: int, run: PipelineRun) -> None:
        ...


class Pipeline:
    """Run steps strictly in order, stopping at the first fatal error."""

    def __init__(self, steps: Iterable[Step], listener: Optional[PipelineListener] = None) -> None:
        self._steps = list(steps)
        self._listener = listener
        self._logger = LOGGER

    @property
    def steps(self) -> List[Step]:
        return list(self._steps)

    def run(self, context: RunContext) -> PipelineRun:
        run = PipelineRun(started_at=datetime.now(timezone.utc), events=context.events)
        run.state = RunState.RUNNING
        total = len(self._steps)

        for index, step in enumerate(self._steps):
            run.current_step = index
            self._logger.info("-> %s", step.title)
            if self._listener:
                self._listener.step_started(step, index, total)

            try:
                step.action(context)
            except InstallerError as exc:
                if not exc.fatal:
                    context.warn(exc.step or step.name, exc.message)
                else:
                    self._fail(run, step, exc)
            except Exception as exc:  # noqa: BLE001
                self._logger.exception("%s step failed: %s", step.name, exc)
                self._fail(run, step, StepExecutionError(str(exc) or type(exc).__name__, step=step.name))

            if self._listener:
                self._listener.step_finished(step, index, total, run)
            if run.state is RunState.FAILED:
                break
        else:
            run.state = RunState.COMPLETED

        run.completed_at = datetime.now(timezone.utc)
        self._logger.info("Pipeline finished with state %s", run.state.value)
        return run

    def _fail(self, run: PipelineRun, step: Step, exc: InstallerError) -> None:
        if exc.step is None:
            exc.step = step.name
        run.state = RunState.FAILED
        run.failed_step = step.name
        run.failed_event = exc.step
        run.error = exc
        self._logger.info("%s step failed at %s: %s", step.name, exc.step, exc.message)
