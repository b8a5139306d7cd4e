from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import click
from rich.console import Console

from .config import InstallerConfig
from .errors import ParameterValidationError
from .modes import ModeDescriptor
from .orchestrator import Pipeline, PipelineRun, RunContext, RunState, Step
from .parameters import InstallOptions, resolve_parameters
from .presenters import ConsolePresenter, JsonPresenter
from .probe import command_exists, is_port_open
from .prompts import gather_interactive
from .sandbox import CommandRunner
from .schemas import ParameterSet
from .steps import build_install_steps, fetch_supabase_status


LOGGER = logging.getLogger("filament_installer.installer")

Presenter = Union[ConsolePresenter, JsonPresenter]


@dataclass
class InstallResult:
    """Outcome of a full installer invocation."""

    params: ParameterSet
    run: PipelineRun
    supabase: Optional[Dict[str, Any]] = None

    @property
    def succeeded(self) -> bool:
        return self.run.state is RunState.COMPLETED


def build_presenter(
    options: InstallOptions,
    mode: ModeDescriptor,
    console: Optional[Console] = None,
    error_console: Optional[Console] = None,
) -> Presenter:
    """Pick the presenter matching the resolved mode."""
    if mode.structured:
        return JsonPresenter(options, mode)
    console = console or Console(no_color=not mode.color, force_terminal=True if mode.color else None, highlight=False)
    error_console = error_console or Console(
        stderr=True, no_color=not mode.color, force_terminal=True if mode.color else None, highlight=False
    )
    return ConsolePresenter(console, error_console, live=mode.interactive)


class Installer:
    """Resolve parameters, run the install pipeline and render the outcome."""

    def __init__(
        self,
        config: InstallerConfig,
        options: InstallOptions,
        mode: ModeDescriptor,
        presenter: Presenter,
        console: Optional[Console] = None,
        runner: Optional[CommandRunner] = None,
        steps: Optional[Sequence[Step]] = None,
        tool_lookup: Callable[[str], bool] = command_exists,
        port_probe: Callable[..., bool] = is_port_open,
    ) -> None:
        self._config = config
        self._options = options
        self._mode = mode
        self._presenter = presenter
        self._console = console or Console(stderr=True)
        self._runner = runner or CommandRunner(
            log_dir=config.paths.log_dir,
            timeout=config.tooling.command_timeout,
            output_limit=config.tooling.output_limit,
        )
        self._steps: List[Step] = list(steps) if steps is not None else build_install_steps()
        self._tool_lookup = tool_lookup
        self._port_probe = port_probe
        self._logger = LOGGER

    def gather_parameters(self) -> ParameterSet:
        if self._mode.interactive:
            return gather_interactive(self._options, self._config, self._console, port_probe=self._port_probe)
        return resolve_parameters(self._options, self._config)

    def execute(self, params: ParameterSet) -> InstallResult:
        context = RunContext(
            params=params,
            runner=self._runner,
            cwd=params.base_dir,
            env=self._mode.command_env(),
            app_locale=self._config.tooling.app_locale,
            test_locale=self._config.tooling.test_locale,
            required_tools=list(self._config.tooling.required_tools),
            tool_lookup=self._tool_lookup,
            port_probe=self._port_probe,
        )
        self._logger.info("Installing %s into %s", params.project_name, params.base_dir)
        run = Pipeline(self._steps, listener=self._presenter).run(context)

        supabase = fetch_supabase_status(context) if run.state is RunState.COMPLETED else None
        self._presenter.render_run(params, run, supabase)
        return InstallResult(params=params, run=run, supabase=supabase)

    def run(self) -> int:
        """Run end to end and return the process exit code."""
        try:
            params = self.gather_parameters()
        except ParameterValidationError as exc:
            self._logger.info("Parameter validation failed: %s", exc.message)
            self._presenter.render_validation_error(exc)
            return 1

        result = self.execute(params)
        if not result.succeeded:
            return 1
        if self._mode.interactive:
            self._offer_editor(params)
        return 0

    def _offer_editor(self, params: ParameterSet) -> None:
        if not click.confirm("Open the project in VS Code?", default=False):
            return
        path = params.project_path
        result = self._runner.run(f"code {shlex.quote(str(path))}", cwd=path)
        if not result.ok:
            self._presenter.note(f"\nCould not open VS Code: {result.stderr}", style="bold red")
