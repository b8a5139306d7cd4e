from __future__ import annotations

import sys
from pathlib import Path
from typing import List, Optional

import click
from rich.console import Console

from .config import load_config
from .errors import InstallCancelled, ParameterValidationError
from .installer import Installer, build_presenter
from .logging_config import configure_logging
from .modes import resolve_mode
from .parameters import InstallOptions
from .schemas import DatabaseChoice, StarterKit


EXAMPLES = """
\b
Examples:
  # Interactive
  $ create-laravel-filament

\b
  # Non-interactive with every flag
  $ create-laravel-filament create --non-interactive \\
      --project-name app --starter-kit react --db sqlite -y

\b
  # Non-interactive for MySQL
  $ create-laravel-filament create --non-interactive --db mysql \\
      --project-name app --starter-kit vue \\
      --db-host 127.0.0.1 --db-port 3306 --db-name laravel --db-user root --db-password secret \\
      --filament-name Admin --filament-email admin@admin.com --filament-password password

\b
  # JSON output for CI, no colour and no prompts
  $ create-laravel-filament create --json --non-interactive \\
      --project-name app --starter-kit livewire --db sqlite -y
"""


class DefaultCommandGroup(click.Group):
    """Group that falls back to `create` when no sub-command is named."""

    default_command = "create"

    def parse_args(self, ctx: click.Context, args: List[str]) -> List[str]:
        if not args or (args[0] not in self.commands and args[0] not in ctx.help_option_names + ["--version"]):
            args = [self.default_command, *args]
        return super().parse_args(ctx, args)


@click.group(cls=DefaultCommandGroup, context_settings={"help_option_names": ["-h", "--help"]}, epilog=EXAMPLES)
@click.version_option(package_name="create-laravel-filament", message="create-laravel-filament %(version)s")
def main() -> None:
    """Create and configure a Laravel + Filament project from prompts or flags."""


@main.command()
@click.option("--json", "json_output", is_flag=True, default=False, help="Emit one structured JSON document.")
@click.option("--color/--no-color", "color", default=None, help="Force or disable coloured output.")
@click.option("-y", "--yes", is_flag=True, default=False, help="Assume defaults where a prompt would ask.")
@click.option("--non-interactive", is_flag=True, default=False, help="Never prompt; every required flag must be given.")
@click.option("--verbose", is_flag=True, default=False, help="Increase logging verbosity.")
@click.option("--config", "config_path", type=click.Path(exists=True, path_type=Path), default=None)
@click.option("--project-name", type=str, default=None, help="Project name.")
@click.option("--starter-kit", type=click.Choice([kit.value for kit in StarterKit]), default=None)
@click.option("--db", type=click.Choice([choice.value for choice in DatabaseChoice]), default=None)
@click.option("--db-host", type=str, default=None, help="Database host.")
@click.option("--db-port", type=str, default=None, help="Database port.")
@click.option("--db-name", type=str, default=None, help="Database name.")
@click.option("--db-user", type=str, default=None, help="Database user.")
@click.option("--db-password", type=str, default=None, help="Database password.")
@click.option("--herd-dir", type=click.Path(file_okay=False, path_type=Path), default=None, help="Base directory.")
@click.option("--filament-name", type=str, default=None, help="Filament admin name.")
@click.option("--filament-email", type=str, default=None, help="Filament admin email.")
@click.option("--filament-password", type=str, default=None, help="Filament admin password.")
def create(
    json_output: bool,
    color: Optional[bool],
    yes: bool,
    non_interactive: bool,
    verbose: bool,
    config_path: Optional[Path],
    project_name: Optional[str],
    starter_kit: Optional[str],
    db: Optional[str],
    db_host: Optional[str],
    db_port: Optional[str],
    db_name: Optional[str],
    db_user: Optional[str],
    db_password: Optional[str],
    herd_dir: Optional[Path],
    filament_name: Optional[str],
    filament_email: Optional[str],
    filament_password: Optional[str],
) -> None:
    """Create a new Laravel + Filament project."""

    mode = resolve_mode(
        json_output=json_output,
        non_interactive=non_interactive,
        no_color=color is False,
        force_color=color is True,
    )
    logger = configure_logging(verbose=verbose, rich_output=not mode.structured, logger_name="filament_installer.cli")
    logger.debug("Resolved mode %s (color=%s, tty=%s)", mode.mode.value, mode.color, mode.tty)

    options = InstallOptions(
        project_name=project_name,
        starter_kit=starter_kit,
        db=db,
        db_host=db_host,
        db_port=db_port,
        db_name=db_name,
        db_user=db_user,
        db_password=db_password,
        herd_dir=herd_dir,
        filament_name=filament_name,
        filament_email=filament_email,
        filament_password=filament_password,
        json_output=json_output,
        non_interactive=non_interactive,
        yes=yes,
        verbose=verbose,
    )
    console = Console(no_color=not mode.color, force_terminal=True if mode.color else None, highlight=False)
    presenter = build_presenter(options, mode, console=console)
    try:
        config = load_config(config_path)
    except ParameterValidationError as exc:
        logger.debug("Rejected config file: %s", exc.message)
        presenter.render_validation_error(exc)
        sys.exit(1)
    installer = Installer(config, options, mode, presenter, console=console)

    try:
        exit_code = installer.run()
    except InstallCancelled as exc:
        click.echo(str(exc), err=True)
        sys.exit(0)
    except (KeyboardInterrupt, click.Abort):
        presenter.close()
        click.echo("\nOperation cancelled by the user.", err=True)
        sys.exit(130)
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
