"""Interactive collection of install parameters."""
from __future__ import annotations

from typing import Callable, Dict, Optional, Union

import click
from rich.console import Console
from rich.panel import Panel

from .config import InstallerConfig
from .errors import InstallCancelled
from .parameters import InstallOptions, build_parameter_set
from .probe import DEFAULT_HOST, is_port_open
from .schemas import DatabaseChoice, ParameterSet, StarterKit

PortProbe = Callable[[Optional[str], Union[int, str, None]], bool]


def _not_blank(value: str) -> str:
    if not value.strip():
        raise click.BadParameter("This value cannot be empty.")
    return value.strip()


def _email(value: str) -> str:
    if "@" not in value:
        raise click.BadParameter("Invalid email address.")
    return value


def _password(value: str) -> str:
    if len(value) < 8:
        raise click.BadParameter("Use at least 8 characters.")
    return value


def gather_interactive(
    options: InstallOptions,
    config: InstallerConfig,
    console: Console,
    port_probe: PortProbe = is_port_open,
) -> ParameterSet:
    """Prompt for every parameter not already given as a flag and confirm the summary."""
    console.rule("[bold]Laravel + Filament project installer")

    project_name = options.project_name or click.prompt("Laravel project name", value_proc=_not_blank)
    starter_kit = options.starter_kit or click.prompt(
        "Starter kit",
        type=click.Choice([kit.value for kit in StarterKit]),
        default=StarterKit.REACT.value,
    )
    db = options.db or click.prompt(
        "Database",
        type=click.Choice([choice.value for choice in DatabaseChoice]),
        default=DatabaseChoice.SQLITE.value,
    )
    database = DatabaseChoice(db)

    connection: Optional[Dict[str, str]] = None
    if database.requires_connection:
        connection = _prompt_connection(options, database, console, port_probe)

    admin = _prompt_admin(options, config)
    base_dir = options.herd_dir or config.paths.base_dir

    console.print(
        Panel(
            f"Project: {project_name}\n"
            f"Starter kit: {starter_kit}\n"
            f"Database: {database.label}\n"
            f"Base directory: {base_dir}\n"
            f"Filament: {admin['name']} <{admin['email']}>",
            title="Summary",
        )
    )
    if not click.confirm("Continue with these parameters?", default=True):
        raise InstallCancelled("Cancelled by the user")

    return build_parameter_set(
        project_name=project_name,
        starter_kit=starter_kit,
        database=database,
        connection=connection,
        admin=admin,
        base_dir=base_dir,
        config=config,
    )


def _prompt_connection(
    options: InstallOptions,
    database: DatabaseChoice,
    console: Console,
    port_probe: PortProbe,
) -> Dict[str, str]:
    label = database.label
    if not port_probe(DEFAULT_HOST, database.default_port):
        console.print(
            Panel(
                f"No {label} service is listening on {DEFAULT_HOST}:{database.default_port}.\n"
                "If your server runs on another host or port, enter it below.\n"
                "Make sure the database is running before continuing or migrations will fail.",
                title="Important",
                border_style="yellow",
            )
        )

    connection = {
        "host": options.db_host or click.prompt(f"{label} host", default=DEFAULT_HOST),
        "port": options.db_port or click.prompt(f"{label} port", default=database.default_port),
        "name": options.db_name or click.prompt(f"{label} database", default="laravel"),
        "user": options.db_user or click.prompt(f"{label} username", default=database.default_user),
        "password": (
            options.db_password
            if options.db_password is not None
            else click.prompt(f"{label} password", hide_input=True, default="", show_default=False)
        ),
    }

    if not port_probe(connection["host"], connection["port"]):
        console.print(
            Panel(
                f"No {label} service detected on {connection['host']}:{connection['port']}.\n"
                "Start it before continuing or migrations may fail.",
                title="Note",
                border_style="red",
            )
        )
    return connection


def _prompt_admin(options: InstallOptions, config: InstallerConfig) -> Dict[str, str]:
    given = (options.filament_name, options.filament_email, options.filament_password)
    if all(given):
        return {"name": given[0], "email": given[1], "password": given[2]}

    defaults = config.admin
    use_defaults = options.yes or click.confirm(
        f"Use the default Filament credentials? ({defaults.name} / {defaults.email} / {defaults.password})",
        default=True,
    )
    if use_defaults:
        return {"name": defaults.name, "email": defaults.email, "password": defaults.password}

    return {
        "name": options.filament_name or click.prompt("Filament user name", value_proc=_not_blank),
        "email": options.filament_email or click.prompt("Filament email", value_proc=_email),
        "password": options.filament_password
        or click.prompt("Filament password", hide_input=True, value_proc=_password),
    }
