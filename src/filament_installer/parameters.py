"""Turn CLI flags into a validated `ParameterSet`."""
from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from .config import InstallerConfig
from .errors import ParameterValidationError
from .schemas import AdminCredentials, DatabaseChoice, DatabaseConnection, ParameterSet, StarterKit

CONNECTION_FLAGS = (
    ("db_host", "--db-host"),
    ("db_port", "--db-port"),
    ("db_name", "--db-name"),
    ("db_user", "--db-user"),
    ("db_password", "--db-password"),
)

ADMIN_FLAGS = (
    ("filament_name", "--filament-name"),
    ("filament_email", "--filament-email"),
    ("filament_password", "--filament-password"),
)


@dataclass(frozen=True)
class InstallOptions:
    """Raw values supplied on the command line."""

    project_name: Optional[str] = None
    starter_kit: Optional[str] = None
    db: Optional[str] = None
    db_host: Optional[str] = None
    db_port: Optional[str] = None
    db_name: Optional[str] = None
    db_user: Optional[str] = None
    db_password: Optional[str] = None
    herd_dir: Optional[Path] = None
    filament_name: Optional[str] = None
    filament_email: Optional[str] = None
    filament_password: Optional[str] = None
    json_output: bool = False
    non_interactive: bool = False
    yes: bool = False
    verbose: bool = False

    def flags(self) -> Dict[str, bool]:
        return {
            "json": self.json_output,
            "nonInteractive": self.non_interactive,
            "yes": self.yes,
            "verbose": self.verbose,
        }


def apply_silent_defaults(options: InstallOptions, config: InstallerConfig) -> InstallOptions:
    """
    Fill the defaults allowed without prompting.

    Starter kit and database always have defaults. Admin credentials are only
    defaulted when the user did not ask for strict ``--non-interactive`` mode,
    or explicitly accepted defaults with ``--yes``.
    """
    options = replace(
        options,
        starter_kit=options.starter_kit or StarterKit.REACT.value,
        db=options.db or DatabaseChoice.SQLITE.value,
    )
    if not options.non_interactive or options.yes:
        options = replace(
            options,
            filament_name=options.filament_name or config.admin.name,
            filament_email=options.filament_email or config.admin.email,
            filament_password=options.filament_password or config.admin.password,
        )
    return options


def missing_required_flags(options: InstallOptions) -> List[str]:
    """Return the flag names of every required value that is still unset."""
    missing: List[str] = []
    if not options.project_name:
        missing.append("--project-name")
    if not options.starter_kit:
        missing.append("--starter-kit")
    if not options.db:
        missing.append("--db")
    if options.db in (DatabaseChoice.MYSQL.value, DatabaseChoice.POSTGRESQL.value):
        missing.extend(flag for attr, flag in CONNECTION_FLAGS if not getattr(options, attr))
    missing.extend(flag for attr, flag in ADMIN_FLAGS if not getattr(options, attr))
    return missing


def resolve_parameters(options: InstallOptions, config: InstallerConfig) -> ParameterSet:
    """Build the parameters for a silent or structured run, or raise with every missing flag."""
    options = apply_silent_defaults(options, config)
    missing = missing_required_flags(options)
    if missing:
        raise ParameterValidationError.for_missing_flags(missing)

    try:
        database = DatabaseChoice(options.db)
    except ValueError as exc:
        raise ParameterValidationError(f"Invalid parameters: unknown database {options.db!r}") from exc

    connection = None
    if database.requires_connection:
        connection = {
            "host": options.db_host,
            "port": options.db_port,
            "name": options.db_name,
            "user": options.db_user,
            "password": options.db_password,
        }
    return build_parameter_set(
        project_name=options.project_name,
        starter_kit=options.starter_kit,
        database=database,
        connection=connection,
        admin={
            "name": options.filament_name,
            "email": options.filament_email,
            "password": options.filament_password,
        },
        base_dir=options.herd_dir or config.paths.base_dir,
        config=config,
    )


def build_parameter_set(
    *,
    project_name: Any,
    starter_kit: Any,
    database: Any,
    connection: Optional[Dict[str, Any]],
    admin: Dict[str, Any],
    base_dir: Path,
    config: InstallerConfig,
) -> ParameterSet:
    defaults = config.admin
    defaults_used = (admin.get("name"), admin.get("email"), admin.get("password")) == (
        defaults.name,
        defaults.email,
        defaults.password,
    )
    try:
        return ParameterSet(
            project_name=project_name,
            starter_kit=starter_kit,
            database=database,
            connection=DatabaseConnection(**connection) if connection is not None else None,
            admin=AdminCredentials(**admin, defaults_used=defaults_used),
            base_dir=Path(base_dir).expanduser(),
        )
    except ValidationError as exc:
        raise ParameterValidationError(f"Invalid parameters: {_describe(exc)}") from exc


def _describe(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(parts)
