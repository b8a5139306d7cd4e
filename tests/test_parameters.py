from __future__ import annotations

from pathlib import Path

import pytest

from filament_installer.config import InstallerConfig, build_paths, load_config
from filament_installer.errors import ParameterValidationError
from filament_installer.parameters import InstallOptions, missing_required_flags, resolve_parameters
from filament_installer.schemas import DatabaseChoice, StarterKit

CONNECTION = {
    "db_host": "127.0.0.1",
    "db_port": "3306",
    "db_name": "laravel",
    "db_user": "root",
    "db_password": "secret",
}


@pytest.fixture()
def config(tmp_path: Path) -> InstallerConfig:
    return InstallerConfig(paths=build_paths(tmp_path / "Herd"))


def test_mysql_without_connection_flags_lists_them_in_order(config):
    options = InstallOptions(project_name="app", db="mysql", non_interactive=True, yes=True)

    with pytest.raises(ParameterValidationError) as excinfo:
        resolve_parameters(options, config)

    assert excinfo.value.missing == ["--db-host", "--db-port", "--db-name", "--db-user", "--db-password"]
    assert excinfo.value.message.startswith("Missing required flags in non-interactive mode: --db-host")


def test_strict_non_interactive_requires_admin_flags(config):
    options = InstallOptions(non_interactive=True)

    with pytest.raises(ParameterValidationError) as excinfo:
        resolve_parameters(options, config)

    assert excinfo.value.missing == [
        "--project-name",
        "--filament-name",
        "--filament-email",
        "--filament-password",
    ]


def test_missing_flags_follow_a_fixed_order():
    options = InstallOptions(db="postgresql")

    assert missing_required_flags(options) == [
        "--project-name",
        "--starter-kit",
        "--db-host",
        "--db-port",
        "--db-name",
        "--db-user",
        "--db-password",
        "--filament-name",
        "--filament-email",
        "--filament-password",
    ]


def test_silent_run_uses_defaults(config):
    params = resolve_parameters(InstallOptions(project_name="app"), config)

    assert params.starter_kit is StarterKit.REACT
    assert params.database is DatabaseChoice.SQLITE
    assert params.connection is None
    assert params.admin.email == "admin@admin.com"
    assert params.admin.defaults_used is True
    assert params.project_path == config.paths.base_dir / "app"


def test_explicit_mysql_parameters(config, tmp_path):
    options = InstallOptions(
        project_name="  shop  ",
        starter_kit="vue",
        db="mysql",
        herd_dir=tmp_path / "sites",
        filament_name="Jane",
        filament_email="jane@example.com",
        filament_password="longenough",
        non_interactive=True,
        **CONNECTION,
    )

    params = resolve_parameters(options, config)

    assert params.project_name == "shop"
    assert params.connection.port_number == 3306
    assert params.db_label == "MySQL"
    assert params.base_dir == tmp_path / "sites"
    assert params.admin.defaults_used is False


@pytest.mark.parametrize(
    ("field", "value"),
    [
        ("filament_email", "not-an-email"),
        ("filament_password", "short"),
        ("filament_name", "   "),
    ],
)
def test_invalid_admin_values_are_rejected(config, field, value):
    options = InstallOptions(project_name="app", **{field: value})

    with pytest.raises(ParameterValidationError) as excinfo:
        resolve_parameters(options, config)

    assert excinfo.value.message.startswith("Invalid parameters:")
    assert excinfo.value.missing == []


def test_echo_hides_passwords(config):
    options = InstallOptions(project_name="app", db="mysql", **CONNECTION)

    echoed = resolve_parameters(options, config).echo()

    assert echoed["dbConn"] == {"host": "127.0.0.1", "port": "3306", "name": "laravel", "user": "root"}
    assert "password" not in echoed["filament"]
    assert "secret" not in str(echoed)


def test_load_config_overrides(tmp_path):
    path = tmp_path / "installer.json"
    path.write_text(
        '{"paths": {"base_dir": "%s"}, "tooling": {"command_timeout": 600, "app_locale": "fr"},'
        ' "admin": {"name": "Root"}}' % (tmp_path / "projects"),
        encoding="utf-8",
    )

    config = load_config(path)

    assert config.paths.base_dir == tmp_path / "projects"
    assert config.tooling.command_timeout == 600
    assert config.tooling.app_locale == "fr"
    assert config.admin.name == "Root"
    assert config.admin.email == "admin@admin.com"
    assert "password" not in config.to_dict()["admin"]


def test_load_config_rejects_malformed_files(tmp_path):
    path = tmp_path / "installer.json"
    path.write_text('{"tooling": ["not", "a", "mapping"]}', encoding="utf-8")

    with pytest.raises(ParameterValidationError) as excinfo:
        load_config(path)

    assert excinfo.value.message.startswith(f"Invalid config file {path}")
