from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

from filament_installer.orchestrator import RunContext
from filament_installer.sandbox import CommandResult
from filament_installer.schemas import AdminCredentials, DatabaseConnection, ParameterSet


class FakeRunner:
    """Records commands instead of running them; fails any command containing a marker."""

    def __init__(
        self,
        fail_on: Optional[List[str]] = None,
        hooks: Optional[Dict[str, Callable[[Path], None]]] = None,
    ) -> None:
        self.fail_on = fail_on or []
        self.hooks = hooks or {}
        self.calls: List[tuple] = []

    def run(self, command: str, cwd: Path, env=None) -> CommandResult:
        self.calls.append((command, Path(cwd), dict(env or {})))
        for marker, hook in self.hooks.items():
            if marker in command:
                hook(Path(cwd))
        failed = any(marker in command for marker in self.fail_on)
        return CommandResult(
            command=command,
            cwd=Path(cwd),
            status="error" if failed else "success",
            return_code=1 if failed else 0,
            duration_ms=3,
            stdout="" if failed else f"ran {command}",
            stderr="boom" if failed else "",
            error=f"Command exited with code 1: {command}" if failed else None,
        )

    @property
    def commands(self) -> List[str]:
        return [call[0] for call in self.calls]


def make_params(base_dir: Path, database: str = "sqlite", starter_kit: str = "react") -> ParameterSet:
    connection = None
    if database in ("mysql", "postgresql"):
        connection = DatabaseConnection(
            host="127.0.0.1",
            port="3306" if database == "mysql" else "5432",
            name="laravel",
            user="root",
            password="secret",
        )
    return ParameterSet(
        project_name="demo",
        starter_kit=starter_kit,
        database=database,
        connection=connection,
        admin=AdminCredentials(name="Admin", email="admin@admin.com", password="password", defaults_used=True),
        base_dir=base_dir,
    )


@pytest.fixture()
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture()
def params(tmp_path: Path) -> ParameterSet:
    return make_params(tmp_path / "Herd")


@pytest.fixture()
def context(params: ParameterSet, fake_runner: FakeRunner) -> RunContext:
    return RunContext(
        params=params,
        runner=fake_runner,
        cwd=params.base_dir,
        tool_lookup=lambda _exe: True,
        port_probe=lambda _host, _port: True,
    )
