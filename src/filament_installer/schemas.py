"""Shared data models for the Laravel + Filament installer."""
from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class StarterKit(str, Enum):
    """Laravel starter kits accepted by `laravel new`."""

    REACT = "react"
    VUE = "vue"
    LIVEWIRE = "livewire"

    @property
    def flag(self) -> str:
        return f"--{self.value}"


class DatabaseChoice(str, Enum):
    """Database backends the installer knows how to wire up."""

    SQLITE = "sqlite"
    SUPABASE = "supabase"
    MYSQL = "mysql"
    POSTGRESQL = "postgresql"

    @property
    def requires_connection(self) -> bool:
        return self in (DatabaseChoice.MYSQL, DatabaseChoice.POSTGRESQL)

    @property
    def label(self) -> str:
        return _DB_LABELS[self]

    @property
    def default_port(self) -> Optional[str]:
        return {DatabaseChoice.MYSQL: "3306", DatabaseChoice.POSTGRESQL: "5432"}.get(self)

    @property
    def default_user(self) -> Optional[str]:
        return {DatabaseChoice.MYSQL: "root", DatabaseChoice.POSTGRESQL: "postgres"}.get(self)


_DB_LABELS = {
    DatabaseChoice.SQLITE: "SQLite",
    DatabaseChoice.SUPABASE: "Supabase (PostgreSQL)",
    DatabaseChoice.MYSQL: "MySQL",
    DatabaseChoice.POSTGRESQL: "PostgreSQL",
}


class DatabaseConnection(BaseModel):
    """Connection settings for a MySQL or PostgreSQL server."""

    model_config = ConfigDict(frozen=True)

    host: str = Field(..., min_length=1)
    port: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    user: str = Field(..., min_length=1)
    password: str = Field(...)

    @property
    def port_number(self) -> Optional[int]:
        try:
            return int(self.port)
        except ValueError:
            return None


class AdminCredentials(BaseModel):
    """Filament admin user created at the end of the install."""

    model_config = ConfigDict(frozen=True)

    name: str
    email: str
    password: str
    defaults_used: bool = False

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("name cannot be empty")
        return value

    @field_validator("email")
    @classmethod
    def _email_has_at(cls, value: str) -> str:
        if "@" not in value:
            raise ValueError("invalid email address")
        return value

    @field_validator("password")
    @classmethod
    def _password_length(cls, value: str) -> str:
        if len(value) < 8:
            raise ValueError("password must be at least 8 characters")
        return value


class ParameterSet(BaseModel):
    """Resolved, validated inputs driving one installer run."""

    model_config = ConfigDict(frozen=True)

    project_name: str = Field(..., min_length=1)
    starter_kit: StarterKit
    database: DatabaseChoice
    connection: Optional[DatabaseConnection] = None
    admin: AdminCredentials
    base_dir: Path

    @field_validator("project_name")
    @classmethod
    def _strip_project_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("project name cannot be empty")
        return value

    @model_validator(mode="after")
    def _connection_matches_database(self) -> "ParameterSet":
        if self.database.requires_connection and self.connection is None:
            raise ValueError(f"{self.database.value} requires connection settings")
        if not self.database.requires_connection and self.connection is not None:
            raise ValueError(f"{self.database.value} does not take connection settings")
        return self

    @property
    def project_path(self) -> Path:
        return self.base_dir / self.project_name

    @property
    def db_label(self) -> str:
        return self.database.label

    def echo(self) -> Dict[str, Any]:
        """Return the parameters as echoed in the structured document (no secrets)."""
        return {
            "projectName": self.project_name,
            "starterKit": self.starter_kit.value,
            "db": self.database.value,
            "dbConn": (
                {
                    "host": self.connection.host,
                    "port": self.connection.port,
                    "name": self.connection.name,
                    "user": self.connection.user,
                }
                if self.connection
                else None
            ),
            "herdDir": str(self.base_dir),
            "filament": {"name": self.admin.name, "email": self.admin.email},
        }


class EventStatus(str, Enum):
    """Outcome of one recorded sub-operation."""

    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"
    SKIPPED = "skipped"


class Event(BaseModel):
    """Envelope appended once per executed command or patch."""

    model_config = ConfigDict(frozen=True)

    name: str
    status: EventStatus
    duration_ms: Optional[int] = None
    stdout: Optional[str] = None
    stderr: Optional[str] = None
    error: Optional[str] = None

    def as_task(self, index: int) -> Dict[str, Any]:
        return {
            "index": index,
            "name": self.name,
            "status": self.status.value,
            "durationMs": self.duration_ms,
            "stdout": self.stdout,
            "stderr": self.stderr,
        }
