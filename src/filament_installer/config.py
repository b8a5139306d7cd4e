from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import ParameterValidationError


DEFAULT_OUTPUT_LIMIT = 8192


@dataclass
class AdminDefaults:
    """Credentials used for the Filament admin user when none are supplied."""

    name: str = "Admin"
    email: str = "admin@admin.com"
    password: str = "password"


@dataclass
class ToolingConfig:
    """Knobs for the external commands run by the pipeline."""

    command_timeout: Optional[float] = None
    output_limit: int = DEFAULT_OUTPUT_LIMIT
    required_tools: List[str] = field(default_factory=lambda: ["herd"])
    app_locale: str = "es"
    test_locale: str = "en"


@dataclass
class PathsConfig:
    """Filesystem layout for an installer run."""

    base_dir: Path
    log_dir: Optional[Path] = None


@dataclass
class InstallerConfig:
    """Top level configuration consumed throughout the installer."""

    paths: PathsConfig = field(default_factory=lambda: build_paths(Path.home() / "Herd"))
    tooling: ToolingConfig = field(default_factory=ToolingConfig)
    admin: AdminDefaults = field(default_factory=AdminDefaults)

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON serialisable copy of the config."""
        payload = asdict(self)
        payload["paths"] = {
            "base_dir": str(self.paths.base_dir),
            "log_dir": str(self.paths.log_dir) if self.paths.log_dir else None,
        }
        payload["admin"] = {"name": self.admin.name, "email": self.admin.email}
        return payload


def build_paths(base_dir: Path, log_dir: Optional[Path] = None) -> PathsConfig:
    """Construct the default filesystem layout rooted at *base_dir*."""
    return PathsConfig(base_dir=Path(base_dir).expanduser(), log_dir=Path(log_dir).expanduser() if log_dir else None)


def load_config(path: Optional[Path] = None) -> InstallerConfig:
    """
    Load configuration from *path* if provided, otherwise use the built-in defaults.

    The configuration file is expected to be JSON. Unspecified fields fall back
    to the defaults baked into the dataclasses above.
    An unreadable or malformed file raises `ParameterValidationError`.
    """
    config = InstallerConfig()
    if path is None:
        return config

    path = Path(path).expanduser()
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
        if not isinstance(data, dict):
            raise TypeError("top level must be a JSON object")
        _apply_config_updates(config, data)
    except (OSError, ValueError, TypeError, AttributeError) as exc:
        raise ParameterValidationError(f"Invalid config file {path}: {exc}") from exc
    return config


def _apply_config_updates(config: InstallerConfig, payload: Dict[str, Any]) -> None:
    """Update *config* in-place using keys from the *payload* dict."""
    if "paths" in payload:
        override = payload["paths"]
        config.paths = build_paths(
            Path(override.get("base_dir", config.paths.base_dir)),
            override.get("log_dir", config.paths.log_dir),
        )

    if "tooling" in payload:
        for key, value in payload["tooling"].items():
            if hasattr(config.tooling, key):
                setattr(config.tooling, key, value)

    if "admin" in payload:
        for key, value in payload["admin"].items():
            if hasattr(config.admin, key):
                setattr(config.admin, key, value)
