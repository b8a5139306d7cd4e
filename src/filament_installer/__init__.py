"""
create-laravel-filament - scaffold a Laravel + Filament project in one run.

The package exposes the CLI entrypoint, the sequential install pipeline and
its interactive, silent and JSON presenters.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("create-laravel-filament")
except PackageNotFoundError:  # pragma: no cover - fallback for editable installs
    __version__ = "0.0.0"

__all__ = ["__version__"]
