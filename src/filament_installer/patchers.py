"""Idempotent text patches applied to the generated Laravel project."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Mapping, Optional, Sequence

LOGGER = logging.getLogger("filament_installer.patchers")

PATCHED = "patched"
ALREADY_PRESENT = "already_present"
FILE_NOT_FOUND = "file_not_found"
ARRAY_NOT_FOUND = "array_not_found"
ARRAY_END_NOT_FOUND = "array_end_not_found"
REPLACE_NOOP = "replace_noop"

PHPUNIT_CANDIDATES = ("phpunit.xml", "phpunit.xml.dist")
TWO_FACTOR_COLUMNS = ("two_factor_secret", "two_factor_recovery_codes", "two_factor_confirmed_at")

PHPSTAN_CONFIG = """includes:
    - vendor/larastan/larastan/extension.neon
parameters:
    paths:
        - app/
    level: 5"""

PINT_CONFIG = """{
  "preset": "laravel"
}"""

RECTOR_CONFIG = """<?php

declare(strict_types=1);

use Rector\\Config\\RectorConfig;
use Rector\\Php83\\Rector\\ClassMethod\\AddOverrideAttributeToOverriddenMethodsRector;

return RectorConfig::configure()
    ->withPhpSets()
    ->withSkip([
        AddOverrideAttributeToOverriddenMethodsRector::class,
    ])
    ->withPaths([
        __DIR__.'/app',
    ])
    ->withPreparedSets(
        deadCode: true,
        codeQuality: true,
    );"""


@dataclass
class PatchOutcome:
    """Result of a patch; `reason` names the no-op condition when nothing changed."""

    patched: bool
    reason: Optional[str] = None
    path: Optional[Path] = None

    @property
    def label(self) -> str:
        return PATCHED if self.patched else (self.reason or REPLACE_NOOP)


def merge_env_file(project_path: Path, updates: Mapping[str, str]) -> PatchOutcome:
    """
    Merge *updates* into ``<project_path>/.env``.

    Matching keys are rewritten in place, comment and malformed lines pass
    through untouched, and keys that were not found are appended in the order
    given. A missing file is treated as empty. Only ``\\n`` separates lines, so
    other control characters inside values and CRLF endings survive as-is.
    """
    env_path = Path(project_path) / ".env"
    try:
        with env_path.open("r", encoding="utf-8", newline="") as handle:
            content = handle.read()
    except FileNotFoundError:
        LOGGER.debug(".env not found at %s; creating it", env_path)
        content = ""

    raw_lines = content.split("\n") if content else []
    if raw_lines and raw_lines[-1] == "":
        raw_lines.pop()
    eol = "\r" if "\r\n" in content else ""

    found = set()
    lines = []
    for line in raw_lines:
        stripped = line.strip()
        if stripped.startswith("#") or "=" not in stripped:
            lines.append(line)
            continue
        key = stripped.split("=", 1)[0]
        if key in updates:
            found.add(key)
            ending = "\r" if line.endswith("\r") else ""
            lines.append(f"{key}={updates[key]}{ending}")
        else:
            lines.append(line)

    for key, value in updates.items():
        if key not in found:
            lines.append(f"{key}={value}{eol}")
    if eol and lines and lines[-1].endswith("\r"):
        lines[-1] = lines[-1][:-1]

    with env_path.open("w", encoding="utf-8", newline="") as handle:
        handle.write("\n".join(lines))
    return PatchOutcome(patched=True, path=env_path)


def patch_phpunit_xml(project_path: Path, locale: str = "en") -> PatchOutcome:
    """Force ``colors="true"`` and an ``APP_LOCALE`` env entry in the phpunit config."""
    phpunit_path = _first_existing(Path(project_path) / name for name in PHPUNIT_CANDIDATES)
    if phpunit_path is None:
        return PatchOutcome(patched=False, reason=FILE_NOT_FOUND)

    original = phpunit_path.read_text(encoding="utf-8")

    def _colors(match: "re.Match[str]") -> str:
        attrs = match.group(1)
        if "colors=" not in attrs:
            return f'<phpunit{attrs} colors="true">'
        return re.sub(r"colors\s*=\s*[\"']?[^\"']*[\"']?", 'colors="true"', match.group(0), count=1, flags=re.I)

    xml = re.sub(r"<phpunit([^>]*)>", _colors, original, count=1, flags=re.I)
    if 'name="APP_LOCALE"' in xml:
        xml = re.sub(
            r'<env\s+name="APP_LOCALE"\s+value="[^"]*"',
            f'<env name="APP_LOCALE" value="{locale}"',
            xml,
            count=1,
            flags=re.I,
        )
    else:
        xml = re.sub(r"<php>", f'<php><env name="APP_LOCALE" value="{locale}"/>', xml, count=1, flags=re.I)

    if xml == original:
        return PatchOutcome(patched=False, reason=REPLACE_NOOP, path=phpunit_path)
    phpunit_path.write_text(xml, encoding="utf-8")
    return PatchOutcome(patched=True, path=phpunit_path)


def inject_array_entries(
    path: Path,
    entries: Mapping[str, str],
    guard_markers: Sequence[str],
) -> PatchOutcome:
    """
    Add ``'key' => value,`` lines to the first ``return [...]`` block of *path*.

    Nothing is written when any of *guard_markers* already appears in the file.
    """
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return PatchOutcome(patched=False, reason=FILE_NOT_FOUND, path=path)

    if any(marker in content for marker in guard_markers):
        return PatchOutcome(patched=False, reason=ALREADY_PRESENT, path=path)

    start = re.search(r"^[ \t]*return\s*\[", content, flags=re.M)
    if start is None:
        return PatchOutcome(patched=False, reason=ARRAY_NOT_FOUND, path=path)
    end = re.search(r"^[ \t]*\];", content[start.start():], flags=re.M)
    if end is None:
        return PatchOutcome(patched=False, reason=ARRAY_END_NOT_FOUND, path=path)

    indent = re.match(r"[ \t]*", start.group(0)).group(0)
    body_start = start.end()
    body_end = start.start() + end.start()
    body = content[body_start:body_end]
    if not body.rstrip().endswith(","):
        body = body.rstrip() + ",\n"

    injection = "".join(f"{indent}    '{key}' => {value},\n" for key, value in entries.items())
    updated = content[:body_start] + body + injection + content[body_end:]
    if updated == content:
        return PatchOutcome(patched=False, reason=REPLACE_NOOP, path=path)

    path.write_text(updated, encoding="utf-8")
    return PatchOutcome(patched=True, path=path)


def detect_two_factor_columns(project_path: Path) -> bool:
    """Return True when any migration mentions ``two_factor_`` columns."""
    migrations_dir = Path(project_path) / "database" / "migrations"
    if not migrations_dir.is_dir():
        return False
    for entry in sorted(migrations_dir.glob("*.php")):
        if entry.is_file() and "two_factor_" in entry.read_text(encoding="utf-8", errors="replace"):
            return True
    return False


def patch_user_factory_two_factor(project_path: Path) -> PatchOutcome:
    """Default the two-factor columns to null in ``UserFactory::definition``."""
    factory = Path(project_path) / "database" / "factories" / "UserFactory.php"
    return inject_array_entries(
        factory,
        {column: "null" for column in TWO_FACTOR_COLUMNS},
        guard_markers=TWO_FACTOR_COLUMNS,
    )


def create_sqlite_database(project_path: Path) -> Path:
    db_file = Path(project_path) / "database" / "database.sqlite"
    db_file.parent.mkdir(parents=True, exist_ok=True)
    db_file.write_text("", encoding="utf-8")
    return db_file


def write_phpstan_config(project_path: Path) -> Path:
    return _write(Path(project_path) / "phpstan.neon", PHPSTAN_CONFIG)


def write_pint_config(project_path: Path) -> Path:
    return _write(Path(project_path) / "pint.json", PINT_CONFIG)


def write_rector_config(project_path: Path) -> Path:
    return _write(Path(project_path) / "rector.php", RECTOR_CONFIG)


def _write(path: Path, content: str) -> Path:
    path.write_text(content, encoding="utf-8")
    return path


def _first_existing(paths: Iterable[Path]) -> Optional[Path]:
    for candidate in paths:
        if candidate.is_file():
            return candidate
    return None
