from __future__ import annotations

import logging
import os
import re
import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from .config import DEFAULT_OUTPUT_LIMIT


LOGGER = logging.getLogger("filament_installer.sandbox")

SUCCESS = "success"
ERROR = "error"


def truncate_output(text: Optional[str], limit: int = DEFAULT_OUTPUT_LIMIT) -> str:
    """Cap *text* at *limit* characters, noting how many were dropped."""
    if not text:
        return ""
    if len(text) <= limit:
        return text
    return f"{text[:limit]}\n... [truncated {len(text) - limit} chars]"


@dataclass
class CommandResult:
    command: str
    cwd: Path
    status: str
    return_code: int
    duration_ms: int
    stdout: str
    stderr: str
    error: Optional[str] = None
    exception: Optional[BaseException] = field(default=None, repr=False, compare=False)
    log_path: Optional[Path] = None

    @property
    def ok(self) -> bool:
        return self.status == SUCCESS


class CommandRunner:
    """
    Shell command runner used by every pipeline step.

    Failures never raise: a non-zero exit, a spawn error or a timeout all come
    back as a `CommandResult` with status ``error`` so the calling step decides
    whether the pipeline should stop. When `log_dir` is set each command also
    leaves a numbered log file behind.
    """

    def __init__(
        self,
        log_dir: Optional[Path] = None,
        timeout: Optional[float] = None,
        output_limit: int = DEFAULT_OUTPUT_LIMIT,
    ) -> None:
        self._log_dir = Path(log_dir) if log_dir else None
        self._timeout = timeout
        self._output_limit = output_limit
        if self._log_dir:
            self._log_dir.mkdir(parents=True, exist_ok=True)

    @property
    def log_dir(self) -> Optional[Path]:
        return self._log_dir

    def run(self, command: str, cwd: Path, env: Optional[Mapping[str, str]] = None) -> CommandResult:
        cwd = Path(cwd)
        merged_env = {**os.environ, **(env or {})}
        LOGGER.debug("$ %s (cwd=%s)", command, cwd)

        started = time.monotonic()
        try:
            completed = subprocess.run(
                command,
                shell=True,
                cwd=cwd,
                env=merged_env,
                capture_output=True,
                text=True,
                check=False,
                timeout=self._timeout,
            )
        except subprocess.TimeoutExpired as exc:
            message = f"Command timed out after {self._timeout}s: {command}"
            return self._finish(
                command,
                cwd,
                started,
                return_code=124,
                stdout=_as_text(exc.stdout),
                stderr=_as_text(exc.stderr) or message,
                error=message,
                exception=exc,
            )
        except FileNotFoundError as exc:
            return self._finish(
                command, cwd, started, return_code=127, stdout="", stderr=str(exc), error=str(exc), exception=exc
            )
        except OSError as exc:
            return self._finish(
                command,
                cwd,
                started,
                return_code=getattr(exc, "errno", 1) or 1,
                stdout="",
                stderr=str(exc),
                error=str(exc),
                exception=exc,
            )

        error: Optional[str] = None
        stderr = completed.stderr or ""
        if completed.returncode != 0:
            error = f"Command exited with code {completed.returncode}: {command}"
            stderr = stderr or error
        return self._finish(
            command,
            cwd,
            started,
            return_code=completed.returncode,
            stdout=completed.stdout or "",
            stderr=stderr,
            error=error,
        )

    def _finish(
        self,
        command: str,
        cwd: Path,
        started: float,
        *,
        return_code: int,
        stdout: str,
        stderr: str,
        error: Optional[str],
        exception: Optional[BaseException] = None,
    ) -> CommandResult:
        duration_ms = int((time.monotonic() - started) * 1000)
        status = ERROR if error else SUCCESS
        if error:
            LOGGER.debug("command failed (%s): %s", return_code, command)
        log_path = self._write_log(command, stdout, stderr, status)
        return CommandResult(
            command=command,
            cwd=cwd,
            status=status,
            return_code=return_code,
            duration_ms=duration_ms,
            stdout=truncate_output(stdout, self._output_limit),
            stderr=truncate_output(stderr, self._output_limit),
            error=error,
            exception=exception,
            log_path=log_path,
        )

    def _write_log(self, command: str, stdout: str, stderr: str, status: str) -> Optional[Path]:
        if self._log_dir is None:
            return None
        log_path = _create_log_path(self._log_dir, command)
        log_path.write_text(
            f"$ {command}\n[{status}]\n\nSTDOUT:\n{stdout}\n\nSTDERR:\n{stderr}",
            encoding="utf-8",
        )
        return log_path


def _as_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _create_log_path(log_dir: Path, command: str) -> Path:
    safe = re.sub(r"[^A-Za-z0-9._-]+", "_", command).strip("_")
    if len(safe) > 60:
        safe = safe[:57] + "..."
    index = len(list(log_dir.glob("*.log"))) + 1
    return log_dir / f"{index:02d}-{safe}.log"
