"""Error taxonomy shared by the pipeline engine and the CLI."""

from __future__ import annotations

from enum import Enum
from typing import List, Optional, Sequence


class ErrorKind(str, Enum):
    """Categories the engine uses to decide between abort and continue."""

    VALIDATION = "validation"
    PRECONDITION = "precondition"
    STEP_EXECUTION = "step_execution"
    ADVISORY = "advisory"


class InstallerError(Exception):
    """Base error carrying the name of the step or event that raised it."""

    kind: ErrorKind = ErrorKind.STEP_EXECUTION
    fatal: bool = True

    def __init__(self, message: str, step: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.step = step


class ParameterValidationError(InstallerError):
    """Required parameters are missing or invalid; raised before any step runs."""

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, missing: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.missing: List[str] = list(missing)

    @classmethod
    def for_missing_flags(cls, missing: Sequence[str]) -> "ParameterValidationError":
        message = f"Missing required flags in non-interactive mode: {', '.join(missing)}"
        return cls(message, missing=missing)


class PreconditionError(InstallerError):
    """A required external tool is not available."""

    kind = ErrorKind.PRECONDITION


class StepExecutionError(InstallerError):
    """A command or patch failed and the step escalated it."""

    kind = ErrorKind.STEP_EXECUTION


class AdvisoryCondition(InstallerError):
    """Non-fatal anomaly; the engine records a warning and moves on."""

    kind = ErrorKind.ADVISORY
    fatal = False


class InstallCancelled(Exception):
    """The user declined to continue from an interactive prompt."""
