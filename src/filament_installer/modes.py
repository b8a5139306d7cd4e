"""Operating-mode resolution, computed once per invocation."""
from __future__ import annotations

import sys
from dataclasses import dataclass
from enum import Enum
from typing import Optional, TextIO


class OperatingMode(str, Enum):
    INTERACTIVE = "interactive"
    SILENT = "silent"
    STRUCTURED = "structured"


@dataclass(frozen=True)
class ModeDescriptor:
    """Immutable description of how this run talks to the user."""

    mode: OperatingMode
    color: bool
    tty: bool
    non_interactive: bool = False

    @property
    def interactive(self) -> bool:
        return self.mode is OperatingMode.INTERACTIVE

    @property
    def structured(self) -> bool:
        return self.mode is OperatingMode.STRUCTURED

    def command_env(self) -> dict:
        """Environment overlay that keeps child processes' colour in line with ours."""
        if not self.color:
            return {"FORCE_COLOR": "0", "NO_COLOR": "1"}
        return {}


def resolve_mode(
    json_output: bool = False,
    non_interactive: bool = False,
    no_color: bool = False,
    force_color: bool = False,
    stdin_tty: Optional[bool] = None,
    stdout_tty: Optional[bool] = None,
) -> ModeDescriptor:
    """
    Pick interactive, silent or structured mode from flags and terminal state.

    Interactive needs a terminal on both stdin and stdout. Colour is on only
    outside structured mode, without ``--no-color``, and on a terminal unless
    ``--color`` forces it.
    """
    if stdin_tty is None:
        stdin_tty = _isatty(sys.stdin)
    if stdout_tty is None:
        stdout_tty = _isatty(sys.stdout)
    tty = stdin_tty and stdout_tty

    if json_output:
        mode = OperatingMode.STRUCTURED
    elif not non_interactive and tty:
        mode = OperatingMode.INTERACTIVE
    else:
        mode = OperatingMode.SILENT

    color = not json_output and not no_color and (tty or force_color)
    return ModeDescriptor(mode=mode, color=color, tty=tty, non_interactive=non_interactive)


def _isatty(stream: Optional[TextIO]) -> bool:
    try:
        return bool(stream is not None and stream.isatty())
    except ValueError:
        return False
