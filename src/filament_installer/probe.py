"""Advisory host checks: tool lookup and TCP port probing."""
from __future__ import annotations

import socket
from shutil import which
from typing import Optional, Union

DEFAULT_HOST = "127.0.0.1"
PROBE_TIMEOUT = 1.2


def command_exists(executable: str) -> bool:
    return which(executable) is not None


def is_port_open(host: Optional[str], port: Union[int, str, None], timeout: float = PROBE_TIMEOUT) -> bool:
    """Return True when something accepts TCP connections on *host*:*port*."""
    try:
        port_number = int(port) if port is not None else 0
    except ValueError:
        return False
    if port_number <= 0:
        return False
    try:
        with socket.create_connection((host or DEFAULT_HOST, port_number), timeout=timeout):
            return True
    except OSError:
        return False
