"""Chrome process inspection utilities."""

from __future__ import annotations
from typing import NamedTuple, Iterable
import re
import subprocess

_PORT_RE = re.compile(r"--remote-debugging-port(?:=(\d+))?")


class ChromeStatus(NamedTuple):
    """Status of Chrome processes on the system."""

    running: bool
    remote_debug: bool
    pids: tuple[int, ...]
    debug_port: int | None = None


def scan_chrome_processes(names: Iterable[str]) -> ChromeStatus:
    """
    Check if Chrome is running and whether it has remote debugging enabled.

    Parameters
    ----------
    names : Iterable[str]
        Process name patterns to search for (e.g., "Google Chrome")

    Returns
    -------
    ChromeStatus
        Status including whether Chrome is running, has remote debug, the
        PIDs and the first debugging port found on a command line.
    """
    names = tuple(names)
    try:
        result = subprocess.run(
            ["ps", "-axo", "pid,command"], capture_output=True, text=True, check=True
        )
    except (subprocess.SubprocessError, OSError):
        # If we can't scan processes, assume nothing is running
        return ChromeStatus(False, False, ())

    pids = []
    has_remote_debug = False
    debug_port = None

    for line in result.stdout.splitlines():
        if not any(name in line for name in names):
            continue
        parts = line.strip().split(None, 1)
        if len(parts) < 2:
            continue
        try:
            pid = int(parts[0])
        except ValueError:
            continue
        pids.append(pid)

        match = _PORT_RE.search(line)
        if match:
            has_remote_debug = True
            if debug_port is None and match.group(1):
                debug_port = int(match.group(1))

    return ChromeStatus(
        running=bool(pids),
        remote_debug=has_remote_debug,
        pids=tuple(pids),
        debug_port=debug_port,
    )
