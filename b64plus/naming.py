"""
Best-effort name for the file behind an input stream.

Used only by the CLI to fill the header's filename line when no name is
given on the command line. Pipes, terminals and anything else that is not
a regular file resolve to DEFAULT_INPUT_NAME.
"""

from __future__ import annotations

import os
import stat
import sys

from b64plus import DEFAULT_INPUT_NAME


def _fd_target(fd: int) -> str | None:
    """Path a descriptor points at, via /proc (Linux only)."""
    try:
        return os.readlink(f"/proc/self/fd/{fd}")
    except OSError:
        return None


def resolve_input_name(stream=None, fallback: str = DEFAULT_INPUT_NAME) -> str:
    """Return the base name of the regular file ``stream`` reads from.

    Checks the stream's ``name`` first (files opened by path), then the
    descriptor's /proc link when the descriptor is a regular file.
    """
    if stream is None:
        stream = sys.stdin

    name = getattr(stream, "name", None)
    if isinstance(name, str) and name and not name.startswith("<") and os.path.isfile(name):
        return os.path.basename(name)

    try:
        fd = stream.fileno()
        mode = os.fstat(fd).st_mode
    except (AttributeError, OSError, ValueError):
        return fallback
    if not stat.S_ISREG(mode):
        return fallback

    target = _fd_target(fd)
    if not target:
        return fallback
    return os.path.basename(target) or fallback
