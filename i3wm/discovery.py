"""Locate the window manager's IPC socket."""

from __future__ import annotations

import asyncio
import logging
import os

from .errors import DiscoveryError

log = logging.getLogger(__name__)

SOCKET_ENV_VARS = ("I3SOCK", "SWAYSOCK")


async def get_socket_path(binary: str = "i3") -> str:
    """Return the IPC socket path.

    Environment variables win; otherwise ask the window manager itself with
    ``<binary> --get-socketpath``.
    """
    for var in SOCKET_ENV_VARS:
        path = os.environ.get(var, "").strip()
        if path:
            log.debug("Socket path from $%s: %s", var, path)
            return path

    try:
        proc = await asyncio.create_subprocess_exec(
            binary, "--get-socketpath",
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise DiscoveryError(f"cannot run {binary}: {e}") from e

    stdout, stderr = await proc.communicate()
    if proc.returncode != 0:
        raise DiscoveryError(
            f"{binary} --get-socketpath exited {proc.returncode}: {stderr.decode(errors='replace').strip()}"
        )
    path = stdout.decode(errors="replace").strip()
    if not path:
        raise DiscoveryError(f"{binary} --get-socketpath printed nothing")
    log.debug("Socket path from %s: %s", binary, path)
    return path
