"""postStart hook wrapper.

Kubernetes kills a container whose postStart hook runs too long or exits
non-zero, while registering workers can legitimately take minutes. The hook
therefore only starts a detached ``--run`` process, whose output goes to
PID 1's stdout/stderr so it shows up in ``kubectl logs``, and returns 0.
"""

from __future__ import annotations

import subprocess
import sys
from contextlib import ExitStack
from pathlib import Path
from typing import IO

from ..logger import get_logger

logger = get_logger(__name__)

PID1_STDOUT = Path("/proc/1/fd/1")
PID1_STDERR = Path("/proc/1/fd/2")


def run_command() -> list[str]:
    return [sys.executable, "-m", "citus_ops.registrar", "--run"]


def _open_stream(stack: ExitStack, path: Path) -> IO[bytes] | None:
    try:
        return stack.enter_context(path.open("ab", buffering=0))
    except OSError as e:
        logger.warning("Cannot write to main process stream, child inherits ours", path=str(path), error=str(e))
        return None


def spawn_detached(
    command: list[str] | None = None,
    stdout_path: Path = PID1_STDOUT,
    stderr_path: Path = PID1_STDERR,
) -> int:
    """Start ``command`` in its own session and return its pid without waiting.

    Raises
    ------
    OSError
        If the process could not be started.
    """
    with ExitStack() as stack:
        process = subprocess.Popen(  # noqa: S603
            command or run_command(),
            stdin=subprocess.DEVNULL,
            stdout=_open_stream(stack, stdout_path),
            stderr=_open_stream(stack, stderr_path),
            start_new_session=True,
            close_fds=True,
        )
    return process.pid


def run_poststart() -> int:
    """Hook entry point: always returns 0."""
    try:
        pid = spawn_detached()
    except Exception:
        logger.exception("Could not start worker registration in background")
        return 0

    logger.info("Worker registration started in background", pid=pid)
    return 0
