"""Process liveness and process-group termination for assistant runs."""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import time

logger = logging.getLogger(__name__)


def process_alive(pid: int | None) -> bool:
    """Probe ``pid`` with signal 0.

    "No such process" and "not permitted" both count as not alive.
    """
    if not pid:
        return False
    try:
        os.kill(pid, 0)
    except OSError:
        return False
    return True


def _signal_group(pid: int, sig: signal.Signals) -> bool:
    """Send ``sig`` to the process group led by ``pid``, falling back to the pid."""
    try:
        os.killpg(os.getpgid(pid), sig)
        return True
    except (ProcessLookupError, PermissionError):
        pass
    try:
        os.kill(pid, sig)
        return True
    except (ProcessLookupError, PermissionError):
        logger.debug("Process %d already gone (%s)", pid, sig.name)
        return False


def terminate_process_group(
    pid: int,
    grace_period: float = 0.5,
    proc: subprocess.Popen | None = None,
) -> None:
    """SIGTERM the group, wait ``grace_period``, then SIGKILL if still alive.

    When the ``Popen`` handle is available the exit is awaited through it so
    the child is reaped instead of lingering as a zombie (a zombie still
    answers signal 0).
    """
    if not _signal_group(pid, signal.SIGTERM):
        return

    if proc is not None:
        try:
            proc.wait(timeout=grace_period)
            return
        except subprocess.TimeoutExpired:
            pass
    else:
        deadline = time.monotonic() + grace_period
        while time.monotonic() < deadline and process_alive(pid):
            time.sleep(0.05)

    if proc is not None and proc.poll() is not None:
        return
    if process_alive(pid):
        _signal_group(pid, signal.SIGKILL)
        logger.info("Killed process group of pid %d", pid)
        if proc is not None:
            try:
                proc.wait(timeout=2)
            except subprocess.TimeoutExpired:
                logger.warning("Process %d did not exit after SIGKILL", pid)
