"""OS process control primitives.

All signal sending in Axon goes through these three functions.
"""

from __future__ import annotations

import logging
import os
import signal

logger = logging.getLogger(__name__)


def exists(pid: int) -> bool:
    """Return True if `pid` resolves to a live process (signal 0, no effect)."""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists, but owned by someone else.
        return True
    except OSError:
        return False
    return True


def _send(pid: int, sig: signal.Signals) -> bool:
    if pid <= 0:
        return False
    try:
        os.kill(pid, sig)
    except ProcessLookupError:
        return False
    except OSError as exc:
        logger.warning("failed to send %s to pid=%s: %s", sig.name, pid, exc)
        return False
    return True


def request_graceful_stop(pid: int) -> bool:
    """Send SIGTERM. Returns False if the process was already gone."""
    return _send(pid, signal.SIGTERM)


def force_stop(pid: int) -> bool:
    """Send SIGKILL. Returns False if the process was already gone."""
    return _send(pid, signal.SIGKILL)
