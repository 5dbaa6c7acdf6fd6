"""
Process liveness helpers.

Functions:
    - is_process_running: check whether a PID belongs to a live process
"""

import logging

import psutil

logger = logging.getLogger(__name__)


def is_process_running(pid: int) -> bool:
    """
    Check whether a process is running (cross-platform).

    Zombie processes count as dead: they have exited and only wait to be
    reaped by their parent. If the lookup itself fails the process is
    reported as running, so callers never act destructively on an unknown.

    Args:
        pid: Process ID

    Returns:
        True: process is alive (or liveness could not be determined)
        False: process does not exist or is a zombie
    """
    if pid <= 0:
        return False

    try:
        if not psutil.pid_exists(pid):
            return False
        return psutil.Process(pid).status() != psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        return False
    except (psutil.Error, OSError) as e:
        logger.warning(f"Failed to check process {pid}, assuming it is alive: {e}")
        return True
