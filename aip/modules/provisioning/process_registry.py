"""Thread-safe registry of run_id -> subprocess.Popen so shutdown can stop in-flight phases."""
import threading
import subprocess
import logging
from typing import List

logger = logging.getLogger(__name__)
_lock = threading.Lock()
_registry: dict[int, subprocess.Popen] = {}


def register(run_id: int, process: subprocess.Popen) -> None:
    with _lock:
        _registry[run_id] = process
        logger.debug(f"Registered process for run {run_id}")


def unregister(run_id: int) -> None:
    with _lock:
        _registry.pop(run_id, None)
        logger.debug(f"Unregistered run {run_id}")


def get_process(run_id: int) -> subprocess.Popen | None:
    with _lock:
        return _registry.get(run_id)


def active_runs() -> List[int]:
    with _lock:
        return list(_registry)


def stop_process(proc: subprocess.Popen, wait_seconds: float = 3.0) -> None:
    """SIGTERM, then SIGKILL if the process outlives ``wait_seconds``."""
    if proc.poll() is not None:
        return
    proc.terminate()
    try:
        proc.wait(timeout=wait_seconds)
    except subprocess.TimeoutExpired:
        proc.kill()
        proc.wait()


def terminate(run_id: int, wait_seconds: float = 3.0) -> bool:
    """Terminate the process for run_id. Returns True if a process was found."""
    with _lock:
        proc = _registry.get(run_id)
    if proc is None:
        return False
    try:
        stop_process(proc, wait_seconds)
    except OSError as e:
        logger.warning(f"Error terminating process for run {run_id}: {e}")
    finally:
        unregister(run_id)
    return True


def terminate_all(wait_seconds: float = 3.0) -> int:
    """Terminate every registered process. Returns how many were stopped."""
    stopped = 0
    for run_id in active_runs():
        if terminate(run_id, wait_seconds):
            logger.info(f"Terminated in-flight terraform process for run {run_id}")
            stopped += 1
    return stopped
