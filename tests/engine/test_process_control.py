import os
import signal
import subprocess
import sys

from axon.engine import process_control


def _sleeper() -> subprocess.Popen:
    return subprocess.Popen([sys.executable, "-c", "import time; time.sleep(30)"])


def test_exists_for_current_process():
    assert process_control.exists(os.getpid()) is True


def test_exists_rejects_invalid_pids():
    assert process_control.exists(0) is False
    assert process_control.exists(-1) is False


def test_exists_false_after_exit():
    proc = subprocess.Popen([sys.executable, "-c", "pass"])
    proc.wait(timeout=30)
    assert process_control.exists(proc.pid) is False


def test_request_graceful_stop_sends_sigterm():
    proc = _sleeper()
    try:
        assert process_control.request_graceful_stop(proc.pid) is True
        assert proc.wait(timeout=30) == -signal.SIGTERM
    finally:
        if proc.poll() is None:
            proc.kill()
            proc.wait()


def test_force_stop_sends_sigkill():
    proc = _sleeper()
    try:
        assert process_control.force_stop(proc.pid) is True
        assert proc.wait(timeout=30) == -signal.SIGKILL
    finally:
        if proc.poll() is None:
            proc.kill()
            proc.wait()


def test_signals_to_gone_process_report_false():
    proc = subprocess.Popen([sys.executable, "-c", "pass"])
    proc.wait(timeout=30)
    assert process_control.request_graceful_stop(proc.pid) is False
    assert process_control.force_stop(proc.pid) is False
    assert process_control.force_stop(0) is False
