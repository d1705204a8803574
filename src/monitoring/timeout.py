"""Job timeout protection."""

import signal
import threading
from contextlib import contextmanager


@contextmanager
def timeout(seconds: int):
    """
    Raise TimeoutError in the body after `seconds`.

    No-op for seconds <= 0 or outside the main thread (SIGALRM is main-thread only).
    """
    if not seconds or seconds <= 0 or threading.current_thread() is not threading.main_thread():
        yield
        return

    def handler(signum, frame):
        raise TimeoutError(f"Operation timed out after {seconds}s")

    old_handler = signal.signal(signal.SIGALRM, handler)
    signal.alarm(seconds)
    try:
        yield
    finally:
        signal.alarm(0)
        signal.signal(signal.SIGALRM, old_handler)
