"""Per-user critical sections.

Requests for the same user (a double-submitted answer, a rating racing the
next answer) are serialized; different users never wait on each other here.
"""
import threading
from contextlib import contextmanager

_registry_lock = threading.Lock()
_user_locks: dict[int, threading.RLock] = {}


def _lock_for(user_id: int) -> threading.RLock:
    with _registry_lock:
        lock = _user_locks.get(user_id)
        if lock is None:
            lock = threading.RLock()
            _user_locks[user_id] = lock
        return lock


@contextmanager
def user_lock(user_id: int):
    lock = _lock_for(user_id)
    with lock:
        yield
