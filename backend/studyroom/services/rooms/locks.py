import threading
from contextlib import contextmanager
from typing import Dict


class _RoomLock:
    __slots__ = ('lock', 'holders')

    def __init__(self):
        self.lock = threading.RLock()
        # Threads holding or waiting on the lock
        self.holders = 0


_registry_lock = threading.Lock()
_room_locks: Dict[str, _RoomLock] = {}


@contextmanager
def room_lock(code: str):
    """Serialise operations on one room within this process.

    Re-entrant, so an operation may call another operation on the same room.
    The registry entry is dropped once no thread holds or waits on it, so
    finished, expired and deleted rooms leave nothing behind.
    Writers in other processes are caught by the version check on save.
    """
    with _registry_lock:
        entry = _room_locks.get(code)
        if entry is None:
            entry = _room_locks[code] = _RoomLock()
        entry.holders += 1
    try:
        with entry.lock:
            yield
    finally:
        with _registry_lock:
            entry.holders -= 1
            if entry.holders == 0 and _room_locks.get(code) is entry:
                del _room_locks[code]


def active_room_locks() -> int:
    with _registry_lock:
        return len(_room_locks)
