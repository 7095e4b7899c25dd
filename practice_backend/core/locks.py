from contextlib import contextmanager
from datetime import date
from threading import Lock
from typing import Iterable, Iterator

LockKey = tuple[str, int, date]


def room_key(room_id: int, day: date) -> LockKey:
    return ('room', room_id, day)


def psychologist_key(psychologist_id: int, day: date) -> LockKey:
    return ('psychologist', psychologist_id, day)


def lock_key_name(key: LockKey) -> str:
    kind, resource_id, day = key
    return f'{kind}:{resource_id}:{day.isoformat()}'


class _LockEntry:
    __slots__ = ('lock', 'users')

    def __init__(self) -> None:
        self.lock = Lock()
        self.users = 0


class KeyedLock:
    """Process-local mutexes keyed by (resource kind, resource id, date).

    An entry lives only while some caller holds or waits for its key.
    """

    def __init__(self) -> None:
        self._registry_lock = Lock()
        self._locks: dict[LockKey, _LockEntry] = {}

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._locks)

    def _checkout(self, key: LockKey) -> Lock:
        with self._registry_lock:
            entry = self._locks.get(key)
            if entry is None:
                entry = _LockEntry()
                self._locks[key] = entry
            entry.users += 1
            return entry.lock

    def _checkin(self, key: LockKey) -> None:
        with self._registry_lock:
            entry = self._locks[key]
            entry.users -= 1
            if entry.users == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, keys: Iterable[LockKey]) -> Iterator[None]:
        # Sorted acquisition keeps two requests locking the same pair of keys from deadlocking.
        ordered = sorted(set(keys), key=lock_key_name)
        checked_out: list[LockKey] = []
        acquired: list[Lock] = []
        try:
            for key in ordered:
                lock = self._checkout(key)
                checked_out.append(key)
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            for key in checked_out:
                self._checkin(key)
