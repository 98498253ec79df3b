from __future__ import annotations

import threading

from contextlib import contextmanager


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Iterator
    from uuid import UUID


class ResourceLocks:
    """ Hands out one reentrant lock per resource id.

    Booking a resource means checking for overlaps and inserting the new
    reservation. Both steps have to happen while holding the lock of the
    resource, otherwise two threads may see the same free window and both
    claim it.

    The locks only serialize threads of the current process. Across
    processes the scheduler relies on the database (serializable isolation
    and a row lock on the resource).

    """

    def __init__(self) -> None:
        self.thread_lock = threading.Lock()
        self.locks: dict[str, threading.RLock] = {}

    def get(self, resource: UUID | str) -> threading.RLock:
        key = str(resource)

        with self.thread_lock:
            if key not in self.locks:
                self.locks[key] = threading.RLock()

            return self.locks[key]

    @contextmanager
    def lock(self, resource: UUID | str) -> Iterator[None]:
        with self.get(resource):
            yield
