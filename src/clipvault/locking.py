import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TypeVar

from clipvault.exceptions import ClipVaultError
from clipvault.storage import ContentStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class GuardedStore:
    """The single shared handle to a ContentStore.

    Every read and write holds one coarse lock. When a holder dies with an
    unexpected exception the lock is flagged as poisoned; the next acquirer logs
    a warning and carries on with the store instead of failing.
    """

    def __init__(self, store: ContentStore):
        self._store = store
        self._lock = threading.Lock()
        self._poisoned = False

    @property
    def poisoned(self) -> bool:
        return self._poisoned

    @contextmanager
    def acquire(self) -> Iterator[ContentStore]:
        with self._lock:
            if self._poisoned:
                logger.warning("Recovered from poisoned store lock")
                self._poisoned = False
            try:
                yield self._store
            except ClipVaultError:
                raise
            except BaseException:
                self._poisoned = True
                raise

    def call(self, fn: Callable[..., T], *args, **kwargs) -> T:
        with self.acquire() as store:
            return fn(store, *args, **kwargs)

    def close(self) -> None:
        with self._lock:
            self._store.close()
