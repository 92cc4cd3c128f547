"""Per-run memo used by the identity and reference resolvers."""

import threading
from typing import Callable, Dict, Generic, Hashable, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class RunCache(Generic[K, V]):
    """Memoizes loader results for the lifetime of one pipeline run.

    A key is loaded at most once even when several threads ask for it at the
    same time: the first caller loads while the others wait on an in-flight
    event and then read the stored value. Results of None are cached like
    any other value.

    Instances must not be shared between runs.
    """

    def __init__(self) -> None:
        self._values: Dict[K, V] = {}
        self._in_flight: Dict[K, threading.Event] = {}
        self._lock = threading.Lock()
        self.load_count = 0

    def get_or_load(self, key: K, loader: Callable[[K], V]) -> V:
        """Return the cached value for key, loading it on first use.

        Args:
            key: Cache key
            loader: Called with key when the value is not cached yet

        Returns:
            The cached or freshly loaded value

        Raises:
            Exception: Whatever the loader raises; waiting callers then
                retry the load themselves
        """
        while True:
            with self._lock:
                if key in self._values:
                    return self._values[key]
                event = self._in_flight.get(key)
                if event is None:
                    event = threading.Event()
                    self._in_flight[key] = event
                    self.load_count += 1
                    break

            event.wait()

        try:
            value = loader(key)
            with self._lock:
                self._values[key] = value
            return value
        finally:
            with self._lock:
                self._in_flight.pop(key, None)
            event.set()

    def __contains__(self, key: K) -> bool:
        with self._lock:
            return key in self._values

    def __len__(self) -> int:
        with self._lock:
            return len(self._values)
