import threading
from typing import Any, Callable, Dict, Iterator, Optional, Tuple

from bucketmap.config import DEFAULT_INITIAL_CAPACITY, DEFAULT_LOAD_FACTOR
from bucketmap.hash_table import NOT_FOUND, ConfigurationError, HashTable


class SynchronizedHashTable:
    """HashTable with one lock held around every operation.

    Either builds its own table from initial_capacity, load_factor and
    hash_function, or wraps an existing one passed as table; giving both is a
    ConfigurationError. iterate() walks a snapshot taken under the lock, so it
    never sees a concurrent resize.
    """

    def __init__(
        self,
        initial_capacity: Optional[int] = None,
        load_factor: Optional[float] = None,
        hash_function: Optional[Callable[[Any], int]] = None,
        table: Optional[HashTable] = None,
    ) -> None:
        if table is not None:
            if initial_capacity is not None or load_factor is not None or hash_function is not None:
                raise ConfigurationError("table= cannot be combined with initial_capacity, load_factor or hash_function")
            self._table = table
        else:
            self._table = HashTable(
                DEFAULT_INITIAL_CAPACITY if initial_capacity is None else initial_capacity,
                DEFAULT_LOAD_FACTOR if load_factor is None else load_factor,
                hash_function,
            )
        self._lock = threading.Lock()

    def put(self, key: Any, value: Any) -> None:
        with self._lock:
            self._table.put(key, value)

    def put_if_absent(self, key: Any, value: Any) -> Any:
        with self._lock:
            return self._table.put_if_absent(key, value)

    def get(self, key: Any) -> Any:
        with self._lock:
            return self._table.get(key)

    def get_or_default(self, key: Any, default: Any = None) -> Any:
        with self._lock:
            return self._table.get_or_default(key, default)

    def contains_key(self, key: Any) -> bool:
        with self._lock:
            return self._table.contains_key(key)

    def contains_value(self, value: Any) -> bool:
        with self._lock:
            return self._table.contains_value(value)

    def remove(self, key: Any) -> Any:
        with self._lock:
            return self._table.remove(key)

    def clear(self) -> None:
        with self._lock:
            self._table.clear()

    def size(self) -> int:
        with self._lock:
            return self._table.size()

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return self._table.stats()

    def iterate(self) -> Iterator[Tuple[Any, Any]]:
        with self._lock:
            snapshot = list(self._table.iterate())
        return iter(snapshot)

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, key: Any) -> bool:
        return self.contains_key(key)

    def __iter__(self) -> Iterator[Tuple[Any, Any]]:
        return self.iterate()

    def __getitem__(self, key: Any) -> Any:
        value = self.get(key)
        if value is NOT_FOUND:
            raise KeyError(key)
        return value

    def __setitem__(self, key: Any, value: Any) -> None:
        self.put(key, value)

    def __delitem__(self, key: Any) -> None:
        if self.remove(key) is NOT_FOUND:
            raise KeyError(key)

    def __repr__(self) -> str:
        with self._lock:
            return f"{type(self).__name__}({self._table!r})"
