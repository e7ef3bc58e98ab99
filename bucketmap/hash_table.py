from numbers import Real
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from bucketmap.config import DEFAULT_INITIAL_CAPACITY, DEFAULT_LOAD_FACTOR
from bucketmap.logger.log_types import LogEvent
from bucketmap.logger.logger import log_error_event, log_resize_event, log_table_event


class ConfigurationError(ValueError):
    pass


class NotFound:
    """Result of a lookup or removal for a key the table does not hold.

    There is a single instance, NOT_FOUND, so callers test with `is`. A stored
    None is a value like any other and is never reported as NOT_FOUND.
    """
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NOT_FOUND"

    def __reduce__(self):
        return (NotFound, ())


NOT_FOUND = NotFound()


class Entry:
    __slots__ = ("key", "value", "stored_hash")

    def __init__(self, key: Any, value: Any, stored_hash: int):
        self.key = key
        self.value = value
        self.stored_hash = stored_hash

    def matches(self, key: Any, key_hash: int) -> bool:
        # hash equality only filters; equality decides
        return self.stored_hash == key_hash and (self.key is key or self.key == key)

    def __repr__(self) -> str:
        return f"Entry({self.key!r}, {self.value!r}, hash={self.stored_hash})"


def compress(hash_value: int, capacity: int) -> int:
    """Map a hash of any sign onto a bucket index in [0, capacity - 1].

    capacity must be a power of two. Python ints mask as infinite two's
    complement, so negative hashes land in range without a modulo.
    """
    return hash_value & (capacity - 1)


def _table_size_for(capacity: int) -> int:
    return 1 << (capacity - 1).bit_length()


def _config_error(message: str) -> ConfigurationError:
    log_error_event(LogEvent.INVALID_CONFIGURATION, message)
    return ConfigurationError(message)


def validate_config(initial_capacity: Any, load_factor: Any) -> None:
    if isinstance(initial_capacity, bool) or not isinstance(initial_capacity, int):
        raise _config_error(f"initial_capacity must be an int, got {initial_capacity!r}")
    if initial_capacity <= 0:
        raise _config_error(f"initial_capacity must be positive, got {initial_capacity}")
    if isinstance(load_factor, bool) or not isinstance(load_factor, Real):
        raise _config_error(f"load_factor must be a number, got {load_factor!r}")
    # NaN fails the comparison as well
    if not 0.0 < load_factor <= 1.0:
        raise _config_error(f"load_factor must be in (0.0, 1.0], got {load_factor}")


class HashTable:
    """Mapping backed by a power-of-two array of buckets chained with lists.

    Inserting a new key that pushes the size past capacity * load_factor
    doubles the capacity and redistributes every entry before the insert
    returns. The table never shrinks. Not thread safe; see
    bucketmap.synchronized for a locked wrapper.
    """

    def __init__(
        self,
        initial_capacity: int = DEFAULT_INITIAL_CAPACITY,
        load_factor: float = DEFAULT_LOAD_FACTOR,
        hash_function: Optional[Callable[[Any], int]] = None,
    ) -> None:
        validate_config(initial_capacity, load_factor)
        self._capacity = _table_size_for(initial_capacity)
        self._load_factor = float(load_factor)
        self._hash = hash_function or hash
        self._buckets: List[List[Entry]] = [[] for _ in range(self._capacity)]
        self._size = 0
        self._mod_count = 0
        self._resize_count = 0
        log_table_event(LogEvent.TABLE_CREATED, self._capacity, self._load_factor)

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def load_factor(self) -> float:
        return self._load_factor

    @property
    def threshold(self) -> float:
        return self._capacity * self._load_factor

    def _lookup(self, key: Any) -> Tuple[int, List[Entry], Optional[int]]:
        key_hash = self._hash(key)
        bucket = self._buckets[compress(key_hash, self._capacity)]
        for position, entry in enumerate(bucket):
            if entry.matches(key, key_hash):
                return key_hash, bucket, position
        return key_hash, bucket, None

    def _insert(self, entry: Entry, bucket: List[Entry]) -> None:
        if self._size + 1 > self.threshold:
            self._resize(entry)
        else:
            bucket.append(entry)
        self._size += 1
        self._mod_count += 1

    def _resize(self, pending: Entry) -> None:
        old_capacity = self._capacity
        new_capacity = old_capacity * 2
        while self._size + 1 > new_capacity * self._load_factor:
            new_capacity *= 2

        # built aside and swapped in last, so a failure leaves the table as it was
        new_buckets: List[List[Entry]] = [[] for _ in range(new_capacity)]
        for bucket in self._buckets:
            for entry in bucket:
                new_buckets[compress(entry.stored_hash, new_capacity)].append(entry)
        new_buckets[compress(pending.stored_hash, new_capacity)].append(pending)

        self._buckets = new_buckets
        self._capacity = new_capacity
        self._resize_count += 1
        log_resize_event(LogEvent.TABLE_RESIZED, old_capacity, new_capacity, self._size + 1)

    def put(self, key: Any, value: Any) -> None:
        key_hash, bucket, position = self._lookup(key)
        if position is not None:
            bucket[position].value = value
            return
        self._insert(Entry(key, value, key_hash), bucket)

    def put_if_absent(self, key: Any, value: Any) -> Any:
        """Store value only if key is absent.

        Returns the value already stored for key, or NOT_FOUND when value was
        stored.
        """
        key_hash, bucket, position = self._lookup(key)
        if position is not None:
            return bucket[position].value
        self._insert(Entry(key, value, key_hash), bucket)
        return NOT_FOUND

    def get(self, key: Any) -> Any:
        _, bucket, position = self._lookup(key)
        if position is None:
            return NOT_FOUND
        return bucket[position].value

    def get_or_default(self, key: Any, default: Any = None) -> Any:
        value = self.get(key)
        return default if value is NOT_FOUND else value

    def contains_key(self, key: Any) -> bool:
        _, _, position = self._lookup(key)
        return position is not None

    def contains_value(self, value: Any) -> bool:
        for bucket in self._buckets:
            for entry in bucket:
                if entry.value is value or entry.value == value:
                    return True
        return False

    def remove(self, key: Any) -> Any:
        _, bucket, position = self._lookup(key)
        if position is None:
            return NOT_FOUND
        entry = bucket.pop(position)
        self._size -= 1
        self._mod_count += 1
        return entry.value

    def clear(self) -> None:
        if self._size:
            self._buckets = [[] for _ in range(self._capacity)]
            self._size = 0
            self._mod_count += 1

    def size(self) -> int:
        return self._size

    def iterate(self) -> Iterator[Tuple[Any, Any]]:
        """Yield (key, value) pairs in bucket order, then chain order.

        Adding or removing a key once the iterator exists makes its next step
        raise RuntimeError. Overwriting a value does not.
        """
        return self._walk(self._mod_count)

    def _walk(self, expected: int) -> Iterator[Tuple[Any, Any]]:
        for bucket in self._buckets:
            for entry in bucket:
                if self._mod_count != expected:
                    raise RuntimeError("HashTable changed size during iteration")
                yield entry.key, entry.value
        if self._mod_count != expected:
            raise RuntimeError("HashTable changed size during iteration")

    def keys(self) -> Iterator[Any]:
        return (key for key, _ in self.iterate())

    def values(self) -> Iterator[Any]:
        return (value for _, value in self.iterate())

    def stats(self) -> Dict[str, Any]:
        chain_lengths = [len(bucket) for bucket in self._buckets]
        return {
            "size": self._size,
            "capacity": self._capacity,
            "load_factor": self._load_factor,
            "threshold": self.threshold,
            "resizes": self._resize_count,
            "longest_chain": max(chain_lengths),
            "empty_buckets": chain_lengths.count(0),
        }

    def __len__(self) -> int:
        return self._size

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
        pairs = ", ".join(f"{key!r}: {value!r}" for key, value in self.iterate())
        return f"{type(self).__name__}({{{pairs}}})"
