"""A string-keyed chained hash table that keeps usage statistics."""

from __future__ import annotations

import sys
from typing import Any, Callable, Iterator, List, Optional, TextIO, Tuple

_ENTRY_SIZE = 24
_HASH_MASK = (1 << 64) - 1


def djb2_hash(key: str) -> int:
    """Return the 64-bit djb2 hash of ``key`` (UTF-8 encoded)."""
    value = 5381
    for byte in key.encode("utf-8"):
        value = (value * 33 + byte) & _HASH_MASK
    return value


class HashTable:
    """A fixed number of buckets, each a chain of (key, value) entries."""

    def __init__(self, name: str, n_buckets: int) -> None:
        if n_buckets < 1:
            raise ValueError("a hash table needs at least one bucket")
        self.name = name
        self.n_buckets = n_buckets
        self._buckets: List[List[List[Any]]] = [[] for _ in range(n_buckets)]
        self._reset_stats()

    def _reset_stats(self) -> None:
        self.n_elements = 0
        self.n_used_buckets = 0
        self.n_collisions = 0
        self.max_bucket_len = 0
        self.n_hits = 0
        self.n_misses = 0

    def _bucket(self, key: str) -> List[List[Any]]:
        return self._buckets[djb2_hash(key) % self.n_buckets]

    def get(self, key: str) -> Optional[Any]:
        """Return the value stored under ``key``, or None."""
        for entry in self._bucket(key):
            if entry[0] == key:
                self.n_hits += 1
                return entry[1]
        self.n_misses += 1
        return None

    def insert(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        bucket = self._bucket(key)
        for entry in bucket:
            if entry[0] == key:
                entry[1] = value
                return
        if bucket:
            self.n_collisions += 1
            self.max_bucket_len = max(self.max_bucket_len, len(bucket))
        else:
            self.n_used_buckets += 1
        self.n_elements += 1
        bucket.append([key, value])

    def remove(self, key: str) -> bool:
        """Remove ``key``; return whether it was present."""
        bucket = self._bucket(key)
        for index, entry in enumerate(bucket):
            if entry[0] == key:
                del bucket[index]
                return True
        return False

    def _entries(self) -> Iterator[Tuple[str, Any]]:
        for bucket in self._buckets:
            for key, value in bucket:
                yield key, value

    def foreach(self, func: Callable[[str, Any], Any]) -> None:
        """Call ``func(key, value)`` for every entry, bucket by bucket."""
        for key, value in list(self._entries()):
            func(key, value)

    def print_stats(self, file: Optional[TextIO] = None) -> None:
        """Write usage statistics to ``file`` (standard output by default)."""
        out = sys.stdout if file is None else file
        average = (self.n_elements / self.n_used_buckets
                   if self.n_used_buckets else 0.0)
        out.write(
            f"hash_table: {self.name}, {self.n_buckets * _ENTRY_SIZE} bytes\n"
            f"\tn_buckets={self.n_buckets}, n_elements={self.n_elements}, "
            f"n_collisions={self.n_collisions}\n"
            f"\tmax_bucket_len={self.max_bucket_len}, "
            f"n_used_buckets={self.n_used_buckets}, "
            f"ave_bucket_len={average:.2f}\n"
            f"\tn_hits={self.n_hits}, n_misses={self.n_misses}\n"
        )

    def clear(self) -> None:
        """Remove every entry and reset the statistics."""
        for bucket in self._buckets:
            bucket.clear()
        self._reset_stats()

    def __len__(self) -> int:
        return sum(len(bucket) for bucket in self._buckets)