"""Fixed-capacity ring buffer used by the sliding spectral windows."""

from __future__ import annotations

from typing import Generic, TypeVar

T = TypeVar("T")


class CircularBuffer(Generic[T]):
    """Ring buffer holding at most *capacity* items.

    One spare slot distinguishes a full buffer from an empty one.  Adding to
    a full buffer silently evicts the oldest item.
    """

    __slots__ = ("_data", "_slots", "_head", "_tail", "_capacity")

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError(f"CircularBuffer capacity must be >= 1, got {capacity!r}")
        self._capacity = int(capacity)
        self._slots = self._capacity + 1
        self._data: list[T | None] = [None] * self._slots
        self._head = 0
        self._tail = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def count(self) -> int:
        """Number of items currently held."""
        ret = self._tail - self._head
        if ret < 0:
            ret += self._slots
        return ret

    def __len__(self) -> int:
        return self.count()

    def add(self, item: T) -> None:
        self._data[self._tail] = item
        self._tail = (self._tail + 1) % self._slots
        if self._tail == self._head:
            self._head = (self._head + 1) % self._slots

    def get(self, idx: int) -> T:
        """Look up an item: ``0`` is the oldest, ``-1`` the newest."""
        if self._tail == self._head:
            raise IndexError("get from empty CircularBuffer")
        if idx < 0:
            idx = self._tail + idx
            if idx < 0:
                idx += self._slots
        else:
            idx += self._head
        item = self._data[idx % self._slots]
        return item  # type: ignore[return-value]

    def fill(self, value: T) -> None:
        """Overwrite the whole buffer with *capacity* copies of *value*."""
        for _ in range(self._capacity):
            self.add(value)
