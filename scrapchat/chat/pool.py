"""
Reusable buffer pool for page reads and message decoding.
"""

from contextlib import contextmanager
from typing import Callable, Generic, Iterator, List, TypeVar

T = TypeVar("T")


class ObjectPool(Generic[T]):
    """
    Small pool of reusable objects.

    Objects are checked out with ``with pool.checkout() as obj:`` and are
    reset and returned when the block exits, whatever the exit path.
    """

    def __init__(
        self,
        factory: Callable[[], T],
        reset: Callable[[T], None],
        max_size: int = 4,
    ):
        """
        Initialize object pool.

        Args:
            factory: Creates a new object when the pool is empty
            reset: Clears an object before it goes back to the pool
            max_size: Maximum number of idle objects kept
        """
        self._factory = factory
        self._reset = reset
        self._max_size = max_size
        self._idle: List[T] = []

    @contextmanager
    def checkout(self) -> Iterator[T]:
        """Borrow an object for the duration of the block."""
        obj = self._idle.pop() if self._idle else self._factory()
        try:
            yield obj
        finally:
            self._reset(obj)
            if len(self._idle) < self._max_size:
                self._idle.append(obj)

    @property
    def idle(self) -> int:
        """Number of objects waiting in the pool."""
        return len(self._idle)


def byte_buffer_pool(max_size: int = 2) -> "ObjectPool[bytearray]":
    """Pool of bytearrays used to accumulate page bodies."""
    return ObjectPool(bytearray, bytearray.clear, max_size=max_size)


def text_part_pool(max_size: int = 4) -> "ObjectPool[List[str]]":
    """Pool of string part lists used to assemble message text."""
    return ObjectPool(list, list.clear, max_size=max_size)
