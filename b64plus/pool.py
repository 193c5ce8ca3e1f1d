"""
Reusable read buffers for the streaming codec.

Every encode/decode call borrows one fixed-size buffer for the duration of
the call and returns it on exit, including error exits. Concurrent callers
never share a buffer: an empty pool simply allocates a new one.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Iterator

from b64plus import BUFFER_SIZE

log = logging.getLogger(__name__)


class BufferPool:
    """Free list of equally sized bytearrays.

    Usage:
        pool = BufferPool(64 * 1024)
        with pool.acquire() as buf:
            n = stream.readinto(buf)
    """

    def __init__(self, size: int = BUFFER_SIZE, max_idle: int = 4) -> None:
        if size < 1:
            raise ValueError(f"Buffer size must be positive, got {size}")
        self.size = size
        self.max_idle = max_idle
        self._free: list[bytearray] = []
        self._lock = threading.Lock()
        self.allocated = 0

    @property
    def idle(self) -> int:
        with self._lock:
            return len(self._free)

    def _take(self) -> bytearray:
        with self._lock:
            if self._free:
                return self._free.pop()
            self.allocated += 1
        log.debug("Allocating %d byte buffer (total %d)", self.size, self.allocated)
        return bytearray(self.size)

    def _give(self, buf: bytearray) -> None:
        with self._lock:
            if len(self._free) < self.max_idle:
                self._free.append(buf)

    @contextmanager
    def acquire(self) -> Iterator[bytearray]:
        """Borrow a buffer for the lifetime of the ``with`` block."""
        buf = self._take()
        try:
            yield buf
        finally:
            self._give(buf)


_pools: dict[int, BufferPool] = {}
_pools_lock = threading.Lock()


def get_pool(size: int = BUFFER_SIZE) -> BufferPool:
    """Process-wide pool for buffers of ``size`` bytes."""
    with _pools_lock:
        pool = _pools.get(size)
        if pool is None:
            pool = _pools[size] = BufferPool(size)
        return pool


def read_chunks(source, buf: bytearray) -> Iterator[memoryview]:
    """Yield views of ``buf`` filled from ``source`` until EOF.

    Each view is only valid until the next iteration; consumers must copy
    what they keep.
    """
    view = memoryview(buf)
    readinto = getattr(source, "readinto", None)
    while True:
        if readinto is not None:
            n = readinto(view)
            if not n:
                return
            yield view[:n]
        else:
            data = source.read(len(buf))
            if not data:
                return
            yield memoryview(data)
