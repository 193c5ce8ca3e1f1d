"""
Size and SHA-256 of a byte stream, computed in one pass.

The framed header needs both values before the first body byte is written,
so the encoder measures the whole input up front and then either rewinds
the source or replays it from the spool filled here.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from typing import BinaryIO

from b64plus import DIGEST_ALGORITHM
from b64plus.pool import read_chunks

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Measurement:
    """Byte count and raw digest of a fully consumed stream."""

    size: int
    digest: bytes

    @property
    def hexdigest(self) -> str:
        return self.digest.hex()


def measure(source: BinaryIO, buffer: bytearray, copy_to: BinaryIO | None = None) -> Measurement:
    """Drain ``source`` and return its size and SHA-256.

    Args:
        source: Binary stream, read to EOF.
        buffer: Scratch buffer (see ``BufferPool``).
        copy_to: Optional writable stream receiving every chunk as it is hashed.

    Raises:
        OSError: Any read or write failure, unchanged.
    """
    h = hashlib.new(DIGEST_ALGORITHM)
    size = 0
    for chunk in read_chunks(source, buffer):
        size += len(chunk)
        h.update(chunk)
        if copy_to is not None:
            copy_to.write(chunk)
    log.debug("Measured %d bytes", size)
    return Measurement(size=size, digest=h.digest())
