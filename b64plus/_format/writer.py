"""
Writer: streams bytes out as line-wrapped base64.

Pipeline:
    source -> Base64StreamEncoder -> LineWriter -> sink

Framed documents need size and digest before the body, so the input is
measured first and then replayed:
  1. Seekable source: measure, seek back to where reading started
  2. Pipe/socket: measure while spooling to a SpooledTemporaryFile
     (memory up to spool_max_memory, disk beyond), then encode the spool
"""

from __future__ import annotations

import binascii
import logging
import tempfile
from contextlib import ExitStack
from typing import BinaryIO

from b64plus import LINE_WIDTH, LINE_TERMINATOR, SPOOL_MAX_MEMORY
from b64plus._format.spec import Header, header_filename
from b64plus.checksum import Measurement, measure
from b64plus.pool import BufferPool, get_pool, read_chunks

log = logging.getLogger(__name__)


class LineWriter:
    """Wraps a symbol stream into fixed-width, terminated lines.

    A single ``width + 1`` byte buffer is reused for every line; line
    boundaries do not depend on how the input is chunked.
    """

    def __init__(self, sink: BinaryIO, width: int = LINE_WIDTH) -> None:
        if width < 1:
            raise ValueError(f"Line width must be at least 1, got {width}")
        self._sink = sink
        self.width = width
        self._buf = bytearray(width + 1)
        self._buf[width] = LINE_TERMINATOR[0]
        self._pos = 0
        self.lines_written = 0

    def write(self, data) -> int:
        view = memoryview(data)
        total = len(view)
        buf = self._buf
        width = self.width
        i = 0
        while i < total:
            n = min(width - self._pos, total - i)
            buf[self._pos:self._pos + n] = view[i:i + n]
            self._pos += n
            i += n
            if self._pos == width:
                self._sink.write(buf)
                self.lines_written += 1
                self._pos = 0
        return total

    def flush(self) -> None:
        """Terminate a pending partial line and flush the sink."""
        if self._pos:
            self._buf[self._pos] = LINE_TERMINATOR[0]
            self._sink.write(self._buf[:self._pos + 1])
            self.lines_written += 1
            self._pos = 0
        flush = getattr(self._sink, "flush", None)
        if flush is not None:
            flush()


class Base64StreamEncoder:
    """Incremental standard-alphabet base64 encoder.

    Up to two input bytes are carried between writes, so the output is the
    same however the input is split. ``close()`` emits the padded tail.
    """

    def __init__(self, sink) -> None:
        self._sink = sink
        self._pending = b""
        self._closed = False

    def write(self, data) -> int:
        if self._closed:
            raise ValueError("write to closed encoder")
        n = len(data)
        if self._pending:
            need = 3 - len(self._pending)
            head = self._pending + bytes(data[:need])
            data = data[need:]
            if len(head) < 3:
                self._pending = head
                return n
            self._sink.write(binascii.b2a_base64(head, newline=False))
            self._pending = b""
        whole = len(data) - len(data) % 3
        if whole:
            self._sink.write(binascii.b2a_base64(data[:whole], newline=False))
        self._pending = bytes(data[whole:])
        return n

    def close(self) -> None:
        if self._closed:
            return
        if self._pending:
            self._sink.write(binascii.b2a_base64(self._pending, newline=False))
            self._pending = b""
        self._closed = True


def _is_seekable(stream) -> bool:
    seekable = getattr(stream, "seekable", None)
    return bool(seekable is not None and seekable())


def _encode_body(source: BinaryIO, sink: BinaryIO, buf: bytearray, line_width: int) -> int:
    lines = LineWriter(sink, line_width)
    encoder = Base64StreamEncoder(lines)
    size = 0
    for chunk in read_chunks(source, buf):
        size += len(chunk)
        encoder.write(chunk)
    encoder.close()
    lines.flush()
    log.debug("Encoded %d bytes into %d lines", size, lines.lines_written)
    return size


def encode_raw(
    source: BinaryIO,
    sink: BinaryIO,
    *,
    line_width: int = LINE_WIDTH,
    pool: BufferPool | None = None,
) -> int:
    """Encode ``source`` as a headerless body in a single pass.

    Returns the number of input bytes encoded.
    """
    pool = pool or get_pool()
    with pool.acquire() as buf:
        return _encode_body(source, sink, buf, line_width)


def encode_framed(
    source: BinaryIO,
    sink: BinaryIO,
    filename: str,
    *,
    line_width: int = LINE_WIDTH,
    pool: BufferPool | None = None,
    spool_max_memory: int = SPOOL_MAX_MEMORY,
) -> Measurement:
    """Encode ``source`` as a framed document named ``filename``.

    Args:
        source: Binary input. Seekable sources are rewound to their starting
            position after measuring; others are spooled.
        sink: Binary output. Receives the header in one write, then the body.
        filename: Name recorded in the header. Control characters and
            surrounding whitespace are dropped.
        line_width: Body symbols per line.
        pool: Buffer pool (defaults to the process-wide one).
        spool_max_memory: In-memory spool limit for non-seekable sources.

    Returns:
        The Measurement written into the header.

    Raises:
        ValueError: If the filename is empty, contains a path separator, or
            is not encodable as UTF-8. Raised before ``source`` is read.
        OSError: On any read or write failure.
    """
    name = header_filename(filename)

    pool = pool or get_pool()
    with pool.acquire() as buf, ExitStack() as stack:
        if _is_seekable(source):
            start = source.tell()
            result = measure(source, buf)
            source.seek(start)
            body = source
        else:
            body = stack.enter_context(tempfile.SpooledTemporaryFile(max_size=spool_max_memory))
            result = measure(source, buf, copy_to=body)
            body.seek(0)
            log.debug("Spooled %d bytes of non-seekable input", result.size)

        header = Header(filename=name, size=result.size, digest=result.hexdigest)
        sink.write(header.to_bytes())
        _encode_body(body, sink, buf, line_width)

    log.info("Encoded %s (%d bytes, sha256 %s)", name, result.size, result.hexdigest)
    return result
