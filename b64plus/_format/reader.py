"""
Reader: parses framed headers and streams base64 bodies back to bytes.

Pipeline:
    source -> read_header (framed only) -> strip "\\r\\n" -> Base64StreamDecoder
           -> [SHA-256 accumulator] -> sink

Integrity:
  - The decoder re-hashes everything it writes and reports whether the
    result matches the header digest. A mismatch is a result, not an error:
    the output is still written in full.
  - Bad symbols or misplaced padding abort with InvalidEncodingError.

Safety:
  - Header lines are length-limited (MAX_HEADER_LINE_BYTES)
  - The header filename must be a bare name (no path traversal)
  - open_in_directory() writes atomically, so an aborted decode leaves no file
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import logging
import os
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Callable, ContextManager, Iterator

from b64plus import DIGEST_ALGORITHM, LINE_SEPARATORS, MAX_HEADER_LINE_BYTES
from b64plus._format.spec import (
    FIELD_DIGEST, FIELD_FILENAME, FIELD_SEPARATOR, FIELD_SIZE,
    Header, InvalidEncodingError, MalformedHeaderError,
    parse_digest, parse_size, validate_filename,
)
from b64plus.pool import BufferPool, get_pool, read_chunks

log = logging.getLogger(__name__)

Opener = Callable[[str], ContextManager[BinaryIO]]


def _read_header_line(source: BinaryIO, field: str) -> str:
    line = source.readline(MAX_HEADER_LINE_BYTES + 1)
    if not line.endswith(b"\n"):
        if len(line) > MAX_HEADER_LINE_BYTES:
            raise MalformedHeaderError(field, f"line exceeds {MAX_HEADER_LINE_BYTES} bytes")
        raise MalformedHeaderError(field, "unexpected end of input")
    try:
        return line.decode("utf-8").strip()
    except UnicodeDecodeError:
        raise MalformedHeaderError(field, "line is not valid UTF-8")


def read_header(source: BinaryIO) -> Header:
    """Consume and validate the four header lines of a framed document.

    Raises:
        MalformedHeaderError: If a line is missing, truncated, or invalid.
            ``err.field`` names the line that was expected.
    """
    filename = validate_filename(_read_header_line(source, FIELD_FILENAME))
    size = parse_size(_read_header_line(source, FIELD_SIZE))
    digest = parse_digest(_read_header_line(source, FIELD_DIGEST))
    separator = _read_header_line(source, FIELD_SEPARATOR)
    if separator:
        raise MalformedHeaderError(FIELD_SEPARATOR, f"expected a blank line, got {separator!r}")
    return Header(filename=filename, size=size, digest=digest)


class Base64StreamDecoder:
    """Incremental strict base64 decoder.

    Input must already be free of line separators. Up to three symbols are
    carried between writes; padding is only accepted in the final quantum.
    """

    def __init__(self, sink) -> None:
        self._sink = sink
        self._pending = b""
        self._finished = False
        self._offset = 0
        self.decoded = 0

    def write(self, data: bytes) -> int:
        if not data:
            return 0
        if self._finished:
            raise InvalidEncodingError(f"data after padding at symbol {self._offset}")
        buf = self._pending + data if self._pending else data
        whole = len(buf) - len(buf) % 4
        if whole:
            block = buf[:whole]
            try:
                out = base64.b64decode(block, validate=True)
            except binascii.Error as e:
                raise InvalidEncodingError(
                    f"invalid base64 in symbols {self._offset}-{self._offset + whole}: {e}"
                ) from e
            self._offset += whole
            self._finished = block.endswith(b"=")
            self._sink.write(out)
            self.decoded += len(out)
        self._pending = buf[whole:]
        if self._finished and self._pending:
            raise InvalidEncodingError(f"data after padding at symbol {self._offset}")
        return len(data)

    def close(self) -> None:
        if self._pending:
            raise InvalidEncodingError(
                f"truncated input: {len(self._pending)} trailing symbols "
                f"after symbol {self._offset}"
            )


class _DigestingWriter:
    """Forwards writes to a sink while hashing and counting them."""

    def __init__(self, sink: BinaryIO) -> None:
        self._sink = sink
        self._hash = hashlib.new(DIGEST_ALGORITHM)
        self.size = 0

    def write(self, data: bytes) -> int:
        self._hash.update(data)
        self.size += len(data)
        return self._sink.write(data)

    def hexdigest(self) -> str:
        return self._hash.hexdigest()


def _decode_body(source: BinaryIO, sink, buf: bytearray) -> int:
    decoder = Base64StreamDecoder(sink)
    for chunk in read_chunks(source, buf):
        decoder.write(chunk.tobytes().translate(None, LINE_SEPARATORS))
    decoder.close()
    return decoder.decoded


@dataclass(frozen=True)
class DecodeResult:
    """Outcome of decoding a framed document.

    Attributes:
        filename: Name from the header (the output was written under it).
        reported_size: Size claimed by the header.
        expected_digest: Digest claimed by the header.
        computed_digest: SHA-256 of the bytes actually written.
        size: Number of bytes actually written.
    """

    filename: str
    reported_size: int
    expected_digest: str
    computed_digest: str
    size: int

    @property
    def matches(self) -> bool:
        return hmac.compare_digest(self.computed_digest, self.expected_digest)

    @property
    def size_matches(self) -> bool:
        return self.size == self.reported_size


def decode_raw(
    source: BinaryIO,
    sink: BinaryIO,
    *,
    pool: BufferPool | None = None,
) -> int:
    """Decode a headerless body. Returns the number of bytes written."""
    pool = pool or get_pool()
    with pool.acquire() as buf:
        size = _decode_body(source, sink, buf)
    flush = getattr(sink, "flush", None)
    if flush is not None:
        flush()
    log.debug("Decoded %d bytes", size)
    return size


def decode_framed(
    source: BinaryIO,
    opener: Opener,
    *,
    pool: BufferPool | None = None,
) -> DecodeResult:
    """Decode a framed document and verify its digest.

    Args:
        source: Binary input positioned at the start of the header.
        opener: Called with the header filename; returns a context manager
            yielding the writable sink (see ``open_in_directory``).
        pool: Buffer pool (defaults to the process-wide one).

    Returns:
        DecodeResult. ``result.matches`` is False on a digest mismatch.

    Raises:
        MalformedHeaderError: Bad or truncated header.
        InvalidEncodingError: Bad body symbol or padding.
        OSError: On any read, write or open failure.
    """
    header = read_header(source)
    log.debug("Header: %s, %d bytes, sha256 %s", header.filename, header.size, header.digest)

    pool = pool or get_pool()
    with pool.acquire() as buf, opener(header.filename) as out:
        tee = _DigestingWriter(out)
        _decode_body(source, tee, buf)
        out.flush()

    result = DecodeResult(
        filename=header.filename,
        reported_size=header.size,
        expected_digest=header.digest,
        computed_digest=tee.hexdigest(),
        size=tee.size,
    )
    # Mismatches are reported through the result; callers decide how to surface them
    if not result.matches:
        log.info(
            "Digest mismatch for %s: header %s, decoded %s",
            result.filename, result.expected_digest, result.computed_digest,
        )
    if not result.size_matches:
        log.info(
            "Size mismatch for %s: header %d, decoded %d",
            result.filename, result.reported_size, result.size,
        )
    return result


@contextmanager
def atomic_output(path: str | Path, mode: int = 0o644) -> Iterator[BinaryIO]:
    """Write to a temp file beside ``path`` and rename it into place on success."""
    dir_name = os.path.dirname(os.path.abspath(path)) or "."
    fd, tmp_path = tempfile.mkstemp(dir=dir_name, suffix=".b64plus.tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            yield f
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
    except Exception:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def open_in_directory(directory: str | Path = ".", mode: int = 0o644) -> Opener:
    """Opener that creates the decoded file inside ``directory``."""
    root = Path(directory)

    def opener(name: str) -> ContextManager[BinaryIO]:
        return atomic_output(root / validate_filename(name), mode)

    return opener
