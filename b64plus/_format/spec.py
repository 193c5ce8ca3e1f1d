"""
Encoded document format v1.

Layout (framed):
    report.pdf                   <- Filename (bare name, no directories)
    48213                        <- Size of the original bytes, decimal ASCII
    9f86d081884c7d65...          <- SHA-256 of the original bytes, lowercase hex
                                 <- Blank line, end of header
    JVBERi0xLjQKJcfsj6IKNSAwIG9i...   <- base64 body, 64 symbols per line
    ...
    Ag==                         <- Last line: 1..64 symbols, still terminated

Layout (raw):
    Body only. Identical to `base64 -w 64` output, so any base64 tool can
    decode it once the line breaks are removed.

Body Rules:
    - Standard alphabet (A-Z a-z 0-9 + /), '=' padding on the final quantum only
    - Every line ends with a single "\\n"; readers also accept "\\r\\n"
    - Empty input produces an empty body (no lines at all)

Header Rules:
    - Exactly four "\\n"-terminated lines in fixed order, the fourth blank
    - Size and digest describe the ORIGINAL bytes, not the encoded text
    - Filename control characters and surrounding whitespace are dropped on
      write; readers strip each line and reject names
      containing path separators (the decoder creates a file by that name)
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from b64plus import DIGEST_HEX_LENGTH

# Header field names, in wire order
FIELD_FILENAME = "filename"
FIELD_SIZE = "size"
FIELD_DIGEST = "digest"
FIELD_SEPARATOR = "separator"
HEADER_FIELDS = (FIELD_FILENAME, FIELD_SIZE, FIELD_DIGEST, FIELD_SEPARATOR)

_SIZE_RE = re.compile(r"^[0-9]+$")
_DIGEST_RE = re.compile(r"^[0-9a-fA-F]{%d}$" % DIGEST_HEX_LENGTH)

_RESERVED_NAMES = frozenset({"", ".", ".."})


class FormatError(ValueError):
    """Encoded input does not follow the document format."""


class MalformedHeaderError(FormatError):
    """A header line is missing, truncated, or invalid."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"malformed header ({field}): {message}")
        self.field = field


class InvalidEncodingError(FormatError):
    """The body contains a symbol or padding the base64 alphabet does not allow."""


def sanitize_filename(name: str) -> str:
    """Drop control characters so the name fits on one header line."""
    return "".join(c for c in name if c >= " " and c != "\x7f")


def is_bare_filename(name: str) -> bool:
    return name not in _RESERVED_NAMES and "/" not in name and "\\" not in name


def header_filename(name: str) -> str:
    """Normalize a name for the header the same way readers will see it.

    Readers strip surrounding whitespace from every header line, so the
    writer strips it too; the result must still be a bare, UTF-8 name.

    Raises:
        ValueError: If nothing usable is left or the name is not encodable.
    """
    clean = sanitize_filename(name).strip()
    if not is_bare_filename(clean):
        raise ValueError(f"Filename must be a bare file name, got {name!r}")
    try:
        clean.encode("utf-8")
    except UnicodeEncodeError:
        raise ValueError(f"Filename is not encodable as UTF-8: {name!r}")
    return clean


def validate_filename(name: str) -> str:
    """Reject names that would escape the output directory."""
    if not is_bare_filename(name):
        raise MalformedHeaderError(
            FIELD_FILENAME, f"unsafe filename {name!r} (must be a bare file name)"
        )
    return name


def parse_size(text: str) -> int:
    if not _SIZE_RE.match(text):
        raise MalformedHeaderError(FIELD_SIZE, f"expected a decimal byte count, got {text!r}")
    return int(text)


def parse_digest(text: str) -> str:
    if not _DIGEST_RE.match(text):
        raise MalformedHeaderError(
            FIELD_DIGEST, f"expected {DIGEST_HEX_LENGTH} hex digits, got {text!r}"
        )
    return text.lower()


@dataclass(frozen=True)
class Header:
    """Framed document header.

    Attributes:
        filename: Name the decoder writes the recovered bytes to.
        size: Length of the original byte stream.
        digest: SHA-256 of the original byte stream, lowercase hex.
    """

    filename: str
    size: int
    digest: str

    def to_bytes(self) -> bytes:
        """Serialize the four header lines (the last one blank)."""
        return f"{self.filename}\n{self.size}\n{self.digest}\n\n".encode("utf-8")
