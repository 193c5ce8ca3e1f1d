"""
Internal encoded-document engine.

Framed form: filename / size / SHA-256 header, blank line, 64-column base64.
Raw form: the base64 body alone, for interop with plain base64 tools.
"""

from b64plus._format.spec import (
    FormatError,
    Header,
    InvalidEncodingError,
    MalformedHeaderError,
)
from b64plus._format.writer import (
    Base64StreamEncoder,
    LineWriter,
    encode_framed,
    encode_raw,
)
from b64plus._format.reader import (
    Base64StreamDecoder,
    DecodeResult,
    decode_framed,
    decode_raw,
    open_in_directory,
    read_header,
)
