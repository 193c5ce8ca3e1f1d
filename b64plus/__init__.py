"""
b64plus: streaming base64 with a filename/size/SHA-256 header.

Architecture:
    Framed:  <filename>\\n<size>\\n<sha256 hex>\\n\\n + 64-column base64 body
    Raw:     64-column base64 body only (plain `base64` interop)
    Bridge:  b64plus / b64plus -d / b64plus -l CLI commands
"""

__version__ = "0.1.0"

# Body layout
LINE_WIDTH = 64
LINE_TERMINATOR = b"\n"
LINE_SEPARATORS = b"\r\n"  # stripped from the body before decoding

# Streaming
BUFFER_SIZE = 4 * 1024 * 1024  # 4MB read chunks, shared through the buffer pool
SPOOL_MAX_MEMORY = 64 * 1024 * 1024  # non-seekable input spills to disk past this

# Header
DIGEST_ALGORITHM = "sha256"
DIGEST_HEX_LENGTH = 64
MAX_HEADER_LINE_BYTES = 4096
DEFAULT_INPUT_NAME = "stdin"
