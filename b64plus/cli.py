"""
b64plus CLI: encode stdin as framed base64, or decode it back.

Usage:
  b64plus [NAME] < file > file.b64   - Encode with filename/size/SHA-256 header
  b64plus -d < file.b64              - Decode into ./<filename>, report integrity
  b64plus -l < file > file.b64       - Encode without header (plain base64, 64 cols)
  b64plus -d -l < file.b64 > file    - Decode headerless input to stdout

Decode reports three lines on stderr:
  Original size: <n> bytes
  SHA256: <hex of decoded bytes>
  Matches original: true|false
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, BinaryIO, Callable, TextIO

from b64plus import __version__
from b64plus._format.reader import decode_framed, decode_raw, open_in_directory
from b64plus._format.writer import encode_framed, encode_raw
from b64plus.config import DEFAULT_CONFIG, load_config
from b64plus.naming import resolve_input_name
from b64plus.pool import get_pool


def _log_level(verbose: int, default_level: str) -> int:
    if verbose >= 2:
        return logging.DEBUG
    if verbose == 1:
        return logging.INFO
    return getattr(logging, default_level)


def _configure_logging(verbose: int, stream: TextIO) -> None:
    logging.basicConfig(
        level=_log_level(verbose, DEFAULT_CONFIG["log_level"]),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        stream=stream,
    )


def cmd_encode(
    args: argparse.Namespace,
    stdin: BinaryIO,
    stdout: BinaryIO,
    config: dict[str, Any],
    resolve_name: Callable[[BinaryIO], str],
) -> None:
    """Encode stdin to stdout, framed unless --legacy."""
    pool = get_pool(config["buffer_size"])
    if args.legacy:
        encode_raw(stdin, stdout, line_width=config["line_width"], pool=pool)
        return

    name = Path(args.name).name if args.name else resolve_name(stdin)
    encode_framed(
        stdin,
        stdout,
        name,
        line_width=config["line_width"],
        pool=pool,
        spool_max_memory=config["spool_max_memory"],
    )


def cmd_decode(
    args: argparse.Namespace,
    stdin: BinaryIO,
    stdout: BinaryIO,
    stderr: TextIO,
    config: dict[str, Any],
) -> None:
    """Decode stdin. Framed input goes to a file named by its header."""
    pool = get_pool(config["buffer_size"])
    if args.legacy:
        decode_raw(stdin, stdout, pool=pool)
        return

    result = decode_framed(stdin, open_in_directory(args.directory), pool=pool)
    print(f"Original size: {result.reported_size} bytes", file=stderr)
    print(f"SHA256: {result.computed_digest}", file=stderr)
    print(f"Matches original: {'true' if result.matches else 'false'}", file=stderr)


def main(
    argv: list[str] | None = None,
    *,
    stdin: BinaryIO | None = None,
    stdout: BinaryIO | None = None,
    stderr: TextIO | None = None,
    resolve_name: Callable[[BinaryIO], str] = resolve_input_name,
) -> None:
    parser = argparse.ArgumentParser(
        prog="b64plus",
        description="Streaming base64 with a filename/size/SHA-256 header.",
    )
    parser.add_argument("-d", "--decode", action="store_true", help="decode mode")
    parser.add_argument("-l", "--legacy", action="store_true", help="legacy mode (no headers)")
    parser.add_argument(
        "-C", "--directory", default=".",
        help="Directory for the decoded file (default: current directory)",
    )
    parser.add_argument("--config", help="Path to a TOML config file")
    parser.add_argument(
        "-v", "--verbose", action="count", default=0,
        help="Log progress to stderr (-vv for debug)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("name", nargs="?", help="Filename to record in the header")

    args = parser.parse_args(argv)

    stdin = stdin if stdin is not None else sys.stdin.buffer
    stdout = stdout if stdout is not None else sys.stdout.buffer
    stderr = stderr if stderr is not None else sys.stderr

    # Handlers first so config warnings are formatted; the level follows the config
    _configure_logging(args.verbose, stderr)
    try:
        config = load_config(args.config)
    except ValueError as e:
        print(f"Error: {e}", file=stderr)
        sys.exit(1)
    logging.getLogger().setLevel(_log_level(args.verbose, config["log_level"]))

    if args.decode:
        try:
            cmd_decode(args, stdin, stdout, stderr, config)
        except (OSError, ValueError) as e:
            print(f"Error decoding: {e}", file=stderr)
            sys.exit(1)
        return

    try:
        cmd_encode(args, stdin, stdout, config, resolve_name)
    except (OSError, ValueError) as e:
        print(f"Error encoding: {e}", file=stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
