"""
Optional TOML configuration.

Lookup order: explicit path, $B64PLUS_CONFIG, ~/.config/b64plus/config.toml.
A missing file means defaults; an unreadable one is logged and ignored.

    line_width = 64
    buffer_size = 4194304
    spool_max_memory = 67108864
    log_level = "WARNING"
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

from b64plus import BUFFER_SIZE, LINE_WIDTH, SPOOL_MAX_MEMORY

log = logging.getLogger(__name__)

CONFIG_ENV_VAR = "B64PLUS_CONFIG"

DEFAULT_CONFIG: dict[str, Any] = {
    "line_width": LINE_WIDTH,
    "buffer_size": BUFFER_SIZE,
    "spool_max_memory": SPOOL_MAX_MEMORY,
    "log_level": "WARNING",
}

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


def default_config_path() -> Path:
    env = os.environ.get(CONFIG_ENV_VAR, "").strip()
    if env:
        return Path(env).expanduser()
    return Path.home() / ".config" / "b64plus" / "config.toml"


def _validate(config: dict[str, Any]) -> None:
    for key in ("line_width", "buffer_size", "spool_max_memory"):
        val = config[key]
        if isinstance(val, bool) or not isinstance(val, int) or val < 1:
            raise ValueError(f"Config {key} must be a positive integer, got {val!r}")
    level = config["log_level"]
    if not isinstance(level, str) or level.upper() not in _LOG_LEVELS:
        raise ValueError(
            f"Config log_level must be one of {', '.join(sorted(_LOG_LEVELS))}, got {level!r}"
        )
    config["log_level"] = level.upper()


def load_config(config_path: Path | str | None = None) -> dict[str, Any]:
    """Load config from a TOML file, falling back to defaults.

    Raises:
        ValueError: If a known key has an invalid value.
    """
    config = dict(DEFAULT_CONFIG)

    path = Path(config_path) if config_path else default_config_path()
    if path.is_file():
        try:
            import tomllib
        except ImportError:
            import tomli as tomllib

        try:
            with open(path, "rb") as f:
                file_config = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            log.warning("Failed to load config from %s: %s", path, e)
            return config

        for key, val in file_config.items():
            if key not in DEFAULT_CONFIG:
                log.warning("Ignoring unknown config key %r in %s", key, path)
                continue
            config[key] = val
        log.debug("Loaded config from %s", path)

    _validate(config)
    return config
