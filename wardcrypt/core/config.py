"""
Persistent command-line preferences.

Stored as simple ``key = value`` lines in
``$XDG_CONFIG_HOME/wardcrypt/config.toml`` (``~/.config/wardcrypt`` when
XDG_CONFIG_HOME is unset). Only account identification and KDF
parameters are kept here; passwords and keys are never written.

Unknown keys and invalid values are skipped on load. Flags given on the
command line always win over stored values.
"""

from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path

from .errors import ConfigurationError
from .kdf import KDF_CHOICES

logger = logging.getLogger("wardcrypt.config")

_CONFIG_DIR = Path(os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config") / "wardcrypt"
_CONFIG_FILE = _CONFIG_DIR / "config.toml"

_STRING_KEYS = ("email", "kdf")
_INT_KEYS = ("kdf_iterations", "kdf_memory", "kdf_parallelism")
CONFIG_KEYS = _STRING_KEYS + _INT_KEYS


def _parse_value(key: str, raw: str) -> str | int | None:
    """Convert a raw value for *key*, returning None if it is invalid."""
    raw = raw.strip()
    if len(raw) >= 2 and raw[0] == raw[-1] and raw[0] in "\"'":
        raw = raw[1:-1]

    if key in _INT_KEYS:
        if not raw.isdigit() or int(raw) < 1:
            return None
        return int(raw)

    if key == "kdf" and raw not in KDF_CHOICES:
        return None
    if key == "email" and ("@" not in raw or any(c.isspace() for c in raw)):
        return None
    return raw


def load_config() -> dict[str, str | int]:
    """Read stored preferences. A missing or unreadable file yields {}."""
    try:
        text = _CONFIG_FILE.read_text(encoding="utf-8")
    except OSError:
        return {}

    config: dict[str, str | int] = {}
    for lineno, line in enumerate(text.splitlines(), start=1):
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, raw = line.partition("=")
        key = key.strip()
        if not sep or key not in CONFIG_KEYS:
            logger.debug("Ignoring config line %d: unknown key %r", lineno, key)
            continue
        value = _parse_value(key, raw)
        if value is None:
            logger.debug("Ignoring config line %d: invalid value for %s", lineno, key)
            continue
        config[key] = value
    return config


def save_config(settings: dict[str, str | int]) -> Path:
    """Write preferences (known keys only) with owner-only permissions.

    Raises ConfigurationError for a value that load_config() would skip.
    """
    for key in CONFIG_KEYS:
        value = settings.get(key)
        if value is not None and _parse_value(key, str(value)) is None:
            raise ConfigurationError(f"Invalid value for {key}: {value!r}")

    _CONFIG_DIR.mkdir(parents=True, exist_ok=True, mode=0o700)

    lines = ["# wardcrypt preferences"]
    for key in CONFIG_KEYS:
        if key not in settings or settings[key] is None:
            continue
        value = settings[key]
        if key in _INT_KEYS:
            lines.append(f"{key} = {int(value)}")
        else:
            lines.append(f'{key} = "{value}"')

    fd = os.open(_CONFIG_FILE, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write("\n".join(lines) + "\n")
    os.chmod(_CONFIG_FILE, 0o600)
    logger.debug("Saved %d preference(s) to %s", len(lines) - 1, _CONFIG_FILE)
    return _CONFIG_FILE


def apply_config_defaults(args: argparse.Namespace, config: dict[str, str | int]) -> None:
    """Fill options the user left unset (None) from stored preferences."""
    for key, value in config.items():
        if getattr(args, key, None) is None:
            setattr(args, key, value)
