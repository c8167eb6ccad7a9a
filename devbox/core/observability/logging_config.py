"""
Process-wide logging setup for the devbox CLI.

``devbox.main`` calls ``setup_logging`` once; every module logs through
``logging.getLogger(__name__)``.

Console level: --debug / --verbose / --quiet, else ``DEVBOX_LOG_LEVEL``,
else WARNING. ``DEVBOX_LOG_FILE`` adds a file handler whose level comes
from ``DEVBOX_LOG_FILE_LEVEL`` (console level when unset).
"""

from __future__ import annotations

import logging
import sys

# (highest level the format applies to, format, datefmt); first match wins
_CONSOLE_FORMATS = (
    (logging.DEBUG, "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d  %(message)s", "%H:%M:%S"),
    (logging.INFO, "%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
)
_PLAIN_FORMAT = "%(message)s"

_FILE_FORMAT = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d  %(message)s"
_FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"

_NOISY_LOGGERS = ("urllib3",)


def _console_formatter(level: int) -> logging.Formatter:
    for limit, fmt, datefmt in _CONSOLE_FORMATS:
        if level <= limit:
            return logging.Formatter(fmt, datefmt=datefmt)
    return logging.Formatter(_PLAIN_FORMAT)


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
) -> None:
    """Replace the root logger's handlers with a console (and optional file) handler.

    Args:
        level: Console level name.
        log_file: Also log to this file.
        log_file_level: Level for the file; defaults to ``level``.
        quiet_third_party: Hold library loggers at WARNING unless debugging.
    """
    console_level = _parse_level(level)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(_console_formatter(console_level))
    handlers: list[logging.Handler] = [console]

    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(file_level)
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_FILE_DATEFMT))
        handlers.append(file_handler)

    root = logging.getLogger()
    root.handlers.clear()
    for handler in handlers:
        root.addHandler(handler)
    # the root must pass records down to the most verbose handler
    root.setLevel(min(h.level for h in handlers))

    if quiet_third_party and console_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def _parse_level(level: str | None) -> int:
    """Level name to number; unknown or empty names mean WARNING."""
    if not level:
        return logging.WARNING
    value = logging.getLevelName(level.upper())
    return value if isinstance(value, int) else logging.WARNING
