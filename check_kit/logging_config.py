"""
Logging for check-kit.

check-kit runs inside other people's command-line tools, so it never prints on
its own: the ``check_kit`` logger carries a NullHandler and every module logs
through a child of it. A host tool that wants check-kit's diagnostics calls
enable_logging(). Users can also get them for a single run by setting
CHECK_KIT_DEBUG=1 or CHECK_KIT_LOG_LEVEL, which check() honours on each call.
"""

from __future__ import annotations

import logging
import os
import sys
import threading
from pathlib import Path
from typing import Mapping, Optional, TextIO, Union

LOGGER_NAME = "check_kit"
DEBUG_ENV = "CHECK_KIT_DEBUG"
LEVEL_ENV = "CHECK_KIT_LOG_LEVEL"

CONSOLE_FORMAT = "check-kit %(levelname)s: %(message)s"
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

logging.getLogger(LOGGER_NAME).addHandler(logging.NullHandler())

# Handlers added by enable_logging(); host-installed handlers are never touched
_installed: list[logging.Handler] = []
_lock = threading.Lock()


def _parse_level(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).strip().upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level}")
    return value


def enable_logging(
    level: Union[str, int] = "INFO",
    stream: Optional[TextIO] = None,
    log_file: Optional[str] = None,
    propagate: bool = False,
) -> logging.Logger:
    """
    Show check-kit's log records, for host tools with no logging setup of their own.

    Calling it again replaces the handlers from the previous call.

    Args:
        level: Minimum level, as a name ("DEBUG") or a logging constant
        stream: Console stream (stderr if None)
        log_file: Also append records to this file
        propagate: Pass records on to the root logger's handlers too

    Returns:
        The check_kit logger

    Raises:
        ValueError: If level is not a known level name
    """
    numeric_level = _parse_level(level)
    logger = logging.getLogger(LOGGER_NAME)

    with _lock:
        _remove_installed(logger)

        console = logging.StreamHandler(stream if stream is not None else sys.stderr)
        console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        _installed.append(console)

        if log_file:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
            file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
            _installed.append(file_handler)

        for handler in _installed:
            logger.addHandler(handler)
        logger.setLevel(numeric_level)
        logger.propagate = propagate

    return logger


def disable_logging() -> None:
    """Remove the handlers enable_logging() added and restore the defaults."""
    logger = logging.getLogger(LOGGER_NAME)
    with _lock:
        _remove_installed(logger)
        logger.setLevel(logging.NOTSET)
        logger.propagate = True


def _remove_installed(logger: logging.Logger) -> None:
    while _installed:
        handler = _installed.pop()
        logger.removeHandler(handler)
        handler.close()


def level_from_env(env: Optional[Mapping[str, str]] = None) -> Optional[int]:
    """
    Log level requested through the environment, or None.

    CHECK_KIT_DEBUG=1 wins over CHECK_KIT_LOG_LEVEL. Unknown level names are ignored.
    """
    if env is None:
        env = os.environ

    if env.get(DEBUG_ENV, "0") == "1":
        return logging.DEBUG

    name = env.get(LEVEL_ENV)
    if name:
        try:
            return _parse_level(name)
        except ValueError:
            return None
    return None


def enable_logging_from_env(env: Optional[Mapping[str, str]] = None) -> bool:
    """
    Turn on console output when the environment asks for it.

    Does nothing when enable_logging() already ran, so a host tool's choice
    is kept.

    Returns:
        True if handlers were installed by this call
    """
    level = level_from_env(env)
    if level is None or _installed:
        return False
    enable_logging(level)
    return True
