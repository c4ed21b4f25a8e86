"""
Logging and configuration helpers shared by the library and the sample program.

Library modules only ever call ``get_logger(__name__)``; nothing is printed
until an application calls ``setup_logging(enabled=True, ...)``. ONNX
Runtime's own messages are not routed through here, their verbosity comes
from ``Environment(log_level=...)``.
"""

import argparse
import logging
import os
from datetime import datetime
from typing import List, Optional

PACKAGE_LOGGER = "ortrunner"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DIR = "logs"


def _level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {name}")
    return level


def _default_log_file() -> str:
    os.makedirs(LOG_DIR, exist_ok=True)
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return os.path.join(LOG_DIR, f"ortrunner_{stamp}.log")


def _handlers(
    enable_console: bool, log_file_path: Optional[str]
) -> List[logging.Handler]:
    handlers: List[logging.Handler] = []
    if enable_console:
        handlers.append(logging.StreamHandler())
    if log_file_path is not None:
        handlers.append(logging.FileHandler(log_file_path))

    formatter = logging.Formatter(LOG_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def setup_logging(
    log_level: str = "INFO",
    log_to_file: bool = False,
    log_file_path: Optional[str] = None,
    enable_console: bool = True,
    enabled: bool = False,
) -> logging.Logger:
    """
    Configure the ``ortrunner`` logger for an application.

    The root logger is left alone. Calling it again replaces the handlers
    installed by the previous call. With ``enabled=False`` the package logger
    is silenced instead.

    Args:
        log_level: Name of the Python logging level, e.g. "DEBUG".
        log_to_file: Also write to ``log_file_path``, or to a timestamped
            file under ``logs/`` when no path is given.
        enable_console: Write to stderr.
        enabled: Master switch.
    """
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.disabled = not enabled
    if not enabled:
        return package_logger

    if log_to_file and log_file_path is None:
        log_file_path = _default_log_file()

    package_logger.setLevel(_level(log_level))
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    for handler in _handlers(enable_console, log_file_path if log_to_file else None):
        package_logger.addHandler(handler)
    package_logger.propagate = False

    package_logger.info("Logging level %s%s", log_level.upper(),
                        f", writing to {log_file_path}" if log_to_file else "")
    return package_logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Logger for a module, e.g. ``get_logger(__name__)``."""
    return logging.getLogger(name or PACKAGE_LOGGER)


def disable_logging(logger_name: Optional[str] = None) -> None:
    """Silence the whole package, or a single module such as ``ortrunner.runner``."""
    logging.getLogger(logger_name or PACKAGE_LOGGER).disabled = True


def enable_logging(logger_name: Optional[str] = None, level: str = "INFO") -> None:
    target = logging.getLogger(logger_name or PACKAGE_LOGGER)
    target.disabled = False
    target.setLevel(_level(level))


def merge_config(args: argparse.Namespace, config: dict) -> dict:
    """
    Overlay command-line values on a loaded config.

    Only arguments the user actually gave (not None) win; ``--config`` itself
    is not copied.
    """
    merged = dict(config)
    merged.update(
        {k: v for k, v in vars(args).items() if v is not None and k != "config"}
    )
    return merged
