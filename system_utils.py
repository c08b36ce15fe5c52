"""
Logging utilities for the EmmyLua bridge

The language server speaks LSP over the host's stdio pipes, so console logging
goes to stderr and stdout is never written to.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from constants import LOG_DIR

GLOBAL_LOG_LEVEL = logging.INFO


class MicrosecondFormatter(logging.Formatter):
    """Custom formatter that provides microsecond precision timestamps"""
    def formatTime(self, record, datefmt=None):
        dt = datetime.fromtimestamp(record.created)
        return dt.strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]  # Keep 3 decimal places (milliseconds)


def setup_logging(
    logger: logging.Logger | None = None,
    log_file_path: Path | None = None,
    level: int = GLOBAL_LOG_LEVEL,
) -> logging.Logger:
    """Attach file and stderr handlers with millisecond timestamps

    Args:
        logger: Logger to configure, defaults to the root logger
        log_file_path: Log file, defaults to ~/.local/share/emmylua-bridge/logs/bridge.log
        level: Level for the logger and both handlers

    Returns:
        The configured logger
    """
    if logger is None:
        logger = logging.getLogger()

    # Prevent duplicate handlers
    if logger.handlers:
        logger.handlers.clear()

    logger.setLevel(level)

    detailed_formatter = MicrosecondFormatter(
        "%(asctime)s [%(levelname)8s] %(name)s.%(funcName)s:%(lineno)d - %(message)s"
    )
    console_formatter = MicrosecondFormatter("%(asctime)s [%(levelname)s] %(message)s")

    if log_file_path is None:
        log_file_path = LOG_DIR / "bridge.log"
    log_file_path.parent.mkdir(parents=True, exist_ok=True)

    file_handler = logging.FileHandler(log_file_path, mode="a")
    file_handler.setLevel(level)
    file_handler.setFormatter(detailed_formatter)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(console_formatter)

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    logger.debug(f"Log file: {log_file_path}")
    return logger
