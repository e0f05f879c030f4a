"""
Logging setup and the severity-tagged log sink.

The engine logs through module-level loggers. The GUI collaborator writes
through LogSink, which accepts (message, severity) pairs and forwards them to
the same logging tree so every entry ends up in one timestamped stream.
"""

import logging
from pathlib import Path
from typing import Optional

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
VERBOSE_LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_SEVERITY_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "SUCCESS": SUCCESS,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
}


def severity_to_level(severity: str) -> int:
    """
    Map a severity tag to a logging level.

    Unknown tags map to INFO.

    Example:
        >>> severity_to_level("success")
        25
    """
    return _SEVERITY_LEVELS.get((severity or "").upper(), logging.INFO)


def configure_logging(
    log_file: Optional[Path] = None,
    level: int = logging.INFO,
    verbose: bool = False,
):
    """
    Configure the root logger for console and optional file output.

    Args:
        log_file: File receiving the same stream (parent directory is created)
        level: Minimum level
        verbose: Include logger names and lower the level to DEBUG
    """
    if verbose:
        level = logging.DEBUG
    format_str = VERBOSE_LOG_FORMAT if verbose else LOG_FORMAT

    handlers = [logging.StreamHandler()]
    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        level=level,
        format=format_str,
        datefmt=DATE_FORMAT,
        handlers=handlers,
        force=True,  # Reconfigure if already configured
    )


class LogSink:
    """
    Callable accepting (message, severity).

    Example:
        >>> sink = LogSink()
        >>> sink("Installed Git", "SUCCESS")
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger("winsetupkit")

    def __call__(self, message: str, severity: str = "INFO"):
        self.logger.log(severity_to_level(severity), message)

    def success(self, message: str):
        self.logger.log(SUCCESS, message)
