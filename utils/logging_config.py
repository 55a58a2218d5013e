"""Logging configuration for invoice submission."""

import logging
import sys
from pathlib import Path

from config import Config

# Third-party loggers that report every HTTP request at INFO
NOISY_LOGGERS = ("httpx", "httpcore")


def setup_logging(
    log_file: str | None = None,
    log_level: str | None = None,
    verbose: bool = False,
) -> None:
    """
    Configure console and file logging for a submission run.

    The file handler always records DEBUG so vendor calls can be traced after
    the fact; the console stays at INFO unless ``verbose`` is set.

    Args:
        log_file: Path to log file (defaults to Config.LOG_FILE)
        log_level: Root logging level (defaults to Config.LOG_LEVEL)
        verbose: Echo DEBUG records to the console
    """
    log_file = log_file or Config.LOG_FILE
    log_level = (log_level or Config.LOG_LEVEL).upper()

    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else getattr(logging, log_level, logging.INFO))
    root.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(levelname)s - %(message)s", datefmt="%H:%M:%S")
    )
    root.addHandler(console_handler)

    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"
        )
    )
    root.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root.info(
        f"Logging initialized: level={log_level}, file={log_path}, "
        f"environment={Config.CURRENT_ENVIRONMENT or 'defaults'}"
    )


def get_logger(name: str) -> logging.Logger:
    """Module logger; handlers are attached to the root by setup_logging."""
    return logging.getLogger(name)
