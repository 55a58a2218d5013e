"""Utility modules for logging, amounts, crypto and cancellation."""

from utils.cancellation import CancellationToken
from utils.logging_config import get_logger, setup_logging

__all__ = ["setup_logging", "get_logger", "CancellationToken"]
