"""Utility modules for LoRa link daemon."""

from .logger import setup_logging, get_logger
from .timer import Timer, LoopTimer
from .callbacks import notify

__all__ = [
    "setup_logging",
    "get_logger",
    "Timer",
    "LoopTimer",
    "notify",
]
