"""Reliable chunked packet transfer over LoRa serial modules."""

from .link import LinkAdapter, FramingMode
from .protocol import CompletionMode
from .utils.timer import LoopTimer

__version__ = "0.1.0"

__all__ = [
    "LinkAdapter",
    "FramingMode",
    "CompletionMode",
    "LoopTimer",
]
