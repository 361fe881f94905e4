"""Network layer for LoRa link daemon."""

from .base import Transport, LoopbackTransport, run_until_idle
from .serial_link import SerialLink, SerialLinkConfig

__all__ = [
    "Transport",
    "LoopbackTransport",
    "run_until_idle",
    "SerialLink",
    "SerialLinkConfig",
]
