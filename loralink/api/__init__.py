"""REST API for LoRa link daemon."""

from .routes import create_app
from .schemas import (
    PacketRequest,
    PacketAccepted,
    PacketResponse,
    StatusResponse,
)

__all__ = [
    "create_app",
    "PacketRequest",
    "PacketAccepted",
    "PacketResponse",
    "StatusResponse",
]
