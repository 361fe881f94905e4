"""LoRa link protocol implementation."""

from .frames import (
    Frame,
    FrameType,
    FrameDecodeError,
    MAX_PAYLOAD,
    MAX_CHUNKS,
    crc8,
    encode_frame,
    decode_frame,
)
from .chunking import Chunk, split_payload
from .stream import FrameStream
from .transmitter import Transmitter, TransmitterState, CompletionMode
from .reassembly import Receiver, PacketReassembly

__all__ = [
    "Frame",
    "FrameType",
    "FrameDecodeError",
    "MAX_PAYLOAD",
    "MAX_CHUNKS",
    "crc8",
    "encode_frame",
    "decode_frame",
    "Chunk",
    "split_payload",
    "FrameStream",
    "Transmitter",
    "TransmitterState",
    "CompletionMode",
    "Receiver",
    "PacketReassembly",
]
