"""LoRa link frame definitions and binary codec."""

from dataclasses import dataclass
from enum import IntEnum


class FrameType(IntEnum):
    """LoRa link frame types."""
    DATA = 0x10
    ACK = 0x20
    NACK = 0x30  # Reserved, never emitted
    PACKET_ACK = 0x50


HEADER_SIZE = 4  # kind, seq, total, len
CRC_SIZE = 1
MAX_PAYLOAD = 26
MIN_FRAME_SIZE = HEADER_SIZE + CRC_SIZE
MAX_FRAME_SIZE = HEADER_SIZE + MAX_PAYLOAD + CRC_SIZE
MAX_CHUNKS = 255  # total is a single byte

CRC8_POLY = 0x31


class FrameDecodeError(ValueError):
    """Raised when raw bytes do not hold a valid frame."""


def crc8(data: bytes) -> int:
    """
    Calculate CRC-8 checksum.

    Polynomial 0x31 (x^8 + x^5 + x^4 + 1), initial value 0x00,
    MSB-first, no reflection and no final XOR.

    Args:
        data: Bytes to checksum

    Returns:
        Checksum value (0-255)
    """
    crc = 0x00
    for byte in data:
        crc ^= byte
        for _ in range(8):
            if crc & 0x80:
                crc = ((crc << 1) ^ CRC8_POLY) & 0xFF
            else:
                crc = (crc << 1) & 0xFF
    return crc


@dataclass(frozen=True)
class Frame:
    """Represents a decoded link frame."""
    kind: FrameType
    seq: int
    total: int
    payload: bytes = b""

    def encode(self) -> bytes:
        """Encode frame to wire bytes."""
        return encode_frame(self.kind, self.seq, self.total, self.payload)

    @property
    def size(self) -> int:
        """Size of the frame on the wire."""
        return HEADER_SIZE + len(self.payload) + CRC_SIZE


def encode_frame(kind: FrameType, seq: int, total: int, payload: bytes = b"") -> bytes:
    """
    Build a wire frame.

    Format: [kind][seq][total][len][payload...][crc]

    Payloads longer than MAX_PAYLOAD are truncated. Chunking upstream
    must never rely on this.

    Args:
        kind: Frame type
        seq: Sequence number (0-255)
        total: Total chunk count (0-255)
        payload: Optional payload bytes

    Returns:
        Encoded frame with trailing CRC-8
    """
    if not 0 <= seq <= 0xFF:
        raise ValueError(f"Sequence number must be 0-255, got {seq}")
    if not 0 <= total <= 0xFF:
        raise ValueError(f"Total must be 0-255, got {total}")

    body = bytes(payload[:MAX_PAYLOAD])
    raw = bytes([int(kind), seq, total, len(body)]) + body
    return raw + bytes([crc8(raw)])


def decode_frame(raw: bytes) -> Frame:
    """
    Decode wire bytes into a frame.

    Only the first HEADER_SIZE + len + CRC_SIZE bytes are inspected;
    anything after that is left to the caller.

    Args:
        raw: Received bytes starting at a frame boundary

    Returns:
        Decoded frame

    Raises:
        FrameDecodeError: If the bytes are too short, the declared length
            is out of range, the checksum does not match or the kind is unknown
    """
    if len(raw) < MIN_FRAME_SIZE:
        raise FrameDecodeError(f"Frame too short: {len(raw)} bytes")

    length = raw[3]
    if length > MAX_PAYLOAD:
        raise FrameDecodeError(f"Declared payload length {length} exceeds {MAX_PAYLOAD}")

    end = HEADER_SIZE + length
    if len(raw) < end + CRC_SIZE:
        raise FrameDecodeError(f"Truncated frame: need {end + CRC_SIZE} bytes, got {len(raw)}")

    if crc8(raw[:end]) != raw[end]:
        raise FrameDecodeError("Checksum mismatch")

    try:
        kind = FrameType(raw[0])
    except ValueError:
        raise FrameDecodeError(f"Unknown frame type 0x{raw[0]:02X}") from None

    return Frame(kind=kind, seq=raw[1], total=raw[2], payload=bytes(raw[HEADER_SIZE:end]))


def data_frame(seq: int, total: int, payload: bytes) -> bytes:
    """Encode a DATA frame."""
    return encode_frame(FrameType.DATA, seq, total, payload)


def ack_frame(seq: int, total: int) -> bytes:
    """Encode an ACK frame for a received chunk."""
    return encode_frame(FrameType.ACK, seq, total)


def packet_ack_frame(total: int) -> bytes:
    """Encode a PACKET_ACK frame confirming full reassembly."""
    return encode_frame(FrameType.PACKET_ACK, 0, total)
