"""Packet chunking for transmission."""

import math
from dataclasses import dataclass
from typing import List

from .frames import MAX_CHUNKS, MAX_PAYLOAD, data_frame


@dataclass(frozen=True)
class Chunk:
    """A single slice of an outbound packet."""
    seq: int  # 0-based chunk index
    total: int  # Total number of chunks in the packet
    payload: bytes  # At most MAX_PAYLOAD bytes

    def __post_init__(self):
        if not 0 <= self.seq < self.total:
            raise ValueError(f"Invalid chunk index {self.seq}/{self.total}")
        if len(self.payload) > MAX_PAYLOAD:
            raise ValueError(f"Chunk payload too large: {len(self.payload)} bytes")

    def encode(self) -> bytes:
        """Encode chunk as a DATA frame."""
        return data_frame(self.seq, self.total, self.payload)


def chunk_count(size: int, chunk_size: int = MAX_PAYLOAD) -> int:
    """Number of chunks needed for a payload of the given size."""
    return max(1, math.ceil(size / chunk_size))


def split_payload(data: bytes, chunk_size: int = MAX_PAYLOAD) -> List[Chunk]:
    """
    Split a payload into chunks.

    An empty payload still produces exactly one zero-length chunk.

    Args:
        data: Packet payload
        chunk_size: Maximum bytes per chunk

    Returns:
        Ordered list of chunks

    Raises:
        ValueError: If the payload needs more than MAX_CHUNKS chunks
    """
    if not 0 < chunk_size <= MAX_PAYLOAD:
        raise ValueError(f"Chunk size must be 1-{MAX_PAYLOAD}, got {chunk_size}")

    total = chunk_count(len(data), chunk_size)
    if total > MAX_CHUNKS:
        raise ValueError(
            f"Payload of {len(data)} bytes needs {total} chunks, maximum is {MAX_CHUNKS}"
        )

    chunks = []
    for i in range(total):
        start = i * chunk_size
        chunks.append(Chunk(seq=i, total=total, payload=bytes(data[start:start + chunk_size])))

    return chunks
