"""Frame boundary scanning for coalesced serial reads."""

import logging
from typing import List, Optional

from .frames import (
    CRC_SIZE,
    HEADER_SIZE,
    MAX_FRAME_SIZE,
    MAX_PAYLOAD,
    MIN_FRAME_SIZE,
    Frame,
    FrameDecodeError,
    FrameType,
    decode_frame,
)


logger = logging.getLogger(__name__)

_VALID_KINDS = frozenset(int(kind) for kind in FrameType)


class FrameStream:
    """
    Extracts frames from a byte stream.

    Serial drivers may split one frame across reads or coalesce several
    frames into one. Incoming bytes are buffered and scanned for frame
    boundaries; when the head of the buffer cannot start a valid frame a
    single byte is dropped and scanning resumes. While the head is waiting
    for more bytes, a complete frame found further on takes precedence and
    the bytes before it are dropped.
    """

    def __init__(self, buffer_limit: int = 4 * MAX_FRAME_SIZE):
        """
        Initialize frame stream.

        Args:
            buffer_limit: Maximum bytes held while waiting for a frame to complete
        """
        self.buffer_limit = max(buffer_limit, MAX_FRAME_SIZE)
        self.buffer = bytearray()
        self.dropped_bytes = 0

    def feed(self, data: bytes) -> List[Frame]:
        """
        Add received bytes and return every complete frame found.

        Args:
            data: Received bytes

        Returns:
            List of decoded frames in arrival order
        """
        self.buffer.extend(data)
        frames = []

        while len(self.buffer) >= MIN_FRAME_SIZE:
            if self.buffer[0] not in _VALID_KINDS or self.buffer[3] > MAX_PAYLOAD:
                self._skip(1)
                continue

            frame_len = HEADER_SIZE + self.buffer[3] + CRC_SIZE
            if len(self.buffer) < frame_len:
                offset = self._next_frame_offset()
                if offset is None:
                    # Wait for the rest of the frame
                    break
                self._skip(offset)
                continue

            try:
                frame = decode_frame(bytes(self.buffer[:frame_len]))
            except FrameDecodeError:
                self._skip(1)
                continue

            del self.buffer[:frame_len]
            frames.append(frame)

        if len(self.buffer) > self.buffer_limit:
            self._skip(len(self.buffer) - self.buffer_limit)

        return frames

    def _next_frame_offset(self) -> Optional[int]:
        """
        Find a complete frame behind an incomplete head.

        A header that is really noise would otherwise hold back a short
        frame queued behind it until enough bytes arrive to reject it.

        Returns:
            Offset of the first decodable frame after the head, or None
        """
        for offset in range(1, len(self.buffer) - MIN_FRAME_SIZE + 1):
            try:
                decode_frame(bytes(self.buffer[offset:]))
            except FrameDecodeError:
                continue
            return offset
        return None

    def reset(self):
        """Discard any buffered bytes."""
        self.buffer.clear()

    def _skip(self, count: int):
        del self.buffer[:count]
        self.dropped_bytes += count
        logger.debug(f"Resynchronising frame stream, dropped {count} byte(s)")
