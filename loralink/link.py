"""Packet-level link adapter over a LoRa serial transport."""

import logging
from enum import Enum
from typing import Callable, Optional

from .network.base import Transport
from .protocol.frames import (
    MAX_FRAME_SIZE,
    Frame,
    FrameDecodeError,
    FrameType,
    decode_frame,
)
from .protocol.reassembly import DEFAULT_REASSEMBLY_TIMEOUT, Receiver
from .protocol.stream import FrameStream
from .protocol.transmitter import (
    DEFAULT_ACK_TIMEOUT,
    DEFAULT_MAX_RETRIES,
    CompletionMode,
    Transmitter,
)
from .utils.callbacks import notify
from .utils.timer import Timer


logger = logging.getLogger(__name__)


class FramingMode(str, Enum):
    """How inbound reads are split into frames."""
    SINGLE = "single"  # One frame per read, trailing bytes discarded
    STREAM = "stream"  # Buffered boundary scanning across reads


class LinkAdapter:
    """
    Reliable packet transfer over an unreliable byte link.

    Owns the transmitter and receiver state machines, decodes inbound
    bytes into frames and dispatches them: ACK and PACKET_ACK go to the
    transmitter, DATA to the receiver. All entry points must be called
    from a single execution context (one event loop).
    """

    def __init__(self,
                 transport: Transport,
                 timer: Timer,
                 ack_timeout: float = DEFAULT_ACK_TIMEOUT,
                 max_retries: int = DEFAULT_MAX_RETRIES,
                 completion: CompletionMode = CompletionMode.CHUNK_ACK,
                 framing: FramingMode = FramingMode.SINGLE,
                 reassembly_timeout: float = DEFAULT_REASSEMBLY_TIMEOUT,
                 stream_buffer_limit: int = 4 * MAX_FRAME_SIZE):
        """
        Initialize link adapter.

        Args:
            transport: Byte transport to the radio module
            timer: One-shot timer for retransmissions
            ack_timeout: Seconds to wait for each acknowledgment
            max_retries: Retransmissions allowed per chunk
            completion: Whether the final chunk ACK or a PACKET_ACK finishes a send
            framing: Single frame per read or buffered stream scanning
            reassembly_timeout: Seconds before an incomplete inbound packet is dropped
            stream_buffer_limit: Maximum buffered bytes in stream framing mode
        """
        self.transport = transport
        self.framing = FramingMode(framing)
        self.stream = FrameStream(stream_buffer_limit)

        self.transmitter = Transmitter(
            transport,
            timer,
            ack_timeout=ack_timeout,
            max_retries=max_retries,
            completion=completion
        )
        self.receiver = Receiver(transport, reassembly_timeout=reassembly_timeout)

        self.transmitter.on_progress = self._on_send_progress
        self.transmitter.on_finished = self._on_send_finished
        self.transmitter.on_error = self._on_error
        self.receiver.on_progress = self._on_receive_progress
        self.receiver.on_packet = self._on_packet
        self.receiver.on_error = self._on_error

        self.frames_received = 0
        self.corrupt_frames = 0

        # Callbacks
        self.on_packet_sent: Optional[Callable[[bool], None]] = None
        self.on_packet_received: Optional[Callable[[bytes], None]] = None
        self.on_send_progress: Optional[Callable[[int, int], None]] = None
        self.on_receive_progress: Optional[Callable[[int, int], None]] = None
        self.on_error: Optional[Callable[[str], None]] = None

    def send_packet(self, data: bytes) -> bool:
        """
        Start sending a packet.

        The outcome is reported through on_packet_sent.

        Args:
            data: Packet payload

        Returns:
            True if the transfer was started
        """
        return self.transmitter.send(bytes(data))

    def bytes_available(self, data: bytes):
        """
        Process bytes read from the transport.

        Args:
            data: Bytes from one read
        """
        if self.framing == FramingMode.STREAM:
            for frame in self.stream.feed(data):
                self._dispatch(frame)
            return

        try:
            frame = decode_frame(data)
        except FrameDecodeError as e:
            self.corrupt_frames += 1
            logger.debug(f"Dropping undecodable frame: {e}")
            return

        if len(data) > frame.size:
            logger.debug(f"Ignoring {len(data) - frame.size} trailing byte(s) after frame")

        self._dispatch(frame)

    def is_sending(self) -> bool:
        """Check if an outbound packet is in flight."""
        return self.transmitter.is_busy()

    def is_receiving(self) -> bool:
        """Check if an inbound packet is partially received."""
        return self.receiver.is_busy()

    def expire_stale_reassembly(self) -> bool:
        """Drop a partially received packet that has timed out."""
        return self.receiver.expire()

    def transport_lost(self):
        """Fail the send in flight and drop partial input after the link goes down."""
        self.transmitter.abort("Serial port closed")
        self.receiver.reset()
        self.stream.reset()

    def reset(self):
        """Abandon both directions and return to idle."""
        self.transmitter.reset()
        self.receiver.reset()
        self.stream.reset()

    def _dispatch(self, frame: Frame):
        self.frames_received += 1

        if frame.kind == FrameType.DATA:
            self.receiver.handle_data(frame)
        elif frame.kind == FrameType.ACK:
            self.transmitter.handle_ack(frame)
        elif frame.kind == FrameType.PACKET_ACK:
            self.transmitter.handle_packet_ack(frame)
        else:
            logger.debug(f"Ignoring {frame.kind.name} seq={frame.seq}")

    def _on_send_progress(self, sent: int, total: int):
        notify(self.on_send_progress, sent, total)

    def _on_send_finished(self, success: bool):
        notify(self.on_packet_sent, success)

    def _on_receive_progress(self, received: int, total: int):
        notify(self.on_receive_progress, received, total)

    def _on_packet(self, data: bytes):
        notify(self.on_packet_received, data)

    def _on_error(self, message: str):
        logger.warning(f"Link error: {message}")
        notify(self.on_error, message)

    def get_stats(self) -> dict:
        """
        Get link statistics.

        Returns:
            Dictionary with link stats
        """
        return {
            'frames_received': self.frames_received,
            'corrupt_frames': self.corrupt_frames,
            'resync_bytes': self.stream.dropped_bytes,
            'framing': self.framing.value,
            'transmitter': self.transmitter.get_stats(),
            'receiver': self.receiver.get_stats(),
        }
