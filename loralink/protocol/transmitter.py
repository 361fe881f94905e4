"""Stop-and-wait chunked transmitter."""

import logging
from enum import Enum
from typing import Callable, List, Optional

from ..network.base import Transport
from ..utils.callbacks import notify
from ..utils.timer import Timer
from .chunking import Chunk, split_payload
from .frames import Frame


logger = logging.getLogger(__name__)


DEFAULT_ACK_TIMEOUT = 1.0  # Seconds to wait for an ACK
DEFAULT_MAX_RETRIES = 5  # Retransmissions per chunk before giving up


class CompletionMode(str, Enum):
    """What finishes a send."""
    CHUNK_ACK = "chunk_ack"  # ACK of the final chunk
    PACKET_ACK = "packet_ack"  # PACKET_ACK after the final chunk


class TransmitterState(Enum):
    """Transmitter states."""
    IDLE = "idle"
    SENDING = "sending"
    AWAITING_PACKET_ACK = "awaiting_packet_ack"


class Transmitter:
    """
    Sends one packet at a time as a sequence of acknowledged chunks.

    Each chunk is written and the retransmission timer armed. An ACK for
    the outstanding chunk advances to the next one; a timeout rewrites the
    same chunk until max_retries is exhausted, which aborts the packet.
    Write failures abort immediately.
    """

    def __init__(self,
                 transport: Transport,
                 timer: Timer,
                 ack_timeout: float = DEFAULT_ACK_TIMEOUT,
                 max_retries: int = DEFAULT_MAX_RETRIES,
                 completion: CompletionMode = CompletionMode.CHUNK_ACK):
        """
        Initialize transmitter.

        Args:
            transport: Link used to write frames
            timer: One-shot timer for ACK timeouts
            ack_timeout: Seconds to wait for each acknowledgment
            max_retries: Retransmissions allowed per chunk
            completion: Whether the final chunk ACK or a PACKET_ACK finishes a send
        """
        self.transport = transport
        self.timer = timer
        self.ack_timeout = ack_timeout
        self.max_retries = max_retries
        self.completion = CompletionMode(completion)

        self.state = TransmitterState.IDLE
        self.chunks: List[Chunk] = []
        self.current_index: Optional[int] = None
        self.retries = 0
        self.total_bytes = 0
        self.acked_bytes = 0

        # Statistics
        self.packets_sent = 0
        self.packets_failed = 0
        self.frames_written = 0
        self.retransmissions = 0

        # Callbacks
        self.on_progress: Optional[Callable[[int, int], None]] = None
        self.on_finished: Optional[Callable[[bool], None]] = None
        self.on_error: Optional[Callable[[str], None]] = None

    def is_busy(self) -> bool:
        """Check if a packet transfer is in flight."""
        return self.state != TransmitterState.IDLE

    def send(self, data: bytes) -> bool:
        """
        Start sending a packet.

        Returns immediately; the outcome is reported through on_finished.

        Args:
            data: Packet payload

        Returns:
            True if the transfer was started
        """
        if self.is_busy():
            notify(self.on_error, "Send already in progress")
            return False

        if not self.transport.is_open():
            notify(self.on_error, "Serial port not open")
            notify(self.on_finished, False)
            return False

        try:
            chunks = split_payload(data)
        except ValueError as e:
            notify(self.on_error, str(e))
            notify(self.on_finished, False)
            return False

        self.chunks = chunks
        self.total_bytes = len(data)
        self.acked_bytes = 0
        self.retries = 0
        self.state = TransmitterState.SENDING

        logger.debug(f"Sending packet: {self.total_bytes} bytes in {len(chunks)} chunk(s)")

        return self._send_chunk(0)

    def handle_ack(self, frame: Frame):
        """
        Handle an ACK frame.

        Args:
            frame: Decoded ACK frame
        """
        if self.state != TransmitterState.SENDING:
            logger.debug(f"Ignoring ACK seq={frame.seq} while {self.state.value}")
            return

        chunk = self.chunks[self.current_index]
        if frame.seq != chunk.seq or frame.total != chunk.total:
            logger.debug(f"Ignoring ACK seq={frame.seq}/{frame.total}, waiting for {chunk.seq}/{chunk.total}")
            return

        self.timer.stop()
        self.retries = 0
        self.acked_bytes += len(chunk.payload)

        next_index = self.current_index + 1
        if next_index < len(self.chunks):
            self._send_chunk(next_index)
            return

        if self.completion == CompletionMode.PACKET_ACK:
            self.state = TransmitterState.AWAITING_PACKET_ACK
            self.timer.start(self.ack_timeout, self._on_timeout)
            logger.debug("All chunks acknowledged, waiting for PACKET_ACK")
            return

        self._complete()

    def handle_packet_ack(self, frame: Frame):
        """
        Handle a PACKET_ACK frame.

        Args:
            frame: Decoded PACKET_ACK frame
        """
        if self.completion != CompletionMode.PACKET_ACK or not self.is_busy():
            logger.debug("Ignoring PACKET_ACK")
            return

        # Some peers send PACKET_ACK with total 0
        if frame.total not in (0, len(self.chunks)):
            logger.debug(f"Ignoring PACKET_ACK for {frame.total} chunk(s), sending {len(self.chunks)}")
            return

        if self.state == TransmitterState.SENDING and self.current_index != len(self.chunks) - 1:
            logger.debug("Ignoring PACKET_ACK before final chunk")
            return

        self.timer.stop()
        self.acked_bytes = self.total_bytes
        self._complete()

    def reset(self):
        """Abandon any transfer in flight without reporting an outcome."""
        self.timer.stop()
        self.state = TransmitterState.IDLE
        self.chunks = []
        self.current_index = None
        self.retries = 0
        self.total_bytes = 0
        self.acked_bytes = 0

    def _send_chunk(self, index: int) -> bool:
        """Write chunk at index and arm the retransmission timer."""
        chunk = self.chunks[index]
        frame = chunk.encode()

        self.current_index = index
        if not self.transport.write(frame):
            logger.warning(f"Write failed for chunk {chunk.seq}/{chunk.total}")
            self._abort("Serial write failed")
            return False

        self.frames_written += 1
        self.timer.start(self.ack_timeout, self._on_timeout)

        notify(self.on_progress, self.acked_bytes + len(chunk.payload), self.total_bytes)
        return True

    def _on_timeout(self):
        if self.state == TransmitterState.IDLE:
            return

        if self.retries >= self.max_retries:
            logger.warning(f"No acknowledgment after {self.retries} retries, aborting packet")
            self._abort("Max retries reached")
            return

        self.retries += 1

        if self.state == TransmitterState.AWAITING_PACKET_ACK:
            logger.debug(f"Waiting for PACKET_ACK (retry {self.retries}/{self.max_retries})")
            self.timer.start(self.ack_timeout, self._on_timeout)
            return

        self.retransmissions += 1
        logger.debug(
            f"Retransmitting chunk {self.current_index} (retry {self.retries}/{self.max_retries})"
        )
        self._send_chunk(self.current_index)

    def abort(self, message: str):
        """
        Fail the transfer in flight, if any.

        Args:
            message: Error reported to the caller
        """
        if self.is_busy():
            self._abort(message)

    def _abort(self, message: str):
        self.reset()
        self.packets_failed += 1
        notify(self.on_error, message)
        notify(self.on_finished, False)

    def _complete(self):
        total = self.total_bytes
        self.reset()
        self.packets_sent += 1
        logger.debug(f"Packet of {total} bytes delivered")
        notify(self.on_finished, True)

    def get_stats(self) -> dict:
        """
        Get transmitter statistics.

        Returns:
            Dictionary with transmitter stats
        """
        return {
            'state': self.state.value,
            'current_chunk': self.current_index,
            'total_chunks': len(self.chunks),
            'retries': self.retries,
            'packets_sent': self.packets_sent,
            'packets_failed': self.packets_failed,
            'frames_written': self.frames_written,
            'retransmissions': self.retransmissions,
        }
