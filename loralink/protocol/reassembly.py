"""Inbound chunk reassembly."""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from ..network.base import Transport
from ..utils.callbacks import notify
from .frames import MAX_PAYLOAD, Frame, ack_frame, packet_ack_frame


logger = logging.getLogger(__name__)


DEFAULT_REASSEMBLY_TIMEOUT = 300.0  # Seconds before a partial packet is dropped


@dataclass
class PacketReassembly:
    """Collects the chunks of one inbound packet."""
    total: int
    chunks: Dict[int, bytes] = field(default_factory=dict)
    packet_ack_sent: bool = False
    first_seen: float = field(default_factory=time.monotonic)

    def add_chunk(self, seq: int, payload: bytes) -> bool:
        """
        Store a chunk payload.

        Duplicates overwrite the stored payload.

        Args:
            seq: Chunk sequence number
            payload: Chunk payload

        Returns:
            True if the sequence number was new, False if duplicate
        """
        is_new = seq not in self.chunks
        self.chunks[seq] = payload
        return is_new

    @property
    def received_count(self) -> int:
        return len(self.chunks)

    @property
    def received_bytes(self) -> int:
        return sum(len(p) for p in self.chunks.values())

    def estimated_size(self) -> int:
        """Exact size once complete, otherwise assume missing chunks are full."""
        missing = self.total - self.received_count
        return self.received_bytes + missing * MAX_PAYLOAD

    def is_complete(self) -> bool:
        """Check if all chunks have been received."""
        return self.received_count == self.total

    def is_expired(self, timeout: float, now: Optional[float] = None) -> bool:
        """Check if the reassembly has been waiting longer than timeout."""
        if now is None:
            now = time.monotonic()
        return now - self.first_seen > timeout

    def get_missing_indexes(self) -> List[int]:
        """Get list of missing chunk indexes."""
        return [i for i in range(self.total) if i not in self.chunks]

    def reassemble(self) -> Optional[bytes]:
        """
        Concatenate chunks in sequence order.

        Returns:
            Packet bytes or None if incomplete
        """
        if not self.is_complete():
            return None

        return b''.join(self.chunks[i] for i in range(self.total))


class Receiver:
    """
    Reassembles inbound packets and acknowledges every DATA frame.

    Every DATA frame, new or duplicate, is answered with an ACK echoing its
    seq and total. Once every sequence number of the packet has arrived the
    payload is delivered in sequence order and a single PACKET_ACK is sent.
    """

    def __init__(self, transport: Transport, reassembly_timeout: float = DEFAULT_REASSEMBLY_TIMEOUT):
        """
        Initialize receiver.

        Args:
            transport: Link used to write acknowledgments
            reassembly_timeout: Seconds before an incomplete packet is discarded
        """
        self.transport = transport
        self.reassembly_timeout = reassembly_timeout
        self.current: Optional[PacketReassembly] = None
        # Last delivered packet and the seq that completed it
        self.completed: Optional[PacketReassembly] = None
        self.completed_seq: Optional[int] = None

        # Statistics
        self.packets_received = 0
        self.duplicate_chunks = 0
        self.dropped_frames = 0
        self.expired_packets = 0

        # Callbacks
        self.on_progress: Optional[Callable[[int, int], None]] = None
        self.on_packet: Optional[Callable[[bytes], None]] = None
        self.on_error: Optional[Callable[[str], None]] = None

    def is_busy(self) -> bool:
        """Check if a packet is partially received."""
        return self.current is not None

    def handle_data(self, frame: Frame):
        """
        Handle a DATA frame.

        Args:
            frame: Decoded DATA frame
        """
        if frame.total == 0 or frame.seq >= frame.total:
            logger.debug(f"Dropping DATA frame with invalid index {frame.seq}/{frame.total}")
            self.dropped_frames += 1
            return

        if self.current is None and self._is_late_duplicate(frame):
            self.duplicate_chunks += 1
            logger.debug(f"Late duplicate of final chunk {frame.seq}/{frame.total}, packet already delivered")
            self._write(ack_frame(frame.seq, frame.total))
            self._send_packet_ack(self.completed)
            return

        self.completed = None
        self.completed_seq = None

        if self.current and self.current.total != frame.total:
            logger.warning(
                f"New packet of {frame.total} chunk(s) while {self.current.received_count}/"
                f"{self.current.total} received, discarding partial packet"
            )
            self.current = None

        if self.current is None:
            self.current = PacketReassembly(total=frame.total)

        state = self.current
        if state.add_chunk(frame.seq, frame.payload):
            notify(self.on_progress, state.received_bytes, state.estimated_size())
        else:
            self.duplicate_chunks += 1
            logger.debug(f"Duplicate chunk {frame.seq}/{frame.total}")

        self._write(ack_frame(frame.seq, frame.total))

        if not state.is_complete():
            return

        data = state.reassemble()
        self.current = None
        self.completed = state
        self.completed_seq = frame.seq
        self.packets_received += 1
        logger.debug(f"Packet reassembled: {len(data)} bytes in {state.total} chunk(s)")

        notify(self.on_packet, data)
        self._send_packet_ack(state)

    def _is_late_duplicate(self, frame: Frame) -> bool:
        """
        Check if frame repeats the chunk that completed the last packet.

        With stop-and-wait only the completing chunk can be retransmitted
        after delivery, when its ACK was lost.
        """
        if self.completed is None:
            return False
        return (frame.total == self.completed.total
                and frame.seq == self.completed_seq
                and self.completed.chunks.get(frame.seq) == frame.payload)

    def _send_packet_ack(self, state: PacketReassembly):
        if state.packet_ack_sent:
            return
        state.packet_ack_sent = True
        self._write(packet_ack_frame(state.total))

    def expire(self, now: Optional[float] = None) -> bool:
        """
        Discard the partial packet if it has timed out.

        The record of the last delivered packet is forgotten after the
        same timeout.

        Returns:
            True if a partial packet was discarded
        """
        if self.completed and self.completed.is_expired(self.reassembly_timeout, now):
            self.completed = None
            self.completed_seq = None

        if self.current and self.current.is_expired(self.reassembly_timeout, now):
            logger.info(
                f"Discarding incomplete packet, missing chunks {self.current.get_missing_indexes()}"
            )
            self.current = None
            self.expired_packets += 1
            return True
        return False

    def reset(self):
        """Discard any partially received packet."""
        self.current = None
        self.completed = None
        self.completed_seq = None

    def _write(self, frame: bytes):
        if not self.transport.write(frame):
            notify(self.on_error, "Serial write failed")

    def get_stats(self) -> dict:
        """
        Get receiver statistics.

        Returns:
            Dictionary with receiver stats
        """
        stats = {
            'receiving': self.is_busy(),
            'packets_received': self.packets_received,
            'duplicate_chunks': self.duplicate_chunks,
            'dropped_frames': self.dropped_frames,
            'expired_packets': self.expired_packets,
        }
        if self.current:
            stats['received_chunks'] = self.current.received_count
            stats['total_chunks'] = self.current.total
        return stats
