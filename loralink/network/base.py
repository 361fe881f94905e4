"""Transport interface and in-memory loopback link."""

import asyncio
import logging
from collections import deque
from typing import Callable, Deque, List, Optional, Tuple


logger = logging.getLogger(__name__)


class Transport:
    """
    Byte transport consumed by the link layer.

    Inbound bytes are pushed to the on_data callback as they arrive.
    """

    on_data: Optional[Callable[[bytes], None]] = None

    def write(self, data: bytes) -> bool:
        """
        Write bytes to the link.

        Args:
            data: Bytes to transmit

        Returns:
            True if the bytes were accepted, False on failure
        """
        raise NotImplementedError

    def is_open(self) -> bool:
        """Check if the link is open."""
        raise NotImplementedError


class LoopbackTransport(Transport):
    """
    In-memory transport delivering writes to a connected peer.

    Writes are queued on the peer and handed to its on_data callback one
    at a time, either on the running event loop or when deliver() is
    called. Frames can be dropped with a predicate to simulate a lossy
    radio channel.
    """

    def __init__(self, name: str = "loopback"):
        """
        Initialize loopback transport.

        Args:
            name: Name used in log messages
        """
        self.name = name
        self.peer: Optional['LoopbackTransport'] = None
        self.open = True
        self.drop: Optional[Callable[[bytes], bool]] = None
        self.written: List[bytes] = []
        self.on_data: Optional[Callable[[bytes], None]] = None
        self._inbox: Deque[bytes] = deque()

    @classmethod
    def pair(cls) -> Tuple['LoopbackTransport', 'LoopbackTransport']:
        """Create two connected loopback transports."""
        a = cls("a")
        b = cls("b")
        a.peer = b
        b.peer = a
        return a, b

    def write(self, data: bytes) -> bool:
        if not self.open:
            return False

        self.written.append(bytes(data))

        if self.drop and self.drop(data):
            logger.debug(f"{self.name}: dropped {len(data)} bytes")
            return True

        if self.peer and self.peer.open:
            self.peer._inbox.append(bytes(data))
            self.peer._schedule()

        return True

    def is_open(self) -> bool:
        return self.open

    def close(self):
        """Close the transport and discard undelivered bytes."""
        self.open = False
        self._inbox.clear()

    def pending(self) -> int:
        """Number of writes waiting to be delivered to this side."""
        return len(self._inbox)

    def deliver(self) -> int:
        """
        Deliver every queued write to on_data.

        Returns:
            Number of writes delivered
        """
        count = 0
        while self._inbox:
            data = self._inbox.popleft()
            count += 1
            if self.on_data:
                self.on_data(data)
        return count

    def _schedule(self):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop, caller drives delivery
            return
        loop.call_soon(self.deliver)


def run_until_idle(*transports: LoopbackTransport, limit: int = 100000) -> int:
    """
    Deliver queued writes on all transports until none remain.

    Args:
        *transports: Loopback transports to drain
        limit: Maximum number of deliveries before giving up

    Returns:
        Total number of writes delivered
    """
    total = 0
    while any(t.pending() for t in transports):
        for t in transports:
            total += t.deliver()
        if total > limit:
            raise RuntimeError("Loopback delivery did not settle")
    return total
