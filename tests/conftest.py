"""Shared test fixtures."""

from typing import Callable, List, Optional

import pytest

from loralink.link import LinkAdapter
from loralink.network.base import LoopbackTransport, Transport
from loralink.protocol.frames import Frame, FrameType, decode_frame, encode_frame
from loralink.utils.timer import Timer


class ManualTimer(Timer):
    """Timer that only fires when the test says so."""

    def __init__(self):
        self.callback: Optional[Callable[[], None]] = None
        self.delay: Optional[float] = None
        self.starts = 0

    def start(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.starts += 1

    def stop(self):
        self.callback = None

    def is_active(self):
        return self.callback is not None

    def fire(self):
        callback = self.callback
        assert callback is not None, "timer is not armed"
        self.callback = None
        callback()


class RecordingTransport(Transport):
    """Transport that records writes and can be told to fail."""

    def __init__(self):
        self.open = True
        self.fail_writes = False
        self.written: List[bytes] = []

    def write(self, data):
        if not self.open or self.fail_writes:
            return False
        self.written.append(bytes(data))
        return True

    def is_open(self):
        return self.open

    def frames(self) -> List[Frame]:
        return [decode_frame(raw) for raw in self.written]

    def frames_of(self, kind: FrameType) -> List[Frame]:
        return [f for f in self.frames() if f.kind == kind]


class Events:
    """Collects link notifications."""

    def __init__(self):
        self.sent: List[bool] = []
        self.received: List[bytes] = []
        self.send_progress: List[tuple] = []
        self.receive_progress: List[tuple] = []
        self.errors: List[str] = []

    def attach(self, link: LinkAdapter):
        link.on_packet_sent = self.sent.append
        link.on_packet_received = self.received.append
        link.on_send_progress = lambda sent, total: self.send_progress.append((sent, total))
        link.on_receive_progress = lambda received, total: self.receive_progress.append((received, total))
        link.on_error = self.errors.append
        return self


def data(seq: int, total: int, payload: bytes = b"") -> bytes:
    return encode_frame(FrameType.DATA, seq, total, payload)


def ack(seq: int, total: int) -> bytes:
    return encode_frame(FrameType.ACK, seq, total)


def packet_ack(total: int) -> bytes:
    return encode_frame(FrameType.PACKET_ACK, 0, total)


@pytest.fixture
def timer():
    return ManualTimer()


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def link(transport, timer):
    return LinkAdapter(transport, timer, ack_timeout=1.0, max_retries=5)


@pytest.fixture
def events(link):
    return Events().attach(link)


@pytest.fixture
def loopback_pair():
    """Two links connected back to back over a loopback."""
    a_transport, b_transport = LoopbackTransport.pair()
    a_timer, b_timer = ManualTimer(), ManualTimer()
    a = LinkAdapter(a_transport, a_timer)
    b = LinkAdapter(b_transport, b_timer)
    a_transport.on_data = a.bytes_available
    b_transport.on_data = b.bytes_available
    return {
        'a': a, 'b': b,
        'a_transport': a_transport, 'b_transport': b_transport,
        'a_timer': a_timer, 'b_timer': b_timer,
        'a_events': Events().attach(a), 'b_events': Events().attach(b),
    }
