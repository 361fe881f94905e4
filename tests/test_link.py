"""End-to-end tests for two links over a loopback."""

import asyncio

import pytest

from loralink.link import LinkAdapter
from loralink.network.base import LoopbackTransport, run_until_idle
from loralink.protocol.frames import FrameType, decode_frame
from loralink.protocol.transmitter import CompletionMode
from loralink.utils.timer import LoopTimer

from .conftest import Events


def drive(pair, max_timeouts=100):
    """Deliver frames and fire the sender timer until the send settles."""
    for _ in range(max_timeouts):
        run_until_idle(pair['a_transport'], pair['b_transport'])
        if not pair['a'].is_sending():
            return
        pair['a_timer'].fire()
    raise AssertionError("send did not settle")


def test_packet_delivered_over_clean_link(loopback_pair):
    payload = bytes(range(256)) * 3

    assert loopback_pair['a'].send_packet(payload)
    drive(loopback_pair)

    assert loopback_pair['b_events'].received == [payload]
    assert loopback_pair['a_events'].sent == [True]
    assert loopback_pair['a_events'].send_progress[-1] == (len(payload), len(payload))
    assert loopback_pair['b_events'].receive_progress[-1] == (len(payload), len(payload))


def test_lost_data_frames_are_retransmitted(loopback_pair):
    seen = set()

    def drop_first_copy(raw):
        frame = decode_frame(raw)
        if frame.kind == FrameType.DATA and frame.seq not in seen:
            seen.add(frame.seq)
            return True
        return False

    loopback_pair['a_transport'].drop = drop_first_copy
    payload = b"x" * 100

    loopback_pair['a'].send_packet(payload)
    drive(loopback_pair)

    assert loopback_pair['b_events'].received == [payload]
    assert loopback_pair['a_events'].sent == [True]
    assert loopback_pair['a'].transmitter.retransmissions == 4


def test_lost_acks_cause_duplicates_but_single_delivery(loopback_pair):
    seen = set()

    def drop_first_ack(raw):
        frame = decode_frame(raw)
        if frame.kind == FrameType.ACK and frame.seq not in seen:
            seen.add(frame.seq)
            return True
        return False

    loopback_pair['b_transport'].drop = drop_first_ack
    payload = bytes(range(60))

    loopback_pair['a'].send_packet(payload)
    drive(loopback_pair)

    assert loopback_pair['b_events'].received == [payload]
    assert loopback_pair['a_events'].sent == [True]
    assert loopback_pair['b'].receiver.duplicate_chunks == 3
    assert not loopback_pair['b'].is_receiving()


@pytest.mark.parametrize("first, second", [
    (b"hello", b"world"),
    (b"A" * 26 + b"a-tail", b"B" * 26 + b"b-tail"),
])
def test_lost_final_ack_then_next_packet(loopback_pair, first, second):
    dropped = []

    def drop_first_final_ack(raw):
        frame = decode_frame(raw)
        if frame.kind == FrameType.ACK and frame.seq == frame.total - 1 and not dropped:
            dropped.append(raw)
            return True
        return False

    loopback_pair['b_transport'].drop = drop_first_final_ack

    loopback_pair['a'].send_packet(first)
    drive(loopback_pair)

    assert dropped
    assert loopback_pair['a_events'].sent == [True]
    assert not loopback_pair['b'].is_receiving()

    loopback_pair['a'].send_packet(second)
    drive(loopback_pair)

    assert loopback_pair['b_events'].received == [first, second]
    assert loopback_pair['a_events'].sent == [True, True]


def test_dead_link_gives_up(loopback_pair):
    loopback_pair['a_transport'].drop = lambda raw: True

    loopback_pair['a'].send_packet(b"nobody home")
    drive(loopback_pair)

    assert loopback_pair['a_events'].sent == [False]
    assert loopback_pair['b_events'].received == []
    assert len(loopback_pair['a_transport'].written) == 6


def test_both_directions_at_once(loopback_pair):
    a_payload = b"from a " * 10
    b_payload = b"from b " * 7

    loopback_pair['a'].send_packet(a_payload)
    loopback_pair['b'].send_packet(b_payload)
    run_until_idle(loopback_pair['a_transport'], loopback_pair['b_transport'])

    assert loopback_pair['b_events'].received == [a_payload]
    assert loopback_pair['a_events'].received == [b_payload]
    assert loopback_pair['a_events'].sent == [True]
    assert loopback_pair['b_events'].sent == [True]


def test_back_to_back_packets(loopback_pair):
    for payload in [b"one", b"", b"three" * 20]:
        loopback_pair['a'].send_packet(payload)
        drive(loopback_pair)

    assert loopback_pair['b_events'].received == [b"one", b"", b"three" * 20]
    assert loopback_pair['a_events'].sent == [True, True, True]


def test_packet_ack_completion_end_to_end(loopback_pair):
    a_transport = loopback_pair['a_transport']
    a = LinkAdapter(a_transport, loopback_pair['a_timer'], completion=CompletionMode.PACKET_ACK)
    a_transport.on_data = a.bytes_available
    events = Events().attach(a)

    a.send_packet(bytes(100))
    run_until_idle(a_transport, loopback_pair['b_transport'])

    assert events.sent == [True]
    assert loopback_pair['b_events'].received == [bytes(100)]


def test_closed_peer_is_link_down(loopback_pair):
    loopback_pair['a_transport'].close()

    assert not loopback_pair['a'].send_packet(b"hello")
    assert loopback_pair['a_events'].errors == ["Serial port not open"]


def test_transfer_on_event_loop():
    async def scenario():
        a_transport, b_transport = LoopbackTransport.pair()
        a = LinkAdapter(a_transport, LoopTimer(), ack_timeout=0.05)
        b = LinkAdapter(b_transport, LoopTimer(), ack_timeout=0.05)
        a_transport.on_data = a.bytes_available
        b_transport.on_data = b.bytes_available

        dropped = []

        def drop_once(raw):
            if not dropped:
                dropped.append(raw)
                return True
            return False

        a_transport.drop = drop_once

        done = asyncio.get_running_loop().create_future()
        received = []
        a.on_packet_sent = lambda ok: done.done() or done.set_result(ok)
        b.on_packet_received = received.append

        a.send_packet(b"over the air " * 5)
        ok = await asyncio.wait_for(done, timeout=2.0)
        return ok, received

    ok, received = asyncio.run(scenario())

    assert ok is True
    assert received == [b"over the air " * 5]


@pytest.mark.parametrize("size", [0, 1, 25, 26, 27, 52, 53, 1000])
def test_sizes_around_chunk_boundaries(loopback_pair, size):
    payload = bytes(i % 251 for i in range(size))

    loopback_pair['a'].send_packet(payload)
    drive(loopback_pair)

    assert loopback_pair['b_events'].received == [payload]
