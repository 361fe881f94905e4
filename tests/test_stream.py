"""Tests for frame boundary scanning."""

from loralink.protocol.frames import FrameType, encode_frame
from loralink.protocol.stream import FrameStream


def test_coalesced_frames_are_split():
    stream = FrameStream()
    raw = encode_frame(FrameType.ACK, 0, 2) + encode_frame(FrameType.DATA, 1, 2, b"hi")

    frames = stream.feed(raw)

    assert [f.kind for f in frames] == [FrameType.ACK, FrameType.DATA]
    assert frames[1].payload == b"hi"
    assert not stream.buffer


def test_frame_split_across_reads():
    stream = FrameStream()
    raw = encode_frame(FrameType.DATA, 0, 1, b"split me please")

    assert stream.feed(raw[:6]) == []
    frames = stream.feed(raw[6:])

    assert len(frames) == 1
    assert frames[0].payload == b"split me please"


def test_resynchronises_after_garbage():
    stream = FrameStream()
    raw = b"\x00\xff\x13" + encode_frame(FrameType.ACK, 4, 5)

    frames = stream.feed(raw)

    assert len(frames) == 1
    assert frames[0].seq == 4
    assert stream.dropped_bytes == 3


def test_resynchronises_after_corrupt_frame():
    stream = FrameStream()
    bad = bytearray(encode_frame(FrameType.DATA, 0, 2, b"abc"))
    bad[5] ^= 0x01
    good = encode_frame(FrameType.DATA, 1, 2, b"def")

    frames = stream.feed(bytes(bad) + good)

    assert [f.seq for f in frames] == [1]


def test_buffer_is_bounded():
    stream = FrameStream(buffer_limit=40)
    # Valid header declaring 26 bytes that never arrive
    stream.feed(bytes([0x10, 0, 1, 26]) + bytes(20))
    stream.feed(bytes([0x10, 0, 1, 26]) + bytes(20))

    assert len(stream.buffer) <= 40


def test_reset_discards_partial_frame():
    stream = FrameStream()
    raw = encode_frame(FrameType.DATA, 0, 1, b"abc")
    stream.feed(raw[:4])
    stream.reset()

    assert stream.feed(raw[4:]) == []


def test_noise_header_does_not_hold_back_short_frame():
    stream = FrameStream()
    # Looks like the start of a 20 byte DATA frame
    noise = bytes([0x10, 0x00, 0x01, 20])
    ack = encode_frame(FrameType.ACK, 40, 50)

    frames = stream.feed(noise + ack)

    assert [(f.kind, f.seq) for f in frames] == [(FrameType.ACK, 40)]
    assert stream.dropped_bytes == 4
    assert not stream.buffer
