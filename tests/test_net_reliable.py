from __future__ import annotations

from numclimb.net.protocol import Heartbeat, JoinRoom, PlayerState
from numclimb.net.reliable import MAX_BUFFERED_AHEAD, ReliableLink


def test_reliable_packet_is_acked_and_removed() -> None:
    sender = ReliableLink(resend_ms=40)
    receiver = ReliableLink(resend_ms=40)

    packet = sender.build_packet(JoinRoom(room_id="ABCDE"), reliable=True, now_ms=1000)
    messages, is_dup = receiver.ingest_packet(packet)
    assert is_dup is False
    assert len(messages) == 1
    assert isinstance(messages[0], JoinRoom)
    assert sender.unacked_count == 1

    ack = receiver.build_packet(Heartbeat(), reliable=False, now_ms=1001)
    sender.ingest_packet(ack)

    assert sender.unacked_count == 0
    assert sender.poll_resends(now_ms=2000) == []


def test_duplicate_reliable_packet_is_dropped() -> None:
    receiver = ReliableLink(resend_ms=40)
    sender = ReliableLink(resend_ms=40)

    packet = sender.build_packet(JoinRoom(room_id="ABCDE"), reliable=True, now_ms=10)

    messages0, dup0 = receiver.ingest_packet(packet)
    messages1, dup1 = receiver.ingest_packet(packet)

    assert len(messages0) == 1
    assert dup0 is False
    assert messages1 == []
    assert dup1 is True


def test_reliable_packet_is_resent_after_timeout() -> None:
    sender = ReliableLink(resend_ms=40)
    sender.build_packet(JoinRoom(room_id="ABCDE"), reliable=True, now_ms=0)

    assert sender.poll_resends(now_ms=39) == []

    resent = sender.poll_resends(now_ms=40)
    assert len(resent) == 1
    assert resent[0].reliable is True
    assert resent[0].seq == 1
    assert sender.last_send_ms == 40
    assert sender.poll_resends(now_ms=60) == []


def test_reliable_delivery_buffers_out_of_order_packets() -> None:
    sender = ReliableLink(resend_ms=40)
    receiver = ReliableLink(resend_ms=40)

    p1 = sender.build_packet(JoinRoom(room_id="AAAAA"), reliable=True, now_ms=0)
    p2 = sender.build_packet(JoinRoom(room_id="BBBBB"), reliable=True, now_ms=0)

    msgs2, dup2 = receiver.ingest_packet(p2)
    assert dup2 is False
    assert msgs2 == []
    assert receiver.delivered_seq == 0

    msgs1, dup1 = receiver.ingest_packet(p1)
    assert dup1 is False
    assert [m.room_id for m in msgs1 if isinstance(m, JoinRoom)] == ["AAAAA", "BBBBB"]
    assert receiver.delivered_seq == 2


def test_unreliable_packets_bypass_sequencing() -> None:
    sender = ReliableLink()
    receiver = ReliableLink()

    packet = sender.build_packet(PlayerState(x=5.0), reliable=False, now_ms=7)
    assert packet.seq == 0
    assert sender.unacked_count == 0
    assert sender.last_send_ms == 7

    first, _ = receiver.ingest_packet(packet)
    second, dup = receiver.ingest_packet(packet)
    assert len(first) == 1
    assert len(second) == 1
    assert dup is False


def test_packets_too_far_ahead_are_dropped() -> None:
    receiver = ReliableLink()
    sender = ReliableLink()
    for _ in range(MAX_BUFFERED_AHEAD + 1):
        far = sender.build_packet(Heartbeat(), reliable=True, now_ms=0)

    messages, dup = receiver.ingest_packet(far)

    assert messages == []
    assert dup is False
    assert receiver.delivered_seq == 0
