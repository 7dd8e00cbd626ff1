from __future__ import annotations

from dataclasses import dataclass, field

from .protocol import RELIABLE_RESEND_MS, NetMessage, Packet

# Reliable packets further ahead than this are dropped; the sender resends them.
MAX_BUFFERED_AHEAD = 256


@dataclass(slots=True)
class _Unacked:
    packet: Packet
    sent_at_ms: int


@dataclass(slots=True)
class ReliableLink:
    """Ordered, de-duplicated delivery for one peer over datagrams.

    Unreliable packets pass straight through. Reliable packets carry a sequence
    number, are acked cumulatively and resent until acked.
    """

    resend_ms: int = RELIABLE_RESEND_MS
    last_send_ms: int = 0
    _next_seq: int = 1
    # Highest reliable seq delivered with no gaps before it.
    _delivered_seq: int = 0
    _unacked: dict[int, _Unacked] = field(default_factory=dict)
    _ahead: dict[int, Packet] = field(default_factory=dict)

    @property
    def delivered_seq(self) -> int:
        return int(self._delivered_seq)

    @property
    def unacked_count(self) -> int:
        return len(self._unacked)

    def build_packet(self, message: NetMessage, *, reliable: bool, now_ms: int) -> Packet:
        seq = 0
        if reliable:
            seq = int(self._next_seq)
            self._next_seq += 1
        packet = Packet(seq=seq, ack=int(self._delivered_seq), reliable=bool(reliable), message=message)
        if reliable:
            self._unacked[seq] = _Unacked(packet=packet, sent_at_ms=int(now_ms))
        self.last_send_ms = int(now_ms)
        return packet

    def ingest_packet(self, packet: Packet) -> tuple[list[NetMessage], bool]:
        """Return `(deliverable_messages, was_duplicate)`.

        Out-of-order reliable packets wait in a buffer until the gap before
        them is filled, then come out in sequence order.
        """
        self._drop_acked(int(packet.ack))
        if not packet.reliable:
            return [packet.message], False

        seq = int(packet.seq)
        if seq <= 0:
            return [], False
        if seq <= self._delivered_seq or seq in self._ahead:
            return [], True
        if seq - self._delivered_seq > MAX_BUFFERED_AHEAD:
            return [], False

        self._ahead[seq] = packet
        delivered: list[NetMessage] = []
        while (self._delivered_seq + 1) in self._ahead:
            self._delivered_seq += 1
            delivered.append(self._ahead.pop(self._delivered_seq).message)
        return delivered, False

    def _drop_acked(self, ack: int) -> None:
        if ack <= 0:
            return
        for seq in [seq for seq in self._unacked if seq <= ack]:
            del self._unacked[seq]

    def poll_resends(self, *, now_ms: int) -> list[Packet]:
        out: list[Packet] = []
        for seq, entry in list(self._unacked.items()):
            if int(now_ms) - entry.sent_at_ms < int(self.resend_ms):
                continue
            # Piggyback the current ack on the resend.
            refreshed = Packet(seq=seq, ack=int(self._delivered_seq), reliable=True, message=entry.packet.message)
            self._unacked[seq] = _Unacked(packet=refreshed, sent_at_ms=int(now_ms))
            out.append(refreshed)
        if out:
            self.last_send_ms = int(now_ms)
        return out
