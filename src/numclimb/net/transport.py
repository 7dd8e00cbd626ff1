from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
import socket
from typing import Protocol

import msgspec

from .debug_log import net_debug_log
from .protocol import LINK_TIMEOUT_MS, Packet, decode_packet, encode_packet

PeerAddr = tuple[str, int]

# Largest datagram we expect; a msgpack packet is a few hundred bytes.
MAX_DATAGRAM = 2048


def format_addr(addr: PeerAddr) -> str:
    return f"{addr[0]}:{addr[1]}"


class PacketTransport(Protocol):
    @property
    def bound_port(self) -> int: ...

    @property
    def is_open(self) -> bool: ...

    def open(self) -> None: ...

    def close(self) -> None: ...

    def send_packet(self, addr: PeerAddr, packet: Packet) -> bool: ...

    def recv_packets(self) -> list[tuple[PeerAddr, Packet]]: ...


@dataclass(slots=True)
class PeerClock:
    """Last time each peer was heard from.

    UDP never reports a closed connection, so a peer that stays silent for
    `timeout_ms` is treated as gone. Both the relay (many peers) and the
    client (just the relay) keep one.
    """

    timeout_ms: int = LINK_TIMEOUT_MS
    _last_seen: dict[PeerAddr, int] = field(default_factory=dict)

    def __contains__(self, addr: object) -> bool:
        return addr in self._last_seen

    def heard(self, addr: PeerAddr, now_ms: int) -> bool:
        """Record traffic from `addr`. Returns True the first time a peer is heard."""
        is_new = addr not in self._last_seen
        self._last_seen[addr] = int(now_ms)
        return is_new

    def silent_ms(self, addr: PeerAddr, now_ms: int) -> int:
        last = self._last_seen.get(addr)
        if last is None:
            return 0
        return int(now_ms) - last

    def expired(self, now_ms: int) -> list[PeerAddr]:
        return [addr for addr, last in self._last_seen.items() if int(now_ms) - last >= int(self.timeout_ms)]

    def forget(self, addr: PeerAddr) -> None:
        self._last_seen.pop(addr, None)

    def clear(self) -> None:
        self._last_seen.clear()


@dataclass(slots=True)
class UdpTransport:
    """Non-blocking datagram socket speaking msgpack `Packet`s.

    Send failures are per datagram: they are counted, traced and reported as
    False, never raised. Sending on a closed transport is a caller bug and
    raises `RuntimeError`.
    """

    bind_host: str
    bind_port: int
    sent: int = 0
    received: int = 0
    dropped: int = 0
    _sock: socket.socket | None = field(init=False, default=None)

    @property
    def bound_port(self) -> int:
        if self._sock is None:
            return int(self.bind_port)
        return int(self._sock.getsockname()[1])

    @property
    def is_open(self) -> bool:
        return self._sock is not None

    def open(self) -> None:
        if self._sock is not None:
            return
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        sock.setblocking(False)
        sock.bind((str(self.bind_host), int(self.bind_port)))
        self._sock = sock
        net_debug_log("udp_open", bind=format_addr((str(self.bind_host), self.bound_port)))

    def close(self) -> None:
        sock, self._sock = self._sock, None
        if sock is None:
            return
        net_debug_log("udp_close", sent=self.sent, received=self.received, dropped=self.dropped)
        try:
            sock.close()
        except OSError:
            return

    def send_packet(self, addr: PeerAddr, packet: Packet) -> bool:
        if self._sock is None:
            raise RuntimeError("transport is not open")
        try:
            self._sock.sendto(encode_packet(packet), (str(addr[0]), int(addr[1])))
        except OSError as exc:
            self.dropped += 1
            net_debug_log("udp_send_failed", addr=format_addr(addr), error=exc.__class__.__name__)
            return False
        self.sent += 1
        return True

    def _datagrams(self, sock: socket.socket) -> Iterator[tuple[PeerAddr, bytes]]:
        while True:
            try:
                blob, raw_addr = sock.recvfrom(MAX_DATAGRAM)
            except BlockingIOError:
                return
            except OSError as exc:
                # ICMP port-unreachable from an earlier send surfaces here on some platforms.
                net_debug_log("udp_recv_error", error=exc.__class__.__name__)
                return
            yield (str(raw_addr[0]), int(raw_addr[1])), blob

    def recv_packets(self) -> list[tuple[PeerAddr, Packet]]:
        if self._sock is None:
            return []
        out: list[tuple[PeerAddr, Packet]] = []
        for addr, blob in self._datagrams(self._sock):
            try:
                packet = decode_packet(blob)
            except msgspec.DecodeError:
                self.dropped += 1
                net_debug_log("udp_recv_malformed", addr=format_addr(addr), size=len(blob))
                continue
            self.received += 1
            out.append((addr, packet))
        return out


__all__ = ["MAX_DATAGRAM", "PacketTransport", "PeerAddr", "PeerClock", "UdpTransport", "format_addr"]
