from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
import random
import time

from .debug_log import net_debug_log
from .protocol import (
    DEFAULT_PORT,
    HEARTBEAT_INTERVAL_MS,
    LEVEL_COUNT,
    LINK_TIMEOUT_MS,
    UNRELIABLE_MESSAGES,
    Heartbeat,
    NetMessage,
    Packet,
    message_kind,
)
from .reliable import ReliableLink
from .rooms import Outbound, RoomCoordinator
from .transport import PacketTransport, PeerAddr, PeerClock, UdpTransport, format_addr


def _now_ms() -> int:
    return int(time.monotonic() * 1000.0)


@dataclass(slots=True)
class ServerConfig:
    bind_host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    level_count: int = LEVEL_COUNT
    link_timeout_ms: int = LINK_TIMEOUT_MS
    poll_interval_s: float = 0.005


@dataclass(slots=True)
class _PeerLink:
    addr: PeerAddr
    link: ReliableLink = field(default_factory=ReliableLink)


@dataclass(slots=True)
class RelayServer:
    """Room coordinator behind a datagram socket.

    Peers are identified by address. A peer that stays silent for
    `link_timeout_ms` (or says `leave`) goes through the coordinator's
    disconnect path.
    """

    cfg: ServerConfig = field(default_factory=ServerConfig)
    transport: PacketTransport | None = None
    rng: random.Random = field(default_factory=random.Random)
    coordinator: RoomCoordinator = field(init=False)
    peers: dict[PeerAddr, _PeerLink] = field(init=False, default_factory=dict)
    clock: PeerClock = field(init=False)

    def __post_init__(self) -> None:
        if self.transport is None:
            self.transport = UdpTransport(bind_host=str(self.cfg.bind_host), bind_port=int(self.cfg.port))
        self.coordinator = RoomCoordinator(rng=self.rng, level_count=int(self.cfg.level_count))
        self.clock = PeerClock(timeout_ms=int(self.cfg.link_timeout_ms))

    @property
    def bound_port(self) -> int:
        assert self.transport is not None
        return int(self.transport.bound_port)

    def open(self) -> None:
        assert self.transport is not None
        self.transport.open()
        net_debug_log("server_open", bind_host=str(self.cfg.bind_host), bind_port=self.bound_port)

    def close(self) -> None:
        assert self.transport is not None
        try:
            self.transport.close()
        finally:
            self.peers.clear()
            self.clock.clear()
            net_debug_log("server_close")

    def update(self, *, now_ms: int | None = None) -> None:
        if now_ms is None:
            now_ms = _now_ms()
        assert self.transport is not None

        for addr, packet in self.transport.recv_packets():
            if self.clock.heard(addr, int(now_ms)):
                net_debug_log("server_peer_new", addr=format_addr(addr))
            peer = self.peers.get(addr)
            if peer is None:
                peer = self.peers[addr] = _PeerLink(addr=addr)

            messages, dup = peer.link.ingest_packet(packet)
            if dup:
                net_debug_log("net_recv_dup", addr=format_addr(addr), seq=int(packet.seq))
            for message in messages:
                self._handle(addr, message, now_ms=int(now_ms))

        for addr in self.clock.expired(int(now_ms)):
            net_debug_log("net_timeout", addr=format_addr(addr), silent_ms=self.clock.silent_ms(addr, int(now_ms)))
            self._drop_peer(addr, now_ms=int(now_ms))

        for addr, peer in list(self.peers.items()):
            for resend in peer.link.poll_resends(now_ms=int(now_ms)):
                self._send_packet(addr, resend)
            if int(now_ms) - peer.link.last_send_ms >= HEARTBEAT_INTERVAL_MS:
                self._send(addr, Heartbeat(), now_ms=int(now_ms))

    def serve_forever(self, *, should_stop: Callable[[], bool] | None = None) -> None:
        while should_stop is None or not should_stop():
            self.update()
            time.sleep(float(self.cfg.poll_interval_s))

    def _handle(self, addr: PeerAddr, message: NetMessage, *, now_ms: int) -> None:
        kind = message_kind(message)
        if kind not in ("player-state", "heartbeat"):
            net_debug_log("net_recv", kind=kind, addr=format_addr(addr))
        outbound = self.coordinator.handle(addr, message)
        if kind == "leave":
            self.peers.pop(addr, None)
            self.clock.forget(addr)
        self._dispatch(outbound, now_ms=now_ms)

    def _drop_peer(self, addr: PeerAddr, *, now_ms: int) -> None:
        self.peers.pop(addr, None)
        self.clock.forget(addr)
        self._dispatch(self.coordinator.disconnect(addr), now_ms=now_ms)

    def _dispatch(self, outbound: list[Outbound], *, now_ms: int) -> None:
        for item in outbound:
            peer = item.peer
            assert isinstance(peer, tuple)
            self._send(peer, item.message, now_ms=now_ms)

    def _send(self, addr: PeerAddr, message: NetMessage, *, now_ms: int) -> None:
        peer = self.peers.get(addr)
        if peer is None:
            return
        reliable = not isinstance(message, UNRELIABLE_MESSAGES)
        packet = peer.link.build_packet(message, reliable=reliable, now_ms=int(now_ms))
        self._send_packet(addr, packet)
        if reliable:
            net_debug_log("net_send", kind=message_kind(message), addr=format_addr(addr))

    def _send_packet(self, addr: PeerAddr, packet: Packet) -> None:
        assert self.transport is not None
        self.transport.send_packet(addr, packet)


__all__ = ["RelayServer", "ServerConfig"]
