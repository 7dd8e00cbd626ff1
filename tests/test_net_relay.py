from __future__ import annotations

from dataclasses import dataclass, field
import random

from numclimb.calc import CalcPhase
from numclimb.level.types import Operator
from numclimb.net.client import (
    WAITING_FOR_RESULT,
    ClientConfig,
    OnlineClient,
    message_to_snapshot,
    snapshot_to_message,
)
from numclimb.net.protocol import LINK_TIMEOUT_MS, Packet, PlayerState, decode_packet, encode_packet
from numclimb.net.rooms import RoomPhase
from numclimb.net.server import RelayServer, ServerConfig
from numclimb.net.transport import PeerAddr
from numclimb.physics import InputState
from numclimb.session import AvatarSnapshot, GameSession

SERVER_ADDR: PeerAddr = ("127.0.0.1", 31994)
A_ADDR: PeerAddr = ("10.0.0.1", 40001)
B_ADDR: PeerAddr = ("10.0.0.2", 40002)


@dataclass
class LoopbackNetwork:
    queues: dict[PeerAddr, list[tuple[PeerAddr, bytes]]] = field(default_factory=dict)
    drop_once: set[PeerAddr] = field(default_factory=set)


@dataclass
class LoopbackTransport:
    """In-memory datagram transport; packets still go through the msgpack codec."""

    net: LoopbackNetwork
    addr: PeerAddr
    _open: bool = False

    @property
    def bound_port(self) -> int:
        return int(self.addr[1])

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self) -> None:
        self._open = True
        self.net.queues.setdefault(self.addr, [])

    def close(self) -> None:
        self._open = False

    def send_packet(self, addr: PeerAddr, packet: Packet) -> bool:
        if not self._open:
            raise RuntimeError("transport is not open")
        if self.addr in self.net.drop_once:
            self.net.drop_once.discard(self.addr)
            return False
        self.net.queues.setdefault(addr, []).append((self.addr, encode_packet(packet)))
        return True

    def recv_packets(self) -> list[tuple[PeerAddr, Packet]]:
        if not self._open:
            return []
        queue = self.net.queues.setdefault(self.addr, [])
        items = list(queue)
        queue.clear()
        return [(src, decode_packet(blob)) for src, blob in items]


def _server(net: LoopbackNetwork) -> RelayServer:
    server = RelayServer(ServerConfig(), transport=LoopbackTransport(net, SERVER_ADDR), rng=random.Random(3))
    server.open()
    return server


def _client(net: LoopbackNetwork, addr: PeerAddr) -> OnlineClient:
    client = OnlineClient(
        ClientConfig(host=SERVER_ADDR[0], port=SERVER_ADDR[1]),
        session=GameSession(rng=random.Random(1)),
        transport=LoopbackTransport(net, addr),
    )
    client.open(now_ms=0)
    return client


def _pump(server: RelayServer, clients: list[OnlineClient], now: int, *, rounds: int = 3) -> int:
    for _ in range(rounds):
        server.update(now_ms=now)
        for client in clients:
            client.update(now_ms=now)
        now += 1
    return now


def _matched(net: LoopbackNetwork) -> tuple[RelayServer, OnlineClient, OnlineClient, int]:
    server = _server(net)
    a = _client(net, A_ADDR)
    b = _client(net, B_ADDR)
    a.create_room(now_ms=0)
    now = _pump(server, [a, b], 1)
    assert b.join_room(a.room_id.lower(), now_ms=now)
    now = _pump(server, [a, b], now)
    return server, a, b, now


def test_create_and_join_start_the_same_level_on_both_peers() -> None:
    net = LoopbackNetwork()
    server, a, b, _ = _matched(net)

    assert a.room_id == b.room_id
    assert a.player_index == 0
    assert b.player_index == 1
    assert a.opponent_present and b.opponent_present
    assert a.matches_started == b.matches_started == 1
    assert a.session.online and b.session.online
    assert a.session.seed == b.session.seed
    assert a.session.level == b.session.level
    assert server.coordinator.rooms[a.room_id].phase is RoomPhase.PLAYING


def _win_first_pickup(client: OnlineClient, now: int) -> None:
    """Make the first chain tile the target and step onto it."""
    level = client.session.level
    assert level is not None
    first = level.tiles[0]
    level.target = int(first.value)
    client.session.avatar.x = first.x
    client.session.avatar.y = first.y
    client.tick(InputState(), now_ms=now)


def test_pickup_and_win_are_relayed_to_the_opponent() -> None:
    net = LoopbackNetwork()
    server, a, b, now = _matched(net)

    _win_first_pickup(a, now)
    _pump(server, [a, b], now + 1)

    assert b.session.level is not None
    assert b.session.level.tiles[0].collected
    assert b.session.opponent is not None
    assert a.session.result == "win"
    assert b.session.result == "lose"
    assert not b.session.running
    assert a.status == "You win!"
    assert server.coordinator.rooms[a.room_id].winner == A_ADDR


def test_winner_waits_for_the_result_before_claiming_victory() -> None:
    net = LoopbackNetwork()
    server, a, b, now = _matched(net)

    _win_first_pickup(a, now)

    assert not a.session.running
    assert a.session.result is None
    assert a.status == WAITING_FOR_RESULT

    _pump(server, [a, b], now + 1)
    assert a.status == "You win!"


def test_rematch_restarts_both_peers_together() -> None:
    net = LoopbackNetwork()
    server, a, b, now = _matched(net)
    _win_first_pickup(a, now)
    now = _pump(server, [a, b], now + 1)
    assert b.session.result == "lose"

    a.request_rematch(now_ms=now)
    now = _pump(server, [a, b], now + 1)
    assert b.opponent_wants_rematch
    assert not a.opponent_wants_rematch

    b.request_rematch(now_ms=now)
    _pump(server, [a, b], now + 1)

    assert a.matches_started == b.matches_started == 2
    assert a.session.running and b.session.running
    assert a.session.result is None
    assert a.session.seed == b.session.seed
    assert not a.rematch_requested and not b.opponent_wants_rematch


def test_leave_notifies_the_remaining_player() -> None:
    net = LoopbackNetwork()
    server, a, b, now = _matched(net)
    room_id = a.room_id

    b.close(now_ms=now)
    _pump(server, [a], now + 1)

    assert not a.opponent_present
    assert not a.session.running
    assert a.session.opponent is None
    assert a.status == "Opponent left the match."
    assert server.coordinator.rooms[room_id].peers == [A_ADDR]
    assert B_ADDR not in server.peers
    assert b.room_id == ""


def test_silent_peer_times_out_on_the_server() -> None:
    net = LoopbackNetwork()
    server, a, b, _ = _matched(net)

    b.update(now_ms=2000)
    server.update(now_ms=2001)
    assert A_ADDR in server.peers

    server.update(now_ms=3200)
    b.update(now_ms=3201)

    assert A_ADDR not in server.peers
    assert not b.opponent_present
    assert b.error == ""
    assert server.coordinator.rooms[b.room_id].phase is RoomPhase.WAITING


def test_client_reports_timeout_when_server_is_silent() -> None:
    net = LoopbackNetwork()
    client = _client(net, A_ADDR)
    client.create_room(now_ms=0)

    client.update(now_ms=LINK_TIMEOUT_MS - 1)
    assert client.error == ""

    client.update(now_ms=LINK_TIMEOUT_MS)
    assert client.error == "timeout"
    assert client.error_text == "Lost connection to the server"
    assert not client.session.running


def test_lost_request_is_resent() -> None:
    net = LoopbackNetwork()
    server = _server(net)
    client = _client(net, A_ADDR)
    net.drop_once.add(A_ADDR)

    client.create_room(now_ms=0)
    server.update(now_ms=1)
    assert server.coordinator.rooms == {}

    client.update(now_ms=40)
    _pump(server, [client], 41)

    assert client.room_id
    assert len(server.coordinator.rooms) == 1


def test_join_errors_surface_on_the_client() -> None:
    net = LoopbackNetwork()
    server = _server(net)
    client = _client(net, A_ADDR)

    assert not client.join_room("   ", now_ms=0)
    assert client.error == "room_not_found"
    assert net.queues[SERVER_ADDR] == []

    assert client.join_room("QQQQQ", now_ms=0)
    _pump(server, [client], 1)

    assert client.error == "room_not_found"
    assert client.error_text == "Room not found"
    assert client.room_id == ""


def test_player_state_conversion_tolerates_unknown_enums() -> None:
    snap = AvatarSnapshot(
        x=4.0,
        y=5.0,
        current_value=7,
        pending_operator=Operator.MUL,
        calc_phase=CalcPhase.AWAITING_NUMBER,
    )

    message = snapshot_to_message(snap)
    assert message.pending_operator == "×"
    assert message_to_snapshot(message) == snap

    odd = message_to_snapshot(PlayerState(pending_operator="%", calc_phase="dancing"))
    assert odd.pending_operator is None
    assert odd.calc_phase is CalcPhase.INITIAL
