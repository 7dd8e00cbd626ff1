from __future__ import annotations

from dataclasses import dataclass, field
import socket
import time

from ..calc import CalcPhase
from ..level.types import Operator, TileKind
from ..physics import InputState
from ..session import AvatarSnapshot, GameSession, SessionEvent, StageCleared, TilePicked
from .debug_log import net_debug_log, set_net_debug_context
from .protocol import (
    DEFAULT_PORT,
    HEARTBEAT_INTERVAL_MS,
    LINK_TIMEOUT_MS,
    STATE_SYNC_INTERVAL_MS,
    UNRELIABLE_MESSAGES,
    CreateRoom,
    CreateRoomResult,
    GameResult,
    GameStart,
    Heartbeat,
    JoinRoom,
    JoinRoomResult,
    Leave,
    NetMessage,
    OpponentJoined,
    OpponentLeft,
    OpponentWantsRematch,
    Packet,
    PlayerState,
    PlayerWon,
    Rematch,
    TileClaimed,
    message_kind,
)
from .reliable import ReliableLink
from .transport import PacketTransport, PeerAddr, PeerClock, UdpTransport

ERROR_TEXT = {
    "room_not_found": "Room not found",
    "room_full": "Room is full",
    "room_not_waiting": "A match is already running in that room",
    "already_in_room": "Already in a room",
    "protocol_mismatch": "Server speaks a different protocol version",
    "timeout": "Lost connection to the server",
}

WAITING_FOR_RESULT = "Target reached! Waiting for the result..."


def _now_ms() -> int:
    return int(time.monotonic() * 1000.0)


def snapshot_to_message(snapshot: AvatarSnapshot) -> PlayerState:
    op = snapshot.pending_operator
    return PlayerState(
        x=float(snapshot.x),
        y=float(snapshot.y),
        facing_right=bool(snapshot.facing_right),
        walk_phase=float(snapshot.walk_phase),
        current_value=int(snapshot.current_value),
        pending_operator=None if op is None else op.value,
        calc_phase=snapshot.calc_phase.value,
    )


def message_to_snapshot(message: PlayerState) -> AvatarSnapshot:
    """Peer state is taken as reported; unknown enum text degrades to the neutral value."""
    try:
        op = None if message.pending_operator is None else Operator(message.pending_operator)
    except ValueError:
        op = None
    try:
        phase = CalcPhase(message.calc_phase)
    except ValueError:
        phase = CalcPhase.INITIAL
    return AvatarSnapshot(
        x=float(message.x),
        y=float(message.y),
        facing_right=bool(message.facing_right),
        walk_phase=float(message.walk_phase),
        current_value=int(message.current_value),
        pending_operator=op,
        calc_phase=phase,
    )


@dataclass(slots=True)
class ClientConfig:
    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT
    bind_host: str = "0.0.0.0"
    link_timeout_ms: int = LINK_TIMEOUT_MS


@dataclass(slots=True)
class OnlineClient:
    """Peer side of the relay: lobby bookkeeping plus routing match traffic into a `GameSession`."""

    cfg: ClientConfig = field(default_factory=ClientConfig)
    session: GameSession = field(default_factory=GameSession)
    transport: PacketTransport | None = None
    link: ReliableLink = field(default_factory=ReliableLink)
    room_id: str = ""
    player_index: int = -1
    error: str = ""
    status: str = ""
    opponent_present: bool = False
    opponent_wants_rematch: bool = False
    rematch_requested: bool = False
    matches_started: int = 0
    _server: PeerAddr = field(init=False)
    _last_state_ms: int | None = field(init=False, default=None)
    _clock: PeerClock = field(init=False)

    def __post_init__(self) -> None:
        if self.transport is None:
            self.transport = UdpTransport(bind_host=str(self.cfg.bind_host), bind_port=0)
        self._server = (str(self.cfg.host), int(self.cfg.port))
        self._clock = PeerClock(timeout_ms=int(self.cfg.link_timeout_ms))

    @property
    def error_text(self) -> str:
        return ERROR_TEXT.get(self.error, self.error)

    def open(self, *, now_ms: int | None = None) -> None:
        assert self.transport is not None
        self.transport.open()
        self._server = (socket.gethostbyname(self._server[0]), int(self._server[1]))
        self._clock.clear()
        self._clock.heard(self._server, _now_ms() if now_ms is None else int(now_ms))
        net_debug_log("client_open", host=self._server[0], port=self._server[1])

    def close(self, *, now_ms: int | None = None) -> None:
        assert self.transport is not None
        if now_ms is None:
            now_ms = _now_ms()
        if self.transport.is_open:
            self._send(Leave(reason="quit"), now_ms=int(now_ms))
        try:
            self.transport.close()
        finally:
            self.room_id = ""
            self.player_index = -1
            self.opponent_present = False
            self._clock.clear()
            net_debug_log("client_close")
            set_net_debug_context(room=None, player=None)

    def create_room(self, *, now_ms: int | None = None) -> None:
        self.error = ""
        self.status = "Connecting..."
        self._send(CreateRoom(), now_ms=_now_ms() if now_ms is None else int(now_ms))

    def join_room(self, room_id: str, *, now_ms: int | None = None) -> bool:
        """Ask to join `room_id`. Returns False without sending when the code is blank."""
        code = str(room_id).strip().upper()
        if not code:
            self.error = "room_not_found"
            return False
        self.error = ""
        self.status = "Connecting..."
        self._send(JoinRoom(room_id=code), now_ms=_now_ms() if now_ms is None else int(now_ms))
        return True

    def request_rematch(self, *, now_ms: int | None = None) -> None:
        self.rematch_requested = True
        self.status = "Waiting for rematch..."
        self._send(Rematch(), now_ms=_now_ms() if now_ms is None else int(now_ms))

    def tick(self, inp: InputState, *, now_ms: int | None = None) -> list[SessionEvent]:
        """Step the local session and publish what the opponent needs to see."""
        if now_ms is None:
            now_ms = _now_ms()
        events = self.session.tick(inp)
        if not self.session.online:
            return events

        for event in events:
            if isinstance(event, TilePicked):
                tile = event.tile
                self._send(
                    TileClaimed(
                        tile_id=tile.tile_id,
                        x=float(tile.x),
                        y=float(tile.y),
                        tile_kind="number" if tile.kind is TileKind.NUMBER else "operator",
                        value=tile.label,
                    ),
                    now_ms=int(now_ms),
                )
            elif isinstance(event, StageCleared):
                self.status = WAITING_FOR_RESULT
                self._send(PlayerWon(), now_ms=int(now_ms))

        last = self._last_state_ms
        if self.session.level is not None and (last is None or int(now_ms) - last >= STATE_SYNC_INTERVAL_MS):
            self._last_state_ms = int(now_ms)
            self._send(snapshot_to_message(self.session.snapshot()), now_ms=int(now_ms))
        return events

    def update(self, *, now_ms: int | None = None) -> list[NetMessage]:
        """Pump the socket. Returns the messages handled this call."""
        if now_ms is None:
            now_ms = _now_ms()
        assert self.transport is not None

        handled: list[NetMessage] = []
        for addr, packet in self.transport.recv_packets():
            if addr != self._server:
                continue
            self._clock.heard(addr, int(now_ms))
            messages, dup = self.link.ingest_packet(packet)
            if dup:
                net_debug_log("net_recv_dup", seq=int(packet.seq))
            for message in messages:
                self._handle(message)
                handled.append(message)

        if self._server in self._clock.expired(int(now_ms)) and self.error != "timeout":
            self.error = "timeout"
            self.status = self.error_text
            self.session.opponent_left()
            net_debug_log("net_timeout", server=self._server, silent_ms=self._clock.silent_ms(self._server, int(now_ms)))

        for resend in self.link.poll_resends(now_ms=int(now_ms)):
            self._send_packet(resend)
        if int(now_ms) - self.link.last_send_ms >= HEARTBEAT_INTERVAL_MS:
            self._send(Heartbeat(), now_ms=int(now_ms))
        return handled

    def _handle(self, message: NetMessage) -> None:
        kind = message_kind(message)
        if kind not in ("player-state", "heartbeat"):
            net_debug_log("net_recv", kind=kind)
        if isinstance(message, CreateRoomResult):
            self._ingest_room_result(message.success, message.room_id, message.player_index, message.error)
            if message.success:
                self.status = "Waiting for an opponent..."
            return
        if isinstance(message, JoinRoomResult):
            self._ingest_room_result(message.success, message.room_id, message.player_index, message.error)
            if message.success:
                self.opponent_present = True
            return
        if isinstance(message, OpponentJoined):
            self.opponent_present = True
            self.status = "Opponent joined!"
            return
        if isinstance(message, GameStart):
            self.session.start_online(int(message.level_index), int(message.seed))
            self.matches_started += 1
            self.opponent_wants_rematch = False
            self.rematch_requested = False
            self._last_state_ms = None
            self.status = ""
            return
        if isinstance(message, PlayerState):
            if self.session.online:
                self.session.apply_opponent_state(message_to_snapshot(message))
            return
        if isinstance(message, TileClaimed):
            if self.session.online:
                self.session.apply_tile_claimed(int(message.tile_id))
            return
        if isinstance(message, GameResult):
            self.session.apply_game_result(message.result)
            self.status = "You win!" if message.result == "win" else "You lose..."
            return
        if isinstance(message, OpponentWantsRematch):
            self.opponent_wants_rematch = True
            self.status = "Opponent wants a rematch!"
            return
        if isinstance(message, OpponentLeft):
            self.opponent_present = False
            self.opponent_wants_rematch = False
            self.rematch_requested = False
            self.session.opponent_left()
            self.status = "Opponent left the match."
            return

    def _ingest_room_result(self, success: bool, room_id: str, player_index: int, error: str) -> None:
        if not success:
            self.error = str(error or "rejected")
            self.status = self.error_text
            return
        self.error = ""
        self.room_id = str(room_id)
        self.player_index = int(player_index)
        set_net_debug_context(room=self.room_id, player=self.player_index)

    def _send(self, message: NetMessage, *, now_ms: int) -> None:
        reliable = not isinstance(message, UNRELIABLE_MESSAGES)
        packet = self.link.build_packet(message, reliable=reliable, now_ms=int(now_ms))
        self._send_packet(packet)
        if reliable:
            net_debug_log("net_send", kind=message_kind(message))

    def _send_packet(self, packet: Packet) -> None:
        assert self.transport is not None
        self.transport.send_packet(self._server, packet)


__all__ = ["ClientConfig", "OnlineClient", "message_to_snapshot", "snapshot_to_message"]
