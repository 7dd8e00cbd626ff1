from __future__ import annotations

from collections.abc import Hashable
from dataclasses import dataclass, field
from enum import Enum
import random

from .debug_log import net_debug_log
from .protocol import (
    LEVEL_COUNT,
    MAX_ROOM_PLAYERS,
    PROTOCOL_VERSION,
    RESULT_LOSE,
    RESULT_WIN,
    ROOM_CODE_ALPHABET,
    ROOM_CODE_LENGTH,
    SEED_LIMIT,
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
    PlayerState,
    PlayerWon,
    Rematch,
    TileClaimed,
    message_kind,
)

PeerId = Hashable


class RoomPhase(str, Enum):
    WAITING = "waiting"
    PLAYING = "playing"
    FINISHED = "finished"


class RoomError(str, Enum):
    ROOM_NOT_FOUND = "room_not_found"
    ROOM_FULL = "room_full"
    ROOM_NOT_WAITING = "room_not_waiting"
    ALREADY_IN_ROOM = "already_in_room"
    PROTOCOL_MISMATCH = "protocol_mismatch"


@dataclass(slots=True)
class RoomPlayer:
    peer: PeerId
    slot: int = 0
    wants_rematch: bool = False


@dataclass(slots=True)
class Room:
    room_id: str
    players: list[RoomPlayer] = field(default_factory=list)
    phase: RoomPhase = RoomPhase.WAITING
    level_index: int = 0
    seed: int = 0
    winner: PeerId | None = None
    matches_started: int = 0

    @property
    def peers(self) -> list[PeerId]:
        return [player.peer for player in self.players]

    @property
    def is_full(self) -> bool:
        return len(self.players) >= MAX_ROOM_PLAYERS

    def free_slot(self) -> int:
        """Lowest player index not held by anyone in the room."""
        taken = {player.slot for player in self.players}
        return next(slot for slot in range(MAX_ROOM_PLAYERS + 1) if slot not in taken)

    def player(self, peer: PeerId) -> RoomPlayer | None:
        return next((player for player in self.players if player.peer == peer), None)

    def others(self, peer: PeerId) -> list[PeerId]:
        return [player.peer for player in self.players if player.peer != peer]


@dataclass(frozen=True, slots=True)
class Outbound:
    peer: PeerId
    message: NetMessage


def normalize_room_id(room_id: str) -> str:
    return str(room_id).strip().upper()


@dataclass(slots=True)
class RoomCoordinator:
    """Matchmaking and result state for every room; a reducer over peer messages.

    Each call handles one inbound event to completion and returns the messages
    to send. Game state is never simulated here: relay traffic is forwarded as-is.
    """

    rng: random.Random = field(default_factory=random.Random)
    level_count: int = LEVEL_COUNT
    rooms: dict[str, Room] = field(default_factory=dict)
    room_by_peer: dict[PeerId, str] = field(default_factory=dict)

    def room_of(self, peer: PeerId) -> Room | None:
        room_id = self.room_by_peer.get(peer)
        if room_id is None:
            return None
        return self.rooms.get(room_id)

    def handle(self, peer: PeerId, message: NetMessage) -> list[Outbound]:
        if isinstance(message, CreateRoom):
            return self.create_room(peer, protocol_version=int(message.protocol_version))
        if isinstance(message, JoinRoom):
            return self.join_room(peer, message.room_id, protocol_version=int(message.protocol_version))
        if isinstance(message, (PlayerState, TileClaimed)):
            return self.relay(peer, message)
        if isinstance(message, PlayerWon):
            return self.report_win(peer)
        if isinstance(message, Rematch):
            return self.request_rematch(peer)
        if isinstance(message, Leave):
            return self.disconnect(peer)
        if isinstance(message, Heartbeat):
            return []
        net_debug_log("room_unexpected_message", peer=str(peer), kind=message_kind(message))
        return []

    def _new_room_id(self) -> str:
        while True:
            room_id = "".join(self.rng.choice(ROOM_CODE_ALPHABET) for _ in range(ROOM_CODE_LENGTH))
            if room_id not in self.rooms:
                return room_id

    def create_room(self, peer: PeerId, *, protocol_version: int = PROTOCOL_VERSION) -> list[Outbound]:
        error: RoomError | None = None
        if int(protocol_version) != PROTOCOL_VERSION:
            error = RoomError.PROTOCOL_MISMATCH
        elif peer in self.room_by_peer:
            error = RoomError.ALREADY_IN_ROOM
        if error is not None:
            net_debug_log("room_create_rejected", peer=str(peer), error=error.value)
            return [Outbound(peer, CreateRoomResult(success=False, error=error.value))]

        room = Room(room_id=self._new_room_id(), players=[RoomPlayer(peer=peer, slot=0)])
        self.rooms[room.room_id] = room
        self.room_by_peer[peer] = room.room_id
        net_debug_log("room_create", room=room.room_id, peer=str(peer))
        return [Outbound(peer, CreateRoomResult(success=True, room_id=room.room_id, player_index=0))]

    def _join_error(self, peer: PeerId, room: Room | None, protocol_version: int) -> RoomError | None:
        if int(protocol_version) != PROTOCOL_VERSION:
            return RoomError.PROTOCOL_MISMATCH
        if peer in self.room_by_peer:
            return RoomError.ALREADY_IN_ROOM
        if room is None:
            return RoomError.ROOM_NOT_FOUND
        if room.is_full:
            return RoomError.ROOM_FULL
        if room.phase is not RoomPhase.WAITING:
            return RoomError.ROOM_NOT_WAITING
        return None

    def join_room(self, peer: PeerId, room_id: str, *, protocol_version: int = PROTOCOL_VERSION) -> list[Outbound]:
        room_id = normalize_room_id(room_id)
        room = self.rooms.get(room_id)
        error = self._join_error(peer, room, protocol_version)
        if error is not None:
            net_debug_log("room_join_rejected", room=room_id, peer=str(peer), error=error.value)
            return [Outbound(peer, JoinRoomResult(success=False, room_id=room_id, error=error.value))]
        assert room is not None

        others = room.peers
        player_index = room.free_slot()
        room.players.append(RoomPlayer(peer=peer, slot=player_index))
        room.players.sort(key=lambda player: player.slot)
        self.room_by_peer[peer] = room.room_id
        net_debug_log("room_join", room=room.room_id, peer=str(peer), player_index=player_index)

        out = [Outbound(peer, JoinRoomResult(success=True, room_id=room.room_id, player_index=player_index))]
        out.extend(Outbound(other, OpponentJoined()) for other in others)
        if room.is_full:
            out.extend(self._start_match(room))
        return out

    def _start_match(self, room: Room) -> list[Outbound]:
        room.phase = RoomPhase.PLAYING
        room.winner = None
        room.level_index = self.rng.randrange(max(1, int(self.level_count)))
        room.seed = self.rng.randrange(SEED_LIMIT)
        room.matches_started += 1
        for player in room.players:
            player.wants_rematch = False
        net_debug_log(
            "room_match_start",
            room=room.room_id,
            level_index=room.level_index,
            seed=room.seed,
            match=room.matches_started,
        )
        start = GameStart(level_index=room.level_index, seed=room.seed)
        return [Outbound(peer, start) for peer in room.peers]

    def relay(self, peer: PeerId, message: PlayerState | TileClaimed) -> list[Outbound]:
        room = self.room_of(peer)
        if room is None:
            return []
        return [Outbound(other, message) for other in room.others(peer)]

    def report_win(self, peer: PeerId) -> list[Outbound]:
        room = self.room_of(peer)
        if room is None or room.phase is not RoomPhase.PLAYING:
            net_debug_log("room_win_ignored", peer=str(peer))
            return []
        room.phase = RoomPhase.FINISHED
        room.winner = peer
        net_debug_log("room_win", room=room.room_id, peer=str(peer))
        out = [Outbound(peer, GameResult(result=RESULT_WIN))]
        out.extend(Outbound(other, GameResult(result=RESULT_LOSE)) for other in room.others(peer))
        return out

    def request_rematch(self, peer: PeerId) -> list[Outbound]:
        room = self.room_of(peer)
        if room is None or room.phase is not RoomPhase.FINISHED or not room.is_full:
            net_debug_log("room_rematch_ignored", peer=str(peer))
            return []
        player = room.player(peer)
        assert player is not None
        player.wants_rematch = True
        if all(p.wants_rematch for p in room.players):
            net_debug_log("room_rematch", room=room.room_id)
            return self._start_match(room)
        return [Outbound(other, OpponentWantsRematch()) for other in room.others(peer)]

    def disconnect(self, peer: PeerId) -> list[Outbound]:
        room_id = self.room_by_peer.pop(peer, None)
        if room_id is None:
            return []
        room = self.rooms.get(room_id)
        if room is None:
            return []
        room.players = [player for player in room.players if player.peer != peer]
        if not room.players:
            del self.rooms[room_id]
            net_debug_log("room_destroy", room=room_id)
            return []

        room.phase = RoomPhase.WAITING
        room.winner = None
        for player in room.players:
            player.wants_rematch = False
        net_debug_log("room_opponent_left", room=room_id, peer=str(peer))
        return [Outbound(other, OpponentLeft()) for other in room.peers]
