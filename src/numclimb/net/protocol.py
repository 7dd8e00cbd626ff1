from __future__ import annotations

from typing import TypeAlias

import msgspec

PROTOCOL_VERSION = 1
DEFAULT_PORT = 31994
MAX_ROOM_PLAYERS = 2
ROOM_CODE_LENGTH = 5
ROOM_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
LEVEL_COUNT = 3
SEED_LIMIT = 999_999_999
STATE_SYNC_INTERVAL_MS = 50
HEARTBEAT_INTERVAL_MS = 250
RELIABLE_RESEND_MS = 40
LINK_TIMEOUT_MS = 3000

RESULT_WIN = "win"
RESULT_LOSE = "lose"


class CreateRoom(msgspec.Struct, tag_field="kind", tag="create-room", forbid_unknown_fields=True):
    protocol_version: int = PROTOCOL_VERSION


class CreateRoomResult(msgspec.Struct, tag_field="kind", tag="create-room-result", forbid_unknown_fields=True):
    success: bool = False
    room_id: str = ""
    player_index: int = -1
    error: str = ""


class JoinRoom(msgspec.Struct, tag_field="kind", tag="join-room", forbid_unknown_fields=True):
    room_id: str = ""
    protocol_version: int = PROTOCOL_VERSION


class JoinRoomResult(msgspec.Struct, tag_field="kind", tag="join-room-result", forbid_unknown_fields=True):
    success: bool = False
    room_id: str = ""
    player_index: int = -1
    error: str = ""


class GameStart(msgspec.Struct, tag_field="kind", tag="game-start", forbid_unknown_fields=True):
    level_index: int = 0
    seed: int = 0


class PlayerState(msgspec.Struct, tag_field="kind", tag="player-state", forbid_unknown_fields=True):
    x: float = 0.0
    y: float = 0.0
    facing_right: bool = True
    walk_phase: float = 0.0
    current_value: int = 0
    pending_operator: str | None = None
    calc_phase: str = "initial"


class TileClaimed(msgspec.Struct, tag_field="kind", tag="tile-claimed", forbid_unknown_fields=True):
    tile_id: int = -1
    x: float = 0.0
    y: float = 0.0
    tile_kind: str = ""
    value: str = ""


class PlayerWon(msgspec.Struct, tag_field="kind", tag="player-won", forbid_unknown_fields=True):
    pass


class GameResult(msgspec.Struct, tag_field="kind", tag="game-result", forbid_unknown_fields=True):
    result: str = ""


class Rematch(msgspec.Struct, tag_field="kind", tag="rematch", forbid_unknown_fields=True):
    pass


class OpponentWantsRematch(msgspec.Struct, tag_field="kind", tag="opponent-wants-rematch", forbid_unknown_fields=True):
    pass


class OpponentJoined(msgspec.Struct, tag_field="kind", tag="opponent-joined", forbid_unknown_fields=True):
    pass


class OpponentLeft(msgspec.Struct, tag_field="kind", tag="opponent-left", forbid_unknown_fields=True):
    pass


class Heartbeat(msgspec.Struct, tag_field="kind", tag="heartbeat", forbid_unknown_fields=True):
    pass


class Leave(msgspec.Struct, tag_field="kind", tag="leave", forbid_unknown_fields=True):
    reason: str = ""


NetMessage: TypeAlias = (
    CreateRoom
    | CreateRoomResult
    | JoinRoom
    | JoinRoomResult
    | GameStart
    | PlayerState
    | TileClaimed
    | PlayerWon
    | GameResult
    | Rematch
    | OpponentWantsRematch
    | OpponentJoined
    | OpponentLeft
    | Heartbeat
    | Leave
)

# Per-tick traffic that is superseded by the next send; no resend needed.
UNRELIABLE_MESSAGES: tuple[type, ...] = (PlayerState, Heartbeat)


def message_kind(message: NetMessage) -> str:
    return str(type(message).__struct_config__.tag)


class Packet(msgspec.Struct, forbid_unknown_fields=True):
    seq: int = 0
    ack: int = 0
    reliable: bool = False
    message: NetMessage = msgspec.field(default_factory=Heartbeat)


_PACKET_DECODER = msgspec.msgpack.Decoder(type=Packet)


def encode_packet(packet: Packet) -> bytes:
    return msgspec.msgpack.encode(packet)


def decode_packet(blob: bytes) -> Packet:
    return _PACKET_DECODER.decode(blob)
