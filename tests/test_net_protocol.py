from __future__ import annotations

import msgspec
import pytest

from numclimb.net import protocol
from numclimb.net.protocol import (
    GameStart,
    Heartbeat,
    Packet,
    PlayerState,
    TileClaimed,
    decode_packet,
    encode_packet,
    message_kind,
)


def test_packet_msgpack_round_trip() -> None:
    packet = Packet(
        seq=4,
        ack=2,
        reliable=True,
        message=TileClaimed(tile_id=6, x=380.0, y=544.0, tile_kind="operator", value="×"),
    )

    decoded = decode_packet(encode_packet(packet))

    assert decoded.seq == 4
    assert decoded.ack == 2
    assert decoded.reliable is True
    assert isinstance(decoded.message, TileClaimed)
    assert decoded.message.tile_id == 6
    assert decoded.message.value == "×"


def test_player_state_keeps_optional_operator() -> None:
    packet = Packet(message=PlayerState(x=1.5, y=2.0, pending_operator=None, calc_phase="initial"))

    decoded = decode_packet(encode_packet(packet))

    assert isinstance(decoded.message, PlayerState)
    assert decoded.message.pending_operator is None
    assert decoded.message.x == 1.5


def test_protocol_constants() -> None:
    assert protocol.PROTOCOL_VERSION == 1
    assert protocol.MAX_ROOM_PLAYERS == 2
    assert protocol.ROOM_CODE_LENGTH == 5
    assert protocol.STATE_SYNC_INTERVAL_MS == 50
    assert protocol.LEVEL_COUNT == 3
    assert not set("IO01") & set(protocol.ROOM_CODE_ALPHABET)


def test_message_kinds_are_wire_tags() -> None:
    assert message_kind(GameStart(level_index=1, seed=2)) == "game-start"
    assert message_kind(Heartbeat()) == "heartbeat"
    assert message_kind(TileClaimed()) == "tile-claimed"


def test_decode_packet_rejects_invalid_blob() -> None:
    with pytest.raises(msgspec.DecodeError):
        decode_packet(b"\xc1not-msgpack")

    unknown = msgspec.msgpack.encode({"seq": 1, "ack": 0, "reliable": True, "message": {"kind": "teleport"}})
    with pytest.raises(msgspec.DecodeError):
        decode_packet(unknown)
