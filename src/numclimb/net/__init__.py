from __future__ import annotations

from .client import ClientConfig, OnlineClient
from .protocol import (
    DEFAULT_PORT,
    LEVEL_COUNT,
    MAX_ROOM_PLAYERS,
    PROTOCOL_VERSION,
    STATE_SYNC_INTERVAL_MS,
)
from .reliable import ReliableLink
from .rooms import Outbound, Room, RoomCoordinator, RoomError, RoomPhase
from .server import RelayServer, ServerConfig
from .transport import PeerAddr, UdpTransport

__all__ = [
    "ClientConfig",
    "DEFAULT_PORT",
    "LEVEL_COUNT",
    "MAX_ROOM_PLAYERS",
    "OnlineClient",
    "Outbound",
    "PROTOCOL_VERSION",
    "PeerAddr",
    "RelayServer",
    "ReliableLink",
    "Room",
    "RoomCoordinator",
    "RoomError",
    "RoomPhase",
    "STATE_SYNC_INTERVAL_MS",
    "ServerConfig",
    "UdpTransport",
]
