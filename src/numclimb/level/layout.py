from __future__ import annotations

from ..geom import Rect, Vec2
from .types import TILE_SIZE

PLAY_WIDTH = 960.0
PLAY_HEIGHT = 640.0
BLOCK = 48.0

PLAYER_W = 32.0
PLAYER_H = 40.0

GROUND_Y = PLAY_HEIGHT - BLOCK
MID_Y = PLAY_HEIGHT - BLOCK * 4
TOP_Y = PLAY_HEIGHT - BLOCK * 7
PLATFORM_H = BLOCK * 0.5
LADDER_W = 36.0

# Tile drop spots float 8px above the surface they sit on.
_SPOT_LIFT = TILE_SIZE + 8.0

PLATFORMS: tuple[Rect, ...] = (
    Rect(0.0, GROUND_Y, PLAY_WIDTH, BLOCK),
    Rect(0.0, MID_Y, 280.0, PLATFORM_H),
    Rect(340.0, MID_Y, 280.0, PLATFORM_H),
    Rect(680.0, MID_Y, 280.0, PLATFORM_H),
    Rect(60.0, TOP_Y, 240.0, PLATFORM_H),
    Rect(360.0, TOP_Y, 240.0, PLATFORM_H),
    Rect(660.0, TOP_Y, 240.0, PLATFORM_H),
)

_LOWER_LADDER_H = GROUND_Y - MID_Y - PLATFORM_H
_UPPER_LADDER_H = MID_Y - TOP_Y - PLATFORM_H

LADDERS: tuple[Rect, ...] = (
    Rect(140.0, MID_Y + PLATFORM_H, LADDER_W, _LOWER_LADDER_H),
    Rect(460.0, MID_Y + PLATFORM_H, LADDER_W, _LOWER_LADDER_H),
    Rect(780.0, MID_Y + PLATFORM_H, LADDER_W, _LOWER_LADDER_H),
    Rect(300.0, TOP_Y + PLATFORM_H, LADDER_W, _UPPER_LADDER_H),
    Rect(660.0, TOP_Y + PLATFORM_H, LADDER_W, _UPPER_LADDER_H),
)

DROP_SPOTS: tuple[Vec2, ...] = (
    Vec2(200.0, GROUND_Y - _SPOT_LIFT),
    Vec2(380.0, GROUND_Y - _SPOT_LIFT),
    Vec2(560.0, GROUND_Y - _SPOT_LIFT),
    Vec2(740.0, GROUND_Y - _SPOT_LIFT),
    Vec2(60.0, MID_Y - _SPOT_LIFT),
    Vec2(360.0, MID_Y - _SPOT_LIFT),
    Vec2(520.0, MID_Y - _SPOT_LIFT),
    Vec2(800.0, MID_Y - _SPOT_LIFT),
    Vec2(120.0, TOP_Y - _SPOT_LIFT),
    Vec2(420.0, TOP_Y - _SPOT_LIFT),
    Vec2(720.0, TOP_Y - _SPOT_LIFT),
)

PLAYER_START = Vec2(60.0, GROUND_Y - PLAYER_H)
