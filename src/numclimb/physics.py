from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from .geom import Rect, Vec2, clamp
from .level.layout import PLAY_HEIGHT, PLAY_WIDTH, PLAYER_H, PLAYER_W
from .level.types import Level, Tile

GRAVITY = 0.6
MAX_FALL_SPEED = 12.0
WALK_SPEED = 4.5
JUMP_VELOCITY = -14.0
CLIMB_SPEED = 3.5
LADDER_CREEP_SPEED = 1.5
WALK_PHASE_STEP = 0.15
FALL_OUT_MARGIN = 100.0


@dataclass(frozen=True, slots=True)
class InputState:
    """Movement intents held during one tick."""

    left: bool = False
    right: bool = False
    up: bool = False
    down: bool = False
    jump: bool = False
    restart: bool = False

    @property
    def move_x(self) -> int:
        move = 0
        if self.left:
            move = -1
        if self.right:
            move = 1
        return move


@dataclass(slots=True)
class Avatar:
    x: float = 0.0
    y: float = 0.0
    vx: float = 0.0
    vy: float = 0.0
    facing_right: bool = True
    on_ground: bool = False
    on_ladder: bool = False
    walk_phase: float = 0.0

    @classmethod
    def spawn(cls, start: Vec2) -> Avatar:
        return cls(x=float(start.x), y=float(start.y))

    @property
    def rect(self) -> Rect:
        return Rect(self.x, self.y, PLAYER_W, PLAYER_H)

    @property
    def center(self) -> Vec2:
        return self.rect.center


@dataclass(frozen=True, slots=True)
class StepResult:
    fell_out: bool = False


def touching_ladder(avatar: Avatar, ladders: Iterable[Rect]) -> bool:
    center_x = avatar.center.x
    top = avatar.y
    bottom = avatar.y + PLAYER_H
    for ladder in ladders:
        if ladder.contains_x(center_x) and ladder.spans_y(top, bottom):
            return True
    return False


def _clamp_x(avatar: Avatar) -> None:
    avatar.x = clamp(avatar.x, 0.0, PLAY_WIDTH - PLAYER_W)


def step_avatar(avatar: Avatar, level: Level, inp: InputState) -> StepResult:
    """Advance the local avatar by one tick against the level's static geometry."""
    on_ladder_now = touching_ladder(avatar, level.ladders)
    if on_ladder_now and (inp.up or inp.down):
        avatar.on_ladder = True
    if not on_ladder_now:
        avatar.on_ladder = False

    move_x = inp.move_x
    if avatar.on_ladder:
        avatar.vx = 0.0
        avatar.vy = 0.0
        if inp.up:
            avatar.y -= CLIMB_SPEED
        if inp.down:
            avatar.y += CLIMB_SPEED
        avatar.x += move_x * LADDER_CREEP_SPEED
    else:
        avatar.vx = move_x * WALK_SPEED
        if inp.jump and avatar.on_ground:
            avatar.vy = JUMP_VELOCITY
            avatar.on_ground = False
        avatar.vy = min(avatar.vy + GRAVITY, MAX_FALL_SPEED)

    avatar.x += avatar.vx
    _clamp_x(avatar)
    for platform in level.platforms:
        if not avatar.rect.overlaps(platform):
            continue
        if avatar.vx > 0:
            avatar.x = platform.x - PLAYER_W
        elif avatar.vx < 0:
            avatar.x = platform.right

    if not avatar.on_ladder:
        avatar.y += avatar.vy
    avatar.on_ground = False
    for platform in level.platforms:
        if not avatar.rect.overlaps(platform):
            continue
        if avatar.vy >= 0 or avatar.on_ladder:
            avatar.y = platform.y - PLAYER_H
            avatar.vy = 0.0
            avatar.on_ground = True
            if avatar.on_ladder and not inp.down:
                avatar.on_ladder = False
        else:
            avatar.y = platform.bottom
            avatar.vy = 0.0

    if move_x != 0:
        avatar.facing_right = move_x > 0
        avatar.walk_phase += WALK_PHASE_STEP
    else:
        avatar.walk_phase = 0.0

    return StepResult(fell_out=avatar.y > PLAY_HEIGHT + FALL_OUT_MARGIN)


def overlapping_tiles(avatar: Avatar, tiles: Iterable[Tile]) -> list[Tile]:
    rect = avatar.rect
    return [tile for tile in tiles if not tile.collected and rect.overlaps(tile.rect)]


def push_apart(avatar: Avatar, other: Rect) -> bool:
    """Separate the local avatar from the opponent's last known rect.

    Only `avatar` moves; the opponent's own peer resolves its side.
    """
    mine = avatar.rect
    if not mine.overlaps(other):
        return False
    overlap_x = min(mine.right, other.right) - max(mine.x, other.x)
    overlap_y = min(mine.bottom, other.bottom) - max(mine.y, other.y)
    if overlap_x < overlap_y:
        push = overlap_x * 0.5 + 1.0
        if avatar.x < other.x:
            avatar.x -= push
        else:
            avatar.x += push
        _clamp_x(avatar)
    elif avatar.y < other.y:
        avatar.y = other.y - PLAYER_H
        avatar.vy = 0.0
        avatar.on_ground = True
    else:
        avatar.y = other.y + PLAYER_H
        avatar.vy = max(avatar.vy, 0.0)
    return True
