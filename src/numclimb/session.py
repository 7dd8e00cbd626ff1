from __future__ import annotations

from dataclasses import dataclass, field
import random

from .calc import CalcPhase, Calculator
from .geom import Rect
from .level.generator import generate
from .level.layout import PLAYER_H, PLAYER_W
from .level.types import Level, Operator, Tile, TileKind
from .physics import Avatar, InputState, overlapping_tiles, push_apart, step_avatar

SEED_LIMIT = 999_999_999


@dataclass(frozen=True, slots=True)
class TilePicked:
    tile: Tile
    before: int
    operator: Operator | None
    after: int

    @property
    def caption(self) -> str:
        """Floating text for the pickup, e.g. `5 + 3 = 8`."""
        if self.operator is not None and self.tile.kind is TileKind.NUMBER:
            return f"{self.before} {self.operator.value} {self.tile.label} = {self.after}"
        return self.tile.label


@dataclass(frozen=True, slots=True)
class StageCleared:
    target: int


@dataclass(frozen=True, slots=True)
class LevelRestarted:
    seed: int
    fell_out: bool = False


SessionEvent = TilePicked | StageCleared | LevelRestarted


@dataclass(slots=True)
class AvatarSnapshot:
    """Last reported state of the other peer; replaced wholesale, never simulated."""

    x: float = 0.0
    y: float = 0.0
    facing_right: bool = True
    walk_phase: float = 0.0
    current_value: int = 0
    pending_operator: Operator | None = None
    calc_phase: CalcPhase = CalcPhase.INITIAL

    @property
    def rect(self) -> Rect:
        return Rect(self.x, self.y, PLAYER_W, PLAYER_H)


@dataclass(slots=True)
class GameSession:
    """One player's local game: level, avatar, calculator and (online) opponent mirror."""

    rng: random.Random = field(default_factory=random.Random)
    online: bool = False
    tier: int = 0
    seed: int = 0
    level: Level | None = None
    avatar: Avatar = field(default_factory=Avatar)
    calc: Calculator = field(default_factory=Calculator)
    opponent: AvatarSnapshot | None = None
    running: bool = False
    won: bool = False
    result: str | None = None

    def _fresh_seed(self) -> int:
        return self.rng.randrange(SEED_LIMIT)

    def _load(self, tier: int, seed: int) -> None:
        self.tier = int(tier)
        self.seed = int(seed)
        self.level = generate(self.tier, self.seed)
        self.avatar = Avatar.spawn(self.level.player_start)
        self.calc.reset()
        self.running = True
        self.won = False
        self.result = None

    def start_local(self, tier: int = 0, seed: int | None = None) -> Level:
        self.online = False
        self.opponent = None
        self._load(tier, self._fresh_seed() if seed is None else seed)
        assert self.level is not None
        return self.level

    def start_online(self, level_index: int, seed: int) -> Level:
        self.online = True
        self.opponent = None
        self._load(level_index, seed)
        assert self.level is not None
        return self.level

    def restart(self, seed: int | None = None) -> None:
        """Reload the current stage, by default with the same seed.

        Every tile comes back, including ones the opponent took this attempt.
        """
        self._load(self.tier, self.seed if seed is None else seed)

    def next_stage(self) -> Level:
        if self.online:
            raise RuntimeError("stage progression is driven by the server in online play")
        return self.start_local(self.tier + 1)

    def tick(self, inp: InputState) -> list[SessionEvent]:
        level = self.level
        if level is None or not self.running:
            return []

        if inp.restart:
            self.restart()
            return [LevelRestarted(seed=self.seed)]

        step = step_avatar(self.avatar, level, inp)
        if step.fell_out:
            self.restart()
            return [LevelRestarted(seed=self.seed, fell_out=True)]

        events: list[SessionEvent] = []
        for tile in overlapping_tiles(self.avatar, level.tiles):
            before = self.calc.current_value
            operator = self.calc.pending_operator
            if not self.calc.feed(tile):
                continue
            events.append(TilePicked(tile=tile, before=before, operator=operator, after=self.calc.current_value))
            if self.calc.reached(level.target):
                self.running = False
                self.won = True
                events.append(StageCleared(target=level.target))
                break

        opponent = self.opponent
        if self.online and opponent is not None and self.running:
            push_apart(self.avatar, opponent.rect)
        return events

    def snapshot(self) -> AvatarSnapshot:
        return AvatarSnapshot(
            x=self.avatar.x,
            y=self.avatar.y,
            facing_right=self.avatar.facing_right,
            walk_phase=self.avatar.walk_phase,
            current_value=self.calc.display_value,
            pending_operator=self.calc.pending_operator,
            calc_phase=self.calc.phase,
        )

    def apply_opponent_state(self, snapshot: AvatarSnapshot) -> None:
        self.opponent = snapshot

    def apply_tile_claimed(self, tile_id: int) -> bool:
        """Mark a tile the opponent picked up. Returns False when it was already gone."""
        level = self.level
        if level is None:
            return False
        tile = level.tile(tile_id)
        if tile is None or tile.collected:
            return False
        tile.collected = True
        return True

    def apply_game_result(self, result: str) -> None:
        self.running = False
        self.result = str(result)

    def opponent_left(self) -> None:
        self.running = False
        self.opponent = None
