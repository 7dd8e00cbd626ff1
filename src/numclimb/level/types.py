from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum, IntEnum

from ..geom import Rect, Vec2

TILE_SIZE = 40.0


class TileKind(IntEnum):
    NUMBER = 0
    OPERATOR = 1


class Operator(str, Enum):
    ADD = "+"
    SUB = "-"
    MUL = "×"
    DIV = "÷"


ALL_OPERATORS: tuple[Operator, ...] = (Operator.ADD, Operator.SUB, Operator.MUL, Operator.DIV)

ChainItem = int | Operator


def apply_operator(op: Operator, a: int, b: int) -> int | None:
    """Integer arithmetic for one calculator step; `None` when `÷` has a zero divisor."""
    if op is Operator.ADD:
        return a + b
    if op is Operator.SUB:
        return a - b
    if op is Operator.MUL:
        return a * b
    if b == 0:
        return None
    return a // b


def evaluate_chain(items: Iterable[ChainItem]) -> int | None:
    """Evaluate `n op n op n ...` left to right with no precedence."""
    value: int | None = None
    pending: Operator | None = None
    for item in items:
        if isinstance(item, Operator):
            if value is None or pending is not None:
                return None
            pending = item
            continue
        if value is None:
            value = int(item)
            continue
        if pending is None:
            return None
        value = apply_operator(pending, value, int(item))
        if value is None:
            return None
        pending = None
    if pending is not None:
        return None
    return value


@dataclass(slots=True)
class Tile:
    tile_id: int
    kind: TileKind
    value: int | Operator
    x: float
    y: float
    collected: bool = False
    bob_phase: float = 0.0

    @property
    def rect(self) -> Rect:
        return Rect(self.x, self.y, TILE_SIZE, TILE_SIZE)

    @property
    def label(self) -> str:
        if isinstance(self.value, Operator):
            return self.value.value
        return str(self.value)

    @property
    def chain_item(self) -> ChainItem:
        return self.value


@dataclass(slots=True)
class Level:
    """One generated stage. Geometry and tile placement never change after generation;
    only `Tile.collected` flips during play."""

    tier: int
    seed: int
    target: int
    platforms: tuple[Rect, ...]
    ladders: tuple[Rect, ...]
    tiles: list[Tile] = field(default_factory=list)
    player_start: Vec2 = field(default_factory=Vec2)

    def tile(self, tile_id: int) -> Tile | None:
        if 0 <= int(tile_id) < len(self.tiles):
            return self.tiles[int(tile_id)]
        return None

    def to_dict(self) -> dict[str, object]:
        return {
            "tier": int(self.tier),
            "seed": int(self.seed),
            "target": int(self.target),
            "platforms": [rect.to_dict() for rect in self.platforms],
            "ladders": [rect.to_dict() for rect in self.ladders],
            "tiles": [
                {
                    "id": int(tile.tile_id),
                    "kind": tile.kind.name.lower(),
                    "value": tile.label,
                    "x": float(tile.x),
                    "y": float(tile.y),
                }
                for tile in self.tiles
            ],
            "player_start": self.player_start.to_dict(),
        }
