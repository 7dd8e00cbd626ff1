from __future__ import annotations

from .types import Level, Operator, Tile, TileKind, apply_operator

DEFAULT_MAX_TILES = 7


def find_solution(level: Level, *, max_tiles: int = DEFAULT_MAX_TILES) -> list[Tile] | None:
    """Depth-first search for a pickup order the calculator accepts that lands on the target.

    Only uncollected tiles are considered. Returns the tiles in pickup order.
    """
    numbers = [tile for tile in level.tiles if not tile.collected and tile.kind is TileKind.NUMBER]
    operators = [tile for tile in level.tiles if not tile.collected and tile.kind is TileKind.OPERATOR]
    target = int(level.target)
    path: list[Tile] = []
    used: set[int] = set()

    def _after_number(value: int) -> bool:
        if value == target:
            return True
        if len(path) + 2 > max_tiles:
            return False
        for op_tile in operators:
            if op_tile.tile_id in used:
                continue
            used.add(op_tile.tile_id)
            path.append(op_tile)
            if _after_operator(value, op_tile.value):
                return True
            path.pop()
            used.discard(op_tile.tile_id)
        return False

    def _after_operator(value: int, op: int | Operator) -> bool:
        assert isinstance(op, Operator)
        for num_tile in numbers:
            if num_tile.tile_id in used:
                continue
            result = apply_operator(op, value, int(num_tile.value))
            if result is None:
                continue
            used.add(num_tile.tile_id)
            path.append(num_tile)
            if _after_number(result):
                return True
            path.pop()
            used.discard(num_tile.tile_id)
        return False

    for first in numbers:
        used.add(first.tile_id)
        path.append(first)
        if _after_number(int(first.value)):
            return list(path)
        path.pop()
        used.discard(first.tile_id)
    return None
