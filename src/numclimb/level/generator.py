from __future__ import annotations

import math

from ..crand import Lcg
from .layout import DROP_SPOTS, LADDERS, PLATFORMS, PLAYER_START
from .types import ALL_OPERATORS, ChainItem, Level, Operator, Tile, TileKind

MAX_TIER = 12
MAX_RUNNING_VALUE = 99
DECOY_NUMBER_CHANCE = 0.65


def operators_for_tier(tier: int) -> tuple[Operator, ...]:
    tier = clamp_tier(tier)
    if tier < 3:
        return (Operator.ADD, Operator.SUB)
    if tier < 6:
        return (Operator.ADD, Operator.SUB, Operator.MUL)
    return ALL_OPERATORS


def clamp_tier(tier: int) -> int:
    return max(0, min(int(tier), MAX_TIER))


def chain_operand_count(tier: int) -> int:
    return 2 if clamp_tier(tier) < 3 else 3


def _exact_divisors(value: int) -> list[int]:
    return [d for d in range(2, 10) if value % d == 0 and value // d >= 1]


def build_solution_chain(rng: Lcg, tier: int) -> tuple[list[ChainItem], int]:
    """Roll the guaranteed `n op n [op n]` chain and its target.

    A step that cannot be honored (division with no exact divisor, subtraction
    from 1) silently turns into `+ rand_int(1, 9)` and the loop moves on.
    """
    allowed = operators_for_tier(tier)
    steps = chain_operand_count(tier)

    running = rng.rand_int(2, 9)
    chain: list[ChainItem] = [running]

    for _ in range(steps - 1):
        op = rng.choice(allowed)
        operand: int | None = None
        if op is Operator.MUL:
            operand = rng.rand_int(2, min(5, MAX_RUNNING_VALUE // max(running, 1)))
            operand = max(2, min(9, operand))
            running *= operand
        elif op is Operator.DIV:
            divisors = _exact_divisors(running)
            if divisors:
                operand = rng.choice(divisors)
                running //= operand
        elif op is Operator.SUB:
            if running > 1:
                operand = max(1, rng.rand_int(1, min(running - 1, 9)))
                running -= operand
        else:
            operand = rng.rand_int(1, 9)
            running += operand

        if operand is None:
            op = Operator.ADD
            operand = rng.rand_int(1, 9)
            running += operand

        chain.append(op)
        chain.append(operand)

    return chain, max(running, 1)


def _tile_for(tile_id: int, item: ChainItem, x: float, y: float) -> Tile:
    if isinstance(item, Operator):
        return Tile(tile_id=tile_id, kind=TileKind.OPERATOR, value=item, x=x, y=y)
    return Tile(tile_id=tile_id, kind=TileKind.NUMBER, value=int(item), x=x, y=y)


def generate(tier: int, seed: int) -> Level:
    """Build a solvable level. Pure function of `(tier, seed)`; never fails."""
    tier = clamp_tier(tier)
    rng = Lcg(seed)

    chain, target = build_solution_chain(rng, tier)

    spots = list(DROP_SPOTS)
    rng.shuffle(spots)

    tiles: list[Tile] = []
    for item, spot in zip(chain, spots):
        tiles.append(_tile_for(len(tiles), item, spot.x, spot.y))

    for spot in spots[len(tiles) :]:
        if rng.rand() < DECOY_NUMBER_CHANCE:
            decoy: ChainItem = rng.rand_int(1, 9)
        else:
            decoy = rng.choice(ALL_OPERATORS)
        tiles.append(_tile_for(len(tiles), decoy, spot.x, spot.y))

    for tile in tiles:
        tile.bob_phase = rng.rand() * math.tau

    return Level(
        tier=tier,
        seed=int(seed) & 0xFFFFFFFF,
        target=int(target),
        platforms=PLATFORMS,
        ladders=LADDERS,
        tiles=tiles,
        player_start=PLAYER_START,
    )
