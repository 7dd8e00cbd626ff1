from __future__ import annotations

from .generator import build_solution_chain, generate, operators_for_tier
from .solver import find_solution
from .types import ALL_OPERATORS, Level, Operator, Tile, TileKind, apply_operator, evaluate_chain

__all__ = [
    "ALL_OPERATORS",
    "Level",
    "Operator",
    "Tile",
    "TileKind",
    "apply_operator",
    "build_solution_chain",
    "evaluate_chain",
    "find_solution",
    "generate",
    "operators_for_tier",
]
