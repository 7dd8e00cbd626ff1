from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .level.types import Operator, Tile, TileKind, apply_operator


class CalcPhase(str, Enum):
    INITIAL = "initial"
    AWAITING_OPERATOR = "awaiting_operator"
    AWAITING_NUMBER = "awaiting_number"


@dataclass(slots=True)
class Calculator:
    """Running value built from tile pickups.

    Numbers and operators must alternate, starting with a number. A tile that
    does not fit the current phase is ignored and stays in the level.
    """

    phase: CalcPhase = CalcPhase.INITIAL
    current_value: int = 0
    pending_operator: Operator | None = None

    def reset(self) -> None:
        self.phase = CalcPhase.INITIAL
        self.current_value = 0
        self.pending_operator = None

    @property
    def display_value(self) -> int:
        if self.phase is CalcPhase.INITIAL:
            return 0
        return int(self.current_value)

    @property
    def has_value(self) -> bool:
        return self.phase is not CalcPhase.INITIAL

    def accepts(self, tile: Tile) -> bool:
        if tile.collected:
            return False
        if tile.kind is TileKind.OPERATOR:
            return self.phase is CalcPhase.AWAITING_OPERATOR
        if self.phase is CalcPhase.INITIAL:
            return True
        if self.phase is CalcPhase.AWAITING_NUMBER:
            assert self.pending_operator is not None
            return apply_operator(self.pending_operator, self.current_value, int(tile.value)) is not None
        return False

    def feed(self, tile: Tile) -> bool:
        """Consume `tile` if the phase allows it. Returns True when a transition happened."""
        if not self.accepts(tile):
            return False

        if tile.kind is TileKind.OPERATOR:
            assert isinstance(tile.value, Operator)
            self.pending_operator = tile.value
            self.phase = CalcPhase.AWAITING_NUMBER
        elif self.phase is CalcPhase.INITIAL:
            self.current_value = int(tile.value)
            self.phase = CalcPhase.AWAITING_OPERATOR
        else:
            assert self.pending_operator is not None
            result = apply_operator(self.pending_operator, self.current_value, int(tile.value))
            assert result is not None
            self.current_value = int(result)
            self.pending_operator = None
            self.phase = CalcPhase.AWAITING_OPERATOR

        tile.collected = True
        return True

    def reached(self, target: int) -> bool:
        return self.has_value and int(self.current_value) == int(target)

    @property
    def hint(self) -> str:
        if self.phase is CalcPhase.INITIAL:
            return "Grab a number!"
        if self.phase is CalcPhase.AWAITING_OPERATOR:
            return "Find an operator!"
        op = self.pending_operator.value if self.pending_operator is not None else "?"
        return f"Number after {op}!"
