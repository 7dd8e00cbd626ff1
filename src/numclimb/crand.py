from __future__ import annotations

from collections.abc import MutableSequence, Sequence
from typing import TypeVar

T = TypeVar("T")

_LCG_MUL = 1664525
_LCG_ADD = 1013904223
_LCG_SPAN = 0x1_0000_0000


class Lcg:
    """32-bit LCG driving level generation.

    Matches:
      state = state * 1664525 + 1013904223  (mod 2**32)
      return state / 2**32
    """

    __slots__ = ("_state",)

    def __init__(self, seed: int) -> None:
        self._state = seed & 0xFFFFFFFF

    @property
    def state(self) -> int:
        return self._state

    def srand(self, seed: int) -> None:
        self._state = seed & 0xFFFFFFFF

    def rand(self) -> float:
        self._state = (self._state * _LCG_MUL + _LCG_ADD) & 0xFFFFFFFF
        return self._state / _LCG_SPAN

    def rand_int(self, low: int, high: int) -> int:
        """Inclusive range; an empty span (`high < low`) still consumes a value and yields `low`."""
        span = max(0, int(high) - int(low) + 1)
        return int(self.rand() * span) + int(low)

    def choice(self, items: Sequence[T]) -> T:
        return items[int(self.rand() * len(items))]

    def shuffle(self, items: MutableSequence[T]) -> None:
        for i in range(len(items) - 1, 0, -1):
            j = int(self.rand() * (i + 1))
            items[i], items[j] = items[j], items[i]
