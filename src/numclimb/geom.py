from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class Vec2:
    x: float = 0.0
    y: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return {"x": float(self.x), "y": float(self.y)}


@dataclass(slots=True, frozen=True)
class Rect:
    x: float = 0.0
    y: float = 0.0
    w: float = 0.0
    h: float = 0.0

    @property
    def right(self) -> float:
        return self.x + self.w

    @property
    def bottom(self) -> float:
        return self.y + self.h

    @property
    def center(self) -> Vec2:
        return Vec2(self.x + self.w * 0.5, self.y + self.h * 0.5)

    def overlaps(self, other: Rect) -> bool:
        """Strict AABB test; touching edges do not overlap."""
        return self.x < other.right and self.right > other.x and self.y < other.bottom and self.bottom > other.y

    def contains_x(self, x: float) -> bool:
        return self.x < x < self.right

    def spans_y(self, top: float, bottom: float) -> bool:
        return bottom > self.y and top < self.bottom

    def to_dict(self) -> dict[str, float]:
        return {"x": float(self.x), "y": float(self.y), "w": float(self.w), "h": float(self.h)}


def clamp(value: float, low: float, high: float) -> float:
    if value < low:
        return low
    if value > high:
        return high
    return value
