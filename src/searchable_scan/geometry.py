"""Bounding-box arithmetic on recognizer quadrilaterals.

A quadrilateral is eight numbers, the corners top-left, top-right,
bottom-right and bottom-left as ``x, y`` pairs in pixel space (origin at the
top-left, Y grows downward). The helpers return ``None`` for malformed
input and callers treat it as unknown geometry; ``require_extent`` raises
``MalformedGeometry`` instead.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Sequence

from .errors import MalformedGeometry

Quad = Sequence[float]


@dataclass(frozen=True)
class Extent:
    left: float
    right: float
    top: float
    bottom: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    @property
    def center_x(self) -> float:
        return (self.left + self.right) / 2

    @property
    def center_y(self) -> float:
        return (self.top + self.bottom) / 2

    @property
    def is_degenerate(self) -> bool:
        return self.width <= 0 or self.height <= 0


def is_valid_quad(quad: Quad | None) -> bool:
    if quad is None or len(quad) < 8:
        return False
    try:
        return all(math.isfinite(float(value)) for value in quad[:8])
    except (TypeError, ValueError):
        return False


def extent(quad: Quad | None) -> Extent | None:
    if not is_valid_quad(quad):
        return None
    xs = [float(quad[idx]) for idx in (0, 2, 4, 6)]
    ys = [float(quad[idx]) for idx in (1, 3, 5, 7)]
    return Extent(left=min(xs), right=max(xs), top=min(ys), bottom=max(ys))


def require_extent(quad: Quad | None) -> Extent:
    box = extent(quad)
    if box is None:
        raise MalformedGeometry(f"Expected 8 finite coordinates, got {quad!r}")
    return box


def union_extent(extents: Iterable[Extent | None]) -> Extent | None:
    known = [item for item in extents if item is not None]
    if not known:
        return None
    return Extent(
        left=min(item.left for item in known),
        right=max(item.right for item in known),
        top=min(item.top for item in known),
        bottom=max(item.bottom for item in known),
    )


def horizontal_gap(a: Quad | None, b: Quad | None) -> float | None:
    """Distance from the right edge of ``a`` to the left edge of ``b``; negative on overlap."""
    first, second = extent(a), extent(b)
    if first is None or second is None:
        return None
    return second.left - first.right


def vertical_gap(a: Quad | None, b: Quad | None) -> float | None:
    """Distance from the bottom edge of ``a`` to the top edge of ``b``."""
    first, second = extent(a), extent(b)
    if first is None or second is None:
        return None
    return second.top - first.bottom


def center_distance(a: Quad | None, b: Quad | None) -> float | None:
    """Vertical distance between the box centers."""
    first, second = extent(a), extent(b)
    if first is None or second is None:
        return None
    return abs(second.center_y - first.center_y)


def quad_from_box(left: float, top: float, width: float, height: float) -> tuple[float, ...]:
    right = left + width
    bottom = top + height
    return (left, top, right, top, right, bottom, left, bottom)
