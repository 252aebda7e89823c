"""Plane shape geometry: coordinates, headings and the rotated cell layout."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class Coordinate:
    """Immutable grid coordinate; ``x`` is the column, ``y`` the row."""

    x: int
    y: int


class PlanePart(Enum):
    """Role a cell plays within a plane."""

    HEAD = "head"
    WING = "wing"
    BODY = "body"
    TAIL = "tail"


class Direction(Enum):
    """Heading of a plane; rotating clockwise cycles through all four."""

    UP = "up"
    RIGHT = "right"
    DOWN = "down"
    LEFT = "left"

    def next(self) -> Direction:
        """Return the heading one clockwise quarter turn away."""
        order = list(Direction)
        return order[(order.index(self) + 1) % len(order)]


@dataclass(frozen=True)
class PlaneCell:
    """A coordinate occupied by a plane, tagged with its part."""

    x: int
    y: int
    part: PlanePart

    @property
    def coord(self) -> Coordinate:
        return Coordinate(self.x, self.y)


# Offsets for a plane heading UP, relative to its head:
#
#     H
#   WWWWW
#     B
#    TTT
BASE_SHAPE: tuple[tuple[int, int, PlanePart], ...] = (
    (0, 0, PlanePart.HEAD),
    (-2, 1, PlanePart.WING),
    (-1, 1, PlanePart.WING),
    (0, 1, PlanePart.WING),
    (1, 1, PlanePart.WING),
    (2, 1, PlanePart.WING),
    (0, 2, PlanePart.BODY),
    (-1, 3, PlanePart.TAIL),
    (0, 3, PlanePart.TAIL),
    (1, 3, PlanePart.TAIL),
)


def rotate_offset(dx: int, dy: int, direction: Direction) -> tuple[int, int]:
    """Rotate an UP-relative offset to face ``direction``."""
    if direction is Direction.RIGHT:
        return -dy, dx
    if direction is Direction.DOWN:
        return -dx, -dy
    if direction is Direction.LEFT:
        return dy, -dx
    return dx, dy


def plane_cells(head: Coordinate, direction: Direction) -> tuple[PlaneCell, ...]:
    """Return the ten cells of a plane with the given head and heading.

    Cells are returned in ``BASE_SHAPE`` order, so the head is always first.
    The result may fall outside the grid; bounds are checked by the caller.
    """
    cells = []
    for dx, dy, part in BASE_SHAPE:
        rx, ry = rotate_offset(dx, dy, direction)
        cells.append(PlaneCell(head.x + rx, head.y + ry, part))
    return tuple(cells)
