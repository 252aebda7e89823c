"""Plane domain model and placement validity checks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .geometry import Coordinate, Direction, PlaneCell, PlanePart, plane_cells


@dataclass
class Plane:
    """A single plane; its cells always follow from ``head`` and ``direction``."""

    id: str
    head: Coordinate
    direction: Direction
    is_destroyed: bool = False

    @property
    def cells(self) -> tuple[PlaneCell, ...]:
        """Return the ordered cells occupied by this plane."""
        return plane_cells(self.head, self.direction)

    def coordinates(self) -> set[Coordinate]:
        return {cell.coord for cell in self.cells}

    def occupies(self, coord: Coordinate) -> bool:
        return coord in self.coordinates()

    def part_at(self, coord: Coordinate) -> PlanePart | None:
        for cell in self.cells:
            if cell.x == coord.x and cell.y == coord.y:
                return cell.part
        return None

    def move_to(self, head: Coordinate, direction: Direction) -> None:
        """Reposition the plane; validity is not checked here."""
        self.head = head
        self.direction = direction

    def rotate(self) -> None:
        """Turn the plane a quarter clockwise about its head."""
        self.direction = self.direction.next()

    def overlaps(self, other: Plane) -> bool:
        """Return True if any cell is shared with ``other``."""
        return bool(self.coordinates() & other.coordinates())

    def copy(self) -> Plane:
        return Plane(self.id, self.head, self.direction, self.is_destroyed)


def is_in_bounds(plane: Plane, size: int) -> bool:
    """Check that every cell of ``plane`` lies inside a ``size`` x ``size`` grid."""
    return all(0 <= cell.x < size and 0 <= cell.y < size for cell in plane.cells)


def overlapping_ids(candidate: Plane, existing: Iterable[Plane]) -> list[str]:
    """Return ids of planes in ``existing`` (other than the candidate) that it overlaps."""
    return [
        other.id
        for other in existing
        if other.id != candidate.id and candidate.overlaps(other)
    ]


def is_valid(candidate: Plane, existing: Iterable[Plane], size: int) -> bool:
    """All-or-nothing check: in bounds and clear of every other plane."""
    if not is_in_bounds(candidate, size):
        return False
    return not overlapping_ids(candidate, existing)


def plane_at(planes: Iterable[Plane], coord: Coordinate) -> Plane | None:
    """Return the first plane covering ``coord``."""
    for plane in planes:
        if plane.occupies(coord):
            return plane
    return None


def plane_with_head(planes: Iterable[Plane], coord: Coordinate) -> Plane | None:
    """Return the plane whose head sits on ``coord``."""
    for plane in planes:
        if plane.head == coord:
            return plane
    return None


def find_plane(planes: Iterable[Plane], plane_id: str) -> Plane | None:
    for plane in planes:
        if plane.id == plane_id:
            return plane
    return None


def count_alive(planes: Iterable[Plane]) -> int:
    """Census of planes whose head has not been struck."""
    return sum(1 for plane in planes if not plane.is_destroyed)
