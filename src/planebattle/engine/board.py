"""Single-player grid of cell states for the Plane Battle engine."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterator

from planebattle.telemetry import get_meter, get_tracer

from .geometry import Coordinate, PlanePart
from .plane import Plane

logger = logging.getLogger(__name__)
tracer = get_tracer("planebattle.engine.board")
meter = get_meter("planebattle.engine.board")

STAMP_COUNTER = meter.create_counter(
    "planebattle_engine_planes_stamped",
    unit="1",
    description="Planes written onto a board at setup confirmation",
)

STRIKE_COUNTER = meter.create_counter(
    "planebattle_engine_strikes",
    unit="1",
    description="Strikes received by a board",
)


class CellStatus(Enum):
    """State of a grid cell."""

    EMPTY = "empty"
    PLANE = "plane"
    MISS = "miss"
    HIT = "hit"
    DEAD = "dead"

    @property
    def is_resolved(self) -> bool:
        """True once the cell has been struck; resolved cells never change again."""
        return self in (CellStatus.MISS, CellStatus.HIT, CellStatus.DEAD)


@dataclass(frozen=True)
class Cell:
    """One grid cell, optionally owned by a plane part."""

    x: int
    y: int
    status: CellStatus = CellStatus.EMPTY
    plane_id: str | None = None
    part: PlanePart | None = None

    @property
    def coord(self) -> Coordinate:
        return Coordinate(self.x, self.y)


@dataclass(frozen=True)
class Board:
    """Immutable square grid; ``rows[y][x]`` is the cell at (x, y)."""

    size: int
    rows: tuple[tuple[Cell, ...], ...]
    owner: str = "unknown"

    def is_valid_coordinate(self, coord: Coordinate) -> bool:
        """Check whether a coordinate lies inside the board boundaries."""
        return 0 <= coord.x < self.size and 0 <= coord.y < self.size

    def cell_at(self, coord: Coordinate) -> Cell:
        if not self.is_valid_coordinate(coord):
            raise ValueError(f"Coordinate ({coord.x}, {coord.y}) is off the board.")
        return self.rows[coord.y][coord.x]

    def cells(self) -> Iterator[Cell]:
        for row in self.rows:
            yield from row

    def can_strike(self, coord: Coordinate) -> bool:
        """A strike is legal on an in-bounds cell that has not been struck."""
        return self.is_valid_coordinate(coord) and not self.cell_at(coord).status.is_resolved

    def unresolved_coordinates(self) -> list[Coordinate]:
        """Coordinates an attacker may still target, in row-major order."""
        return [cell.coord for cell in self.cells() if not cell.status.is_resolved]

    def _with_cells(self, updates: dict[Coordinate, Cell]) -> Board:
        rows = tuple(
            tuple(updates.get(cell.coord, cell) for cell in row) for row in self.rows
        )
        return replace(self, rows=rows)

    def stamp(self, plane: Plane) -> Board:
        """Return a new board with ``plane`` written onto its cells.

        Placement is expected to have been validated already; any cell that
        falls off the grid is skipped.
        """
        with tracer.start_as_current_span("board.stamp") as span:
            span.set_attribute("plane.id", plane.id)
            span.set_attribute("plane.direction", plane.direction.name)
            span.set_attribute("board.owner", self.owner)
            updates: dict[Coordinate, Cell] = {}
            for plane_cell in plane.cells:
                coord = plane_cell.coord
                if not self.is_valid_coordinate(coord):
                    continue
                current = self.cell_at(coord)
                updates[coord] = replace(
                    current,
                    status=CellStatus.PLANE,
                    plane_id=plane.id,
                    part=plane_cell.part,
                )
            STAMP_COUNTER.add(1, attributes={"owner": self.owner})
            logger.debug(
                "plane_stamped",
                extra={
                    "owner": self.owner,
                    "plane_id": plane.id,
                    "head_x": plane.head.x,
                    "head_y": plane.head.y,
                    "direction": plane.direction.name,
                },
            )
            return self._with_cells(updates)

    def strike(self, coord: Coordinate) -> tuple[Board, CellStatus]:
        """Resolve a strike, returning the new board and the cell's prior status."""
        with tracer.start_as_current_span("board.strike") as span:
            span.set_attribute("strike.x", coord.x)
            span.set_attribute("strike.y", coord.y)
            span.set_attribute("board.owner", self.owner)
            if not self.is_valid_coordinate(coord):
                logger.error(
                    "strike_out_of_bounds",
                    extra={"x": coord.x, "y": coord.y, "owner": self.owner},
                )
                raise ValueError("Strike out of bounds.")
            current = self.cell_at(coord)
            if current.status.is_resolved:
                logger.error(
                    "strike_duplicate",
                    extra={"x": coord.x, "y": coord.y, "owner": self.owner},
                )
                raise ValueError("Cell has already been struck.")

            if current.status is CellStatus.EMPTY:
                new_status = CellStatus.MISS
            elif current.part is PlanePart.HEAD:
                new_status = CellStatus.DEAD
            else:
                new_status = CellStatus.HIT

            span.set_attribute("strike.outcome", new_status.value)
            STRIKE_COUNTER.add(1, attributes={"outcome": new_status.value, "owner": self.owner})
            logger.info(
                "strike_resolved",
                extra={
                    "x": coord.x,
                    "y": coord.y,
                    "outcome": new_status.value,
                    "plane_id": current.plane_id,
                    "owner": self.owner,
                },
            )
            return self._with_cells({coord: replace(current, status=new_status)}), current.status


def empty_board(size: int, owner: str = "unknown") -> Board:
    """Create a ``size`` x ``size`` board with every cell EMPTY."""
    rows = tuple(tuple(Cell(x, y) for x in range(size)) for y in range(size))
    return Board(size=size, rows=rows, owner=owner)
