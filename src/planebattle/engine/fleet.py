"""Per-player fleet state: draft planes, ghost annotations and the final board."""

from __future__ import annotations

import itertools
import logging
import random
from dataclasses import dataclass, field
from enum import Enum

from planebattle.telemetry import get_meter, get_tracer

from .board import Board, empty_board
from .geometry import Coordinate, Direction
from .plane import Plane, count_alive, find_plane, is_in_bounds, is_valid

logger = logging.getLogger(__name__)
tracer = get_tracer("planebattle.engine.fleet")
meter = get_meter("planebattle.engine.fleet")

PLACEMENT_COUNTER = meter.create_counter(
    "planebattle_engine_plane_placements",
    unit="1",
    description="Number of attempted plane placements",
)

RANDOM_FLEET_ATTEMPTS = 100
RANDOM_PLANE_ATTEMPTS = 100


class PlayerId(Enum):
    """The two seats at the device."""

    ONE = 1
    TWO = 2

    def opponent(self) -> PlayerId:
        """Return the opposing player."""
        return PlayerId.TWO if self is PlayerId.ONE else PlayerId.ONE


@dataclass
class PlayerState:
    """Everything one player owns for the length of a match."""

    player_id: PlayerId
    name: str
    board: Board
    planes: list[Plane] = field(default_factory=list)
    ghost_planes: list[Plane] = field(default_factory=list)
    is_ready: bool = False
    has_shot_this_turn: bool = False
    _plane_ids: itertools.count = field(default_factory=itertools.count, repr=False)
    _ghost_ids: itertools.count = field(default_factory=itertools.count, repr=False)

    @classmethod
    def new(cls, player_id: PlayerId, name: str, size: int) -> PlayerState:
        return cls(player_id=player_id, name=name, board=empty_board(size, owner=name))

    @property
    def alive_count(self) -> int:
        """Planes not yet destroyed, always recomputed from the fleet."""
        return count_alive(self.planes)

    def _next_plane_id(self) -> str:
        return f"p{self.player_id.value}-{next(self._plane_ids)}"

    def _next_ghost_id(self) -> str:
        return f"ghost-{self.player_id.value}-{next(self._ghost_ids)}"

    # -- setup -----------------------------------------------------------

    def place_plane(
        self, coord: Coordinate, direction: Direction, limit: int, size: int
    ) -> Plane | None:
        """Add a plane with its head at ``coord`` if the fleet has room and it fits."""
        with tracer.start_as_current_span("fleet.place_plane") as span:
            span.set_attribute("player", self.player_id.value)
            span.set_attribute("head.x", coord.x)
            span.set_attribute("head.y", coord.y)
            span.set_attribute("direction", direction.name)
            if self.is_ready:
                PLACEMENT_COUNTER.add(1, attributes={"result": "ready", "owner": self.name})
                logger.info("plane_placement_rejected_ready", extra={"owner": self.name})
                return None
            if len(self.planes) >= limit:
                PLACEMENT_COUNTER.add(1, attributes={"result": "fleet_full", "owner": self.name})
                logger.info(
                    "plane_placement_rejected_fleet_full",
                    extra={"owner": self.name, "planes": len(self.planes), "limit": limit},
                )
                return None
            candidate = Plane(self._next_plane_id(), coord, direction)
            if not is_valid(candidate, self.planes, size):
                PLACEMENT_COUNTER.add(1, attributes={"result": "failed", "owner": self.name})
                logger.info(
                    "plane_placement_failed",
                    extra={
                        "owner": self.name,
                        "x": coord.x,
                        "y": coord.y,
                        "direction": direction.name,
                    },
                )
                return None
            self.planes.append(candidate)
            PLACEMENT_COUNTER.add(1, attributes={"result": "success", "owner": self.name})
            logger.info(
                "plane_placed",
                extra={
                    "owner": self.name,
                    "plane_id": candidate.id,
                    "x": coord.x,
                    "y": coord.y,
                    "direction": direction.name,
                },
            )
            return candidate

    def move_plane(self, plane_id: str, head: Coordinate, direction: Direction) -> bool:
        """Reposition a draft plane; the result may be invalid until confirmation."""
        if self.is_ready:
            return False
        plane = find_plane(self.planes, plane_id)
        if plane is None:
            return False
        plane.move_to(head, direction)
        logger.debug(
            "plane_moved",
            extra={"owner": self.name, "plane_id": plane_id, "x": head.x, "y": head.y},
        )
        return True

    def rotate_plane(self, plane_id: str) -> bool:
        plane = find_plane(self.planes, plane_id)
        if plane is None:
            return False
        return self.move_plane(plane_id, plane.head, plane.direction.next())

    def clear_planes(self) -> None:
        """Throw away every draft plane."""
        if self.is_ready:
            return
        self.planes.clear()
        logger.info("fleet_cleared", extra={"owner": self.name})

    def random_setup(self, rng: random.Random, count: int, size: int) -> bool:
        """Replace the draft fleet with ``count`` randomly placed valid planes."""
        if self.is_ready:
            return False
        with tracer.start_as_current_span("fleet.random_setup") as span:
            span.set_attribute("player", self.player_id.value)
            directions = list(Direction)
            for attempt in range(1, RANDOM_FLEET_ATTEMPTS + 1):
                drafts: list[Plane] = []
                for index in range(count):
                    for _ in range(RANDOM_PLANE_ATTEMPTS):
                        head = Coordinate(rng.randrange(size), rng.randrange(size))
                        candidate = Plane(f"draft-{index}", head, rng.choice(directions))
                        if is_valid(candidate, drafts, size):
                            drafts.append(candidate)
                            break
                    else:
                        break
                if len(drafts) == count:
                    self.planes = [
                        Plane(self._next_plane_id(), draft.head, draft.direction)
                        for draft in drafts
                    ]
                    span.set_attribute("attempts", attempt)
                    logger.info(
                        "fleet_randomised",
                        extra={"owner": self.name, "attempts": attempt, "planes": count},
                    )
                    return True
            logger.warning("fleet_randomise_failed", extra={"owner": self.name, "planes": count})
            return False

    def plane_validity(self, size: int) -> dict[str, bool]:
        """Advisory validity flag for every draft plane, keyed by id."""
        return {plane.id: is_valid(plane, self.planes, size) for plane in self.planes}

    def setup_is_valid(self, count: int, size: int) -> bool:
        """Exactly ``count`` planes, each in bounds and clear of the others."""
        if len(self.planes) != count:
            return False
        return all(self.plane_validity(size).values())

    def confirm_setup(self, count: int, size: int) -> bool:
        """Stamp the fleet onto a fresh board and mark the player ready."""
        with tracer.start_as_current_span("fleet.confirm_setup") as span:
            span.set_attribute("player", self.player_id.value)
            if self.is_ready:
                logger.info("setup_confirm_rejected_already_ready", extra={"owner": self.name})
                return False
            if not self.setup_is_valid(count, size):
                logger.info(
                    "setup_confirm_rejected_invalid",
                    extra={"owner": self.name, "planes": len(self.planes), "required": count},
                )
                return False
            board = empty_board(size, owner=self.name)
            for plane in self.planes:
                board = board.stamp(plane)
            self.board = board
            self.is_ready = True
            span.set_attribute("alive", self.alive_count)
            logger.info(
                "setup_confirmed", extra={"owner": self.name, "alive": self.alive_count}
            )
            return True

    # -- deduction ghosts ------------------------------------------------

    def place_ghost(self, coord: Coordinate, direction: Direction) -> Plane:
        """Annotate the opponent's board with a new ghost plane."""
        ghost = Plane(self._next_ghost_id(), coord, direction)
        self.ghost_planes.append(ghost)
        logger.debug(
            "ghost_placed",
            extra={"owner": self.name, "plane_id": ghost.id, "x": coord.x, "y": coord.y},
        )
        return ghost

    def move_ghost(self, ghost_id: str, head: Coordinate, direction: Direction) -> bool:
        ghost = find_plane(self.ghost_planes, ghost_id)
        if ghost is None:
            return False
        ghost.move_to(head, direction)
        return True

    def rotate_ghost(self, ghost_id: str) -> bool:
        ghost = find_plane(self.ghost_planes, ghost_id)
        if ghost is None:
            return False
        ghost.rotate()
        return True

    def delete_ghost(self, ghost_id: str) -> bool:
        before = len(self.ghost_planes)
        self.ghost_planes = [ghost for ghost in self.ghost_planes if ghost.id != ghost_id]
        removed = len(self.ghost_planes) != before
        if removed:
            logger.debug("ghost_deleted", extra={"owner": self.name, "plane_id": ghost_id})
        return removed

    def ghost_validity(self, size: int) -> dict[str, bool]:
        """Ghosts are only flagged when they hang off the board."""
        return {ghost.id: is_in_bounds(ghost, size) for ghost in self.ghost_planes}
