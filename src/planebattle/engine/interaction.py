"""Pointer gesture classification.

A gesture is one pointer-down, any number of pointer-moves and a closing
pointer-up or pointer-cancel. Taps and drags are told apart only by whether the
pointer-up lands on the same cell as the pointer-down, so no timers or
velocity heuristics are involved.

Grabbing a plane's head arms a gesture for that plane: a tap on the head
rotates it in place, a drag moves the head to wherever the pointer is
released. Any other gesture that starts and ends on one cell is a tap whose
meaning depends on what the board is being used for:

========================  =====================================================
target                    tap on a cell without a grabbable head
========================  =====================================================
``SETUP_FLEET``           place a new plane
``DEDUCE_GHOSTS``         select the ghost under the pointer, else place a ghost
``ATTACK``                strike the cell
``NONE``                  nothing
========================  =====================================================

The machine never mutates game state itself; it returns ``GestureAction``
values for the controller to apply.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Sequence

from planebattle.telemetry import get_meter

from .geometry import Coordinate, Direction
from .plane import Plane, find_plane, is_in_bounds, is_valid, plane_at, plane_with_head

logger = logging.getLogger(__name__)
meter = get_meter("planebattle.engine.interaction")

GESTURE_COUNTER = meter.create_counter(
    "planebattle_engine_gestures",
    unit="1",
    description="Completed pointer gestures by classification",
)


class ToolMode(Enum):
    """What the active player's pointer does on the opponent's board in battle."""

    ATTACK = "attack"
    DEDUCE = "deduce"


class InteractionTarget(Enum):
    """The board surface a gesture operates on, fixed at pointer-down."""

    NONE = "none"
    SETUP_FLEET = "setup_fleet"
    DEDUCE_GHOSTS = "deduce_ghosts"
    ATTACK = "attack"


class GestureState(Enum):
    IDLE = "idle"
    ARMED = "armed"


class ActionKind(Enum):
    """Discrete actions a gesture can resolve to."""

    PLACE = "place"
    ROTATE = "rotate"
    MOVE = "move"
    SELECT = "select"
    DESELECT = "deselect"
    ATTACK = "attack"


@dataclass(frozen=True)
class GestureAction:
    kind: ActionKind
    coord: Coordinate
    plane_id: str | None = None
    is_ghost: bool = False


@dataclass(frozen=True)
class Surface:
    """What the pointer is over: the target plus the planes that can be grabbed."""

    target: InteractionTarget
    planes: Sequence[Plane] = ()


@dataclass(frozen=True)
class PreviewCell:
    x: int
    y: int
    is_valid: bool


class GestureMachine:
    """Turns pointer events into ``GestureAction`` lists."""

    def __init__(self) -> None:
        self._down_handlers: dict[
            InteractionTarget, Callable[[Coordinate, Surface], list[GestureAction]]
        ] = {
            InteractionTarget.NONE: self._down_ignored,
            InteractionTarget.SETUP_FLEET: self._down_setup,
            InteractionTarget.DEDUCE_GHOSTS: self._down_deduce,
            InteractionTarget.ATTACK: self._down_attack,
        }
        self._tap_handlers: dict[
            InteractionTarget, Callable[[Coordinate, Surface], list[GestureAction]]
        ] = {
            InteractionTarget.NONE: lambda coord, surface: [],
            InteractionTarget.SETUP_FLEET: self._tap_setup,
            InteractionTarget.DEDUCE_GHOSTS: self._tap_deduce,
            InteractionTarget.ATTACK: self._tap_attack,
        }
        self.reset()

    def reset(self) -> None:
        """Drop the in-progress gesture without committing anything."""
        self.state = GestureState.IDLE
        self.target = InteractionTarget.NONE
        self.armed_id: str | None = None
        self.is_ghost = False
        self.original_direction: Direction | None = None
        self.start: Coordinate | None = None
        self.current: Coordinate | None = None

    @property
    def dragging_id(self) -> str | None:
        """Id of the plane currently held, hidden by renderers during a drag."""
        return self.armed_id if self.state is GestureState.ARMED else None

    # -- pointer events --------------------------------------------------

    def pointer_down(self, coord: Coordinate, surface: Surface) -> list[GestureAction]:
        self.reset()
        self.target = surface.target
        return self._down_handlers[surface.target](coord, surface)

    def pointer_move(self, coord: Coordinate) -> None:
        """Track the hovered cell; only previews depend on it."""
        self.current = coord

    def pointer_up(self, coord: Coordinate, surface: Surface) -> list[GestureAction]:
        if self.start is None:
            return []
        if surface.target is not self.target:
            logger.debug(
                "gesture_dropped_target_changed",
                extra={"started_on": self.target.value, "released_on": surface.target.value},
            )
            self.reset()
            return []

        is_tap = coord == self.start
        if self.state is GestureState.ARMED and self.armed_id is not None:
            kind = ActionKind.ROTATE if is_tap else ActionKind.MOVE
            actions = [GestureAction(kind, coord, self.armed_id, self.is_ghost)]
        elif is_tap:
            actions = self._tap_handlers[self.target](coord, surface)
        else:
            actions = []

        for action in actions:
            GESTURE_COUNTER.add(1, attributes={"kind": action.kind.value, "target": self.target.value})
        logger.debug(
            "gesture_resolved",
            extra={
                "target": self.target.value,
                "tap": is_tap,
                "actions": [action.kind.value for action in actions],
            },
        )
        self.reset()
        return actions

    def pointer_leave(self) -> None:
        """Pointer capture keeps an armed gesture alive; otherwise nothing to do."""

    def pointer_cancel(self) -> None:
        self.reset()

    # -- per-target handlers ---------------------------------------------

    def _arm(self, plane: Plane, is_ghost: bool) -> None:
        self.state = GestureState.ARMED
        self.armed_id = plane.id
        self.original_direction = plane.direction
        self.is_ghost = is_ghost

    def _down_ignored(self, coord: Coordinate, surface: Surface) -> list[GestureAction]:
        return []

    def _down_setup(self, coord: Coordinate, surface: Surface) -> list[GestureAction]:
        self.start = self.current = coord
        plane = plane_with_head(surface.planes, coord)
        if plane is not None:
            self._arm(plane, is_ghost=False)
        return []

    def _down_deduce(self, coord: Coordinate, surface: Surface) -> list[GestureAction]:
        self.start = self.current = coord
        self.is_ghost = True
        ghost = plane_at(surface.planes, coord)
        if ghost is None:
            return [GestureAction(ActionKind.DESELECT, coord, is_ghost=True)]
        if ghost.head == coord:
            self._arm(ghost, is_ghost=True)
        return [GestureAction(ActionKind.SELECT, coord, ghost.id, is_ghost=True)]

    def _down_attack(self, coord: Coordinate, surface: Surface) -> list[GestureAction]:
        self.start = self.current = coord
        return []

    def _tap_setup(self, coord: Coordinate, surface: Surface) -> list[GestureAction]:
        return [GestureAction(ActionKind.PLACE, coord)]

    def _tap_deduce(self, coord: Coordinate, surface: Surface) -> list[GestureAction]:
        ghost = plane_at(surface.planes, coord)
        if ghost is not None:
            return [GestureAction(ActionKind.SELECT, coord, ghost.id, is_ghost=True)]
        return [GestureAction(ActionKind.PLACE, coord, is_ghost=True)]

    def _tap_attack(self, coord: Coordinate, surface: Surface) -> list[GestureAction]:
        return [GestureAction(ActionKind.ATTACK, coord)]

    # -- previews --------------------------------------------------------

    def preview(self, surface: Surface, direction: Direction, size: int) -> list[PreviewCell]:
        """Cells to highlight under the pointer, each flagged valid or not.

        While a plane is held the preview shows it at the hovered cell. While
        idle over free space in setup or deduction it shows where a tap would
        place a new plane facing ``direction``.
        """
        if self.current is None:
            return []
        ghosts = surface.target is InteractionTarget.DEDUCE_GHOSTS
        if self.state is GestureState.ARMED and self.armed_id is not None:
            held = find_plane(surface.planes, self.armed_id)
            if held is None:
                return []
            candidate = Plane(held.id, self.current, held.direction)
        elif surface.target in (InteractionTarget.SETUP_FLEET, InteractionTarget.DEDUCE_GHOSTS):
            if plane_at(surface.planes, self.current) is not None:
                return []
            candidate = Plane("preview", self.current, direction)
        else:
            return []

        if ghosts:
            valid = is_in_bounds(candidate, size)
        else:
            valid = is_valid(candidate, surface.planes, size)
        return [PreviewCell(cell.x, cell.y, valid) for cell in candidate.cells]
