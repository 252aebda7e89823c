"""Tests for pointer gesture classification."""

from planebattle.engine.geometry import Coordinate, Direction
from planebattle.engine.interaction import (
    ActionKind,
    GestureAction,
    GestureMachine,
    GestureState,
    InteractionTarget,
    Surface,
)
from planebattle.engine.plane import Plane

HEAD = Coordinate(4, 2)
WING = Coordinate(2, 3)
EMPTY = Coordinate(8, 8)


def _fleet() -> list[Plane]:
    return [Plane("p1-0", HEAD, Direction.UP)]


def test_tap_on_head_rotates_in_place() -> None:
    machine = GestureMachine()
    surface = Surface(InteractionTarget.SETUP_FLEET, _fleet())

    assert machine.pointer_down(HEAD, surface) == []
    assert machine.state is GestureState.ARMED
    assert machine.original_direction is Direction.UP
    actions = machine.pointer_up(HEAD, surface)

    assert actions == [GestureAction(ActionKind.ROTATE, HEAD, "p1-0", False)]
    assert machine.state is GestureState.IDLE
    assert machine.start is None and machine.current is None


def test_drag_from_head_moves_plane() -> None:
    machine = GestureMachine()
    surface = Surface(InteractionTarget.SETUP_FLEET, _fleet())
    target = Coordinate(5, 5)

    machine.pointer_down(HEAD, surface)
    machine.pointer_move(Coordinate(5, 4))
    machine.pointer_move(target)
    assert machine.current == target
    actions = machine.pointer_up(target, surface)

    assert actions == [GestureAction(ActionKind.MOVE, target, "p1-0", False)]


def test_drag_that_returns_to_start_is_a_tap() -> None:
    machine = GestureMachine()
    surface = Surface(InteractionTarget.SETUP_FLEET, _fleet())
    machine.pointer_down(HEAD, surface)
    machine.pointer_move(Coordinate(6, 6))
    machine.pointer_move(HEAD)
    assert machine.pointer_up(HEAD, surface)[0].kind is ActionKind.ROTATE


def test_only_the_head_is_grabbable() -> None:
    machine = GestureMachine()
    surface = Surface(InteractionTarget.SETUP_FLEET, _fleet())

    machine.pointer_down(WING, surface)
    assert machine.state is GestureState.IDLE
    assert machine.pointer_up(WING, surface) == [GestureAction(ActionKind.PLACE, WING)]

    machine.pointer_down(WING, surface)
    assert machine.pointer_up(Coordinate(7, 7), surface) == []


def test_tap_on_empty_space_places_in_setup() -> None:
    machine = GestureMachine()
    surface = Surface(InteractionTarget.SETUP_FLEET, [])
    machine.pointer_down(EMPTY, surface)
    assert machine.pointer_up(EMPTY, surface) == [GestureAction(ActionKind.PLACE, EMPTY)]


def test_tap_in_attack_mode_strikes() -> None:
    machine = GestureMachine()
    surface = Surface(InteractionTarget.ATTACK)
    machine.pointer_down(EMPTY, surface)
    assert machine.pointer_up(EMPTY, surface) == [GestureAction(ActionKind.ATTACK, EMPTY)]


def test_drag_in_attack_mode_does_nothing() -> None:
    machine = GestureMachine()
    surface = Surface(InteractionTarget.ATTACK)
    machine.pointer_down(EMPTY, surface)
    assert machine.pointer_up(Coordinate(0, 0), surface) == []


def test_deduce_selects_ghost_on_down_and_deselects_on_empty() -> None:
    machine = GestureMachine()
    ghosts = [Plane("ghost-1-0", HEAD, Direction.UP)]
    surface = Surface(InteractionTarget.DEDUCE_GHOSTS, ghosts)

    down = machine.pointer_down(WING, surface)
    assert down == [GestureAction(ActionKind.SELECT, WING, "ghost-1-0", True)]
    assert machine.state is GestureState.IDLE
    assert machine.pointer_up(WING, surface) == [
        GestureAction(ActionKind.SELECT, WING, "ghost-1-0", True)
    ]

    down = machine.pointer_down(EMPTY, surface)
    assert down == [GestureAction(ActionKind.DESELECT, EMPTY, is_ghost=True)]
    assert machine.pointer_up(EMPTY, surface) == [
        GestureAction(ActionKind.PLACE, EMPTY, is_ghost=True)
    ]


def test_deduce_head_drag_moves_ghost() -> None:
    machine = GestureMachine()
    ghosts = [Plane("ghost-1-0", HEAD, Direction.UP)]
    surface = Surface(InteractionTarget.DEDUCE_GHOSTS, ghosts)
    machine.pointer_down(HEAD, surface)
    assert machine.state is GestureState.ARMED
    assert machine.dragging_id == "ghost-1-0"
    actions = machine.pointer_up(EMPTY, surface)
    assert actions == [GestureAction(ActionKind.MOVE, EMPTY, "ghost-1-0", True)]


def test_pointer_leave_keeps_armed_gesture() -> None:
    machine = GestureMachine()
    surface = Surface(InteractionTarget.SETUP_FLEET, _fleet())
    machine.pointer_down(HEAD, surface)
    machine.pointer_leave()
    assert machine.state is GestureState.ARMED
    assert machine.pointer_up(EMPTY, surface)[0].kind is ActionKind.MOVE


def test_pointer_leave_while_idle_is_harmless() -> None:
    machine = GestureMachine()
    surface = Surface(InteractionTarget.ATTACK)
    machine.pointer_down(EMPTY, surface)
    machine.pointer_leave()
    assert machine.pointer_up(EMPTY, surface)[0].kind is ActionKind.ATTACK


def test_pointer_cancel_discards_gesture() -> None:
    machine = GestureMachine()
    surface = Surface(InteractionTarget.SETUP_FLEET, _fleet())
    machine.pointer_down(HEAD, surface)
    machine.pointer_move(EMPTY)
    machine.pointer_cancel()
    assert machine.state is GestureState.IDLE
    assert machine.dragging_id is None
    assert machine.pointer_up(EMPTY, surface) == []


def test_pointer_up_without_down_is_ignored() -> None:
    machine = GestureMachine()
    assert machine.pointer_up(EMPTY, Surface(InteractionTarget.ATTACK)) == []


def test_gesture_dropped_when_target_changes_mid_gesture() -> None:
    machine = GestureMachine()
    machine.pointer_down(EMPTY, Surface(InteractionTarget.ATTACK))
    assert machine.pointer_up(EMPTY, Surface(InteractionTarget.NONE)) == []
    assert machine.state is GestureState.IDLE


def test_no_target_ignores_everything() -> None:
    machine = GestureMachine()
    surface = Surface(InteractionTarget.NONE)
    assert machine.pointer_down(EMPTY, surface) == []
    assert machine.pointer_up(EMPTY, surface) == []


def test_drag_preview_flags_overlap() -> None:
    machine = GestureMachine()
    fleet = [Plane("a", Coordinate(2, 0), Direction.UP), Plane("b", Coordinate(7, 0), Direction.UP)]
    surface = Surface(InteractionTarget.SETUP_FLEET, fleet)

    machine.pointer_down(Coordinate(2, 0), surface)
    machine.pointer_move(Coordinate(2, 5))
    preview = machine.preview(surface, Direction.UP, 10)
    assert len(preview) == 10
    assert all(cell.is_valid for cell in preview)

    machine.pointer_move(Coordinate(6, 1))
    preview = machine.preview(surface, Direction.UP, 10)
    assert preview and not any(cell.is_valid for cell in preview)


def test_hover_preview_uses_placement_direction() -> None:
    machine = GestureMachine()
    surface = Surface(InteractionTarget.SETUP_FLEET, [])
    machine.pointer_move(Coordinate(5, 5))
    preview = machine.preview(surface, Direction.DOWN, 10)
    assert (preview[0].x, preview[0].y) == (5, 5)
    assert (preview[6].x, preview[6].y) == (5, 3)
    assert all(cell.is_valid for cell in preview)

    assert machine.preview(Surface(InteractionTarget.ATTACK), Direction.UP, 10) == []


def test_ghost_preview_only_checks_bounds() -> None:
    machine = GestureMachine()
    ghosts = [Plane("g", Coordinate(4, 2), Direction.UP)]
    surface = Surface(InteractionTarget.DEDUCE_GHOSTS, ghosts)
    machine.pointer_down(Coordinate(4, 2), surface)
    machine.pointer_move(Coordinate(9, 2))
    preview = machine.preview(surface, Direction.UP, 10)
    assert preview and not any(cell.is_valid for cell in preview)
