"""Two-player Plane Battle game controller."""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from planebattle.settings import GameSettings, load_settings
from planebattle.telemetry import get_meter, get_tracer

from .attack import AttackResult, TurnRecord, resolve_attack
from .board import Board
from .fleet import PlayerId, PlayerState
from .geometry import Coordinate, Direction, PlaneCell
from .interaction import (
    ActionKind,
    GestureAction,
    GestureMachine,
    InteractionTarget,
    PreviewCell,
    Surface,
    ToolMode,
)
from .plane import Plane, find_plane

logger = logging.getLogger(__name__)
tracer = get_tracer("planebattle.engine.game")
meter = get_meter("planebattle.engine.game")

PHASE_COUNTER = meter.create_counter(
    "planebattle_engine_phase_changes",
    unit="1",
    description="Phase transitions made by PlaneBattleGame",
)


class GamePhase(Enum):
    """High-level lifecycle of a Plane Battle match."""

    SETUP = "setup"
    TRANSITION = "transition"
    BATTLE = "battle"
    GAME_OVER = "game_over"


class Handoff(Enum):
    """What happens once the device has been passed to the other player."""

    SECOND_SETUP = "second_setup"
    BATTLE_START = "battle_start"
    NEXT_TURN = "next_turn"

    @property
    def is_timed(self) -> bool:
        """Setup handoffs complete on their own; turn handoffs wait for the player."""
        return self is not Handoff.NEXT_TURN


class HandoffTimer:
    """Fixed-delay, cancellable timer driven by caller-supplied timestamps."""

    def __init__(self, delay: float) -> None:
        self.delay = delay
        self.started_at: float | None = None

    @property
    def active(self) -> bool:
        return self.started_at is not None

    def start(self, now: float) -> None:
        self.started_at = now

    def cancel(self) -> None:
        self.started_at = None

    def due(self, now: float) -> bool:
        return self.started_at is not None and now - self.started_at >= self.delay


@dataclass(frozen=True)
class PlaneSnapshot:
    id: str
    head: Coordinate
    direction: Direction
    is_destroyed: bool
    cells: tuple[PlaneCell, ...]

    @classmethod
    def of(cls, plane: Plane) -> PlaneSnapshot:
        return cls(plane.id, plane.head, plane.direction, plane.is_destroyed, plane.cells)


@dataclass(frozen=True)
class PlayerSnapshot:
    """Read-only view of one player's state."""

    player_id: PlayerId
    name: str
    board: Board
    planes: tuple[PlaneSnapshot, ...]
    ghost_planes: tuple[PlaneSnapshot, ...]
    alive_count: int
    is_ready: bool
    has_shot_this_turn: bool


@dataclass(frozen=True)
class GameState:
    """Immutable snapshot of the current match, handed to the renderer."""

    phase: GamePhase
    active_player: PlayerId
    players: dict[PlayerId, PlayerSnapshot]
    log: tuple[TurnRecord, ...]
    winner: PlayerId | None
    setup_direction: Direction
    tool_mode: ToolMode
    selected_ghost_id: str | None
    pending_handoff: Handoff | None


@dataclass(frozen=True)
class InteractivePlane:
    """A draft plane or ghost with the flags a renderer needs to draw it."""

    plane: PlaneSnapshot
    is_valid: bool
    is_dragging: bool
    is_selected: bool


def interaction_target(phase: GamePhase, tool: ToolMode) -> InteractionTarget:
    """Map the (phase, tool) pair to the surface pointer gestures act on."""
    if phase is GamePhase.SETUP:
        return InteractionTarget.SETUP_FLEET
    if phase is GamePhase.BATTLE:
        if tool is ToolMode.DEDUCE:
            return InteractionTarget.DEDUCE_GHOSTS
        return InteractionTarget.ATTACK
    return InteractionTarget.NONE


def _snapshot_player(player: PlayerState) -> PlayerSnapshot:
    return PlayerSnapshot(
        player_id=player.player_id,
        name=player.name,
        board=player.board,
        planes=tuple(PlaneSnapshot.of(plane) for plane in player.planes),
        ghost_planes=tuple(PlaneSnapshot.of(ghost) for ghost in player.ghost_planes),
        alive_count=player.alive_count,
        is_ready=player.is_ready,
        has_shot_this_turn=player.has_shot_this_turn,
    )


class PlaneBattleGame:
    """Coordinates setup, device handoffs and battle between two players.

    Every public method is a complete state transition. Illegal requests are
    no-ops that return ``False`` or ``None`` and leave the match unchanged.
    """

    def __init__(
        self,
        settings: GameSettings | None = None,
        rng_seed: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings or load_settings()
        self._rng = random.Random(rng_seed)
        self._clock = clock
        self.gestures = GestureMachine()
        self.timer = HandoffTimer(self.settings.transition_delay_seconds)
        self._new_match()

    def _new_match(self) -> None:
        size = self.settings.grid_size
        names = self.settings.player_names
        self.players: dict[PlayerId, PlayerState] = {
            PlayerId.ONE: PlayerState.new(PlayerId.ONE, names[0], size),
            PlayerId.TWO: PlayerState.new(PlayerId.TWO, names[1], size),
        }
        self.phase: GamePhase = GamePhase.SETUP
        self.active_player: PlayerId = PlayerId.ONE
        self.log: list[TurnRecord] = []
        self.winner: PlayerId | None = None
        self.setup_direction: Direction = Direction.UP
        self.tool_mode: ToolMode = ToolMode.ATTACK
        self.selected_ghost_id: str | None = None
        self.pending_handoff: Handoff | None = None
        self.timer.cancel()
        self.gestures.reset()

    @property
    def active(self) -> PlayerState:
        return self.players[self.active_player]

    @property
    def opponent(self) -> PlayerState:
        return self.players[self.active_player.opponent()]

    def _set_phase(self, phase: GamePhase) -> None:
        PHASE_COUNTER.add(1, attributes={"from": self.phase.value, "to": phase.value})
        logger.info(
            "phase_changed",
            extra={
                "from_phase": self.phase.value,
                "to_phase": phase.value,
                "active_player": self.active_player.value,
            },
        )
        self.phase = phase

    # -- setup -----------------------------------------------------------

    def toggle_direction(self) -> Direction:
        """Advance the heading used for newly placed planes and ghosts."""
        self.setup_direction = self.setup_direction.next()
        return self.setup_direction

    def place_plane(self, coord: Coordinate) -> Plane | None:
        if self.phase is not GamePhase.SETUP:
            return None
        return self.active.place_plane(
            coord, self.setup_direction, self.settings.planes_per_player, self.settings.grid_size
        )

    def random_setup(self) -> bool:
        if self.phase is not GamePhase.SETUP:
            return False
        return self.active.random_setup(
            self._rng, self.settings.planes_per_player, self.settings.grid_size
        )

    def clear_setup(self) -> bool:
        if self.phase is not GamePhase.SETUP:
            return False
        self.gestures.reset()
        self.active.clear_planes()
        return True

    def is_setup_valid(self) -> bool:
        if self.phase is not GamePhase.SETUP:
            return False
        return self.active.setup_is_valid(
            self.settings.planes_per_player, self.settings.grid_size
        )

    def confirm_setup(self) -> bool:
        """Lock in the active player's fleet and hand the device over."""
        with tracer.start_as_current_span("game.confirm_setup") as span:
            span.set_attribute("player", self.active_player.value)
            if self.phase is not GamePhase.SETUP:
                logger.info("setup_confirm_rejected_wrong_phase", extra={"phase": self.phase.value})
                return False
            confirmed = self.active.confirm_setup(
                self.settings.planes_per_player, self.settings.grid_size
            )
            if not confirmed:
                return False
            self.gestures.reset()
            handoff = (
                Handoff.SECOND_SETUP if self.active_player is PlayerId.ONE else Handoff.BATTLE_START
            )
            self._begin_transition(handoff)
            return True

    # -- handoffs --------------------------------------------------------

    def _begin_transition(self, handoff: Handoff) -> None:
        self.pending_handoff = handoff
        self._set_phase(GamePhase.TRANSITION)
        if handoff.is_timed:
            self.timer.start(self._clock())

    def tick(self) -> bool:
        """Timer callback: complete a timed handoff once its delay has elapsed.

        The start and due times both come from the injected ``clock``; hosts
        with their own time base pass it in as ``clock``.
        """
        if self.phase is not GamePhase.TRANSITION or self.pending_handoff is None:
            return False
        if not self.pending_handoff.is_timed:
            return False
        if not self.timer.due(self._clock()):
            return False
        return self._complete_transition()

    def acknowledge_transition(self) -> bool:
        """The next player has the device; finish the pending handoff now."""
        if self.phase is not GamePhase.TRANSITION or self.pending_handoff is None:
            return False
        return self._complete_transition()

    def _complete_transition(self) -> bool:
        handoff = self.pending_handoff
        self.timer.cancel()
        self.pending_handoff = None
        if handoff is Handoff.SECOND_SETUP:
            self.active_player = PlayerId.TWO
            self.setup_direction = Direction.UP
            self._set_phase(GamePhase.SETUP)
        else:
            if handoff is Handoff.BATTLE_START:
                self.active_player = PlayerId.ONE
            else:
                self.active_player = self.active_player.opponent()
            for player in self.players.values():
                player.has_shot_this_turn = False
            self.tool_mode = ToolMode.ATTACK
            self.selected_ghost_id = None
            self._set_phase(GamePhase.BATTLE)
        logger.info(
            "handoff_complete",
            extra={"handoff": handoff.value if handoff else None, "active_player": self.active_player.value},
        )
        return True

    def end_turn(self) -> bool:
        """Pass the device after the active player has fired."""
        if self.phase is not GamePhase.BATTLE or not self.active.has_shot_this_turn:
            logger.info(
                "end_turn_rejected",
                extra={"phase": self.phase.value, "active_player": self.active_player.value},
            )
            return False
        self.gestures.reset()
        self._begin_transition(Handoff.NEXT_TURN)
        return True

    # -- battle ----------------------------------------------------------

    def set_tool(self, mode: ToolMode) -> bool:
        if self.phase is not GamePhase.BATTLE:
            return False
        self.gestures.reset()
        self.tool_mode = mode
        if mode is ToolMode.ATTACK:
            self.selected_ghost_id = None
        return True

    def attack(self, coord: Coordinate) -> AttackResult | None:
        """Strike the opponent's board; may end the match on the spot."""
        with tracer.start_as_current_span("game.attack") as span:
            span.set_attribute("player", self.active_player.value)
            span.set_attribute("x", coord.x)
            span.set_attribute("y", coord.y)
            if self.phase is not GamePhase.BATTLE:
                logger.info("attack_rejected_wrong_phase", extra={"phase": self.phase.value})
                return None
            result = resolve_attack(self.active, self.opponent, coord, len(self.log) + 1)
            if result is None:
                return None
            self.log.insert(0, result.record)
            if result.defender_alive == 0:
                self.winner = self.active_player
                self.gestures.reset()
                self._set_phase(GamePhase.GAME_OVER)
                span.set_attribute("game.winner", self.active_player.value)
                logger.info("game_finished", extra={"winner": self.active_player.value})
            return result

    def valid_targets(self) -> list[Coordinate]:
        """Coordinates the active player may still strike this turn."""
        if self.phase is not GamePhase.BATTLE or self.active.has_shot_this_turn:
            return []
        return self.opponent.board.unresolved_coordinates()

    # -- deduction ghosts ------------------------------------------------

    def _deducing(self) -> bool:
        return self.phase is GamePhase.BATTLE and self.tool_mode is ToolMode.DEDUCE

    def select_ghost(self, ghost_id: str | None) -> None:
        if not self._deducing():
            return
        if ghost_id is None or find_plane(self.active.ghost_planes, ghost_id) is not None:
            self.selected_ghost_id = ghost_id

    def deselect_ghost(self) -> None:
        self.selected_ghost_id = None

    def rotate_selected_ghost(self) -> bool:
        if not self._deducing() or self.selected_ghost_id is None:
            return False
        return self.active.rotate_ghost(self.selected_ghost_id)

    def delete_selected_ghost(self) -> bool:
        if not self._deducing() or self.selected_ghost_id is None:
            return False
        removed = self.active.delete_ghost(self.selected_ghost_id)
        self.selected_ghost_id = None
        return removed

    # -- pointer input ---------------------------------------------------

    def _surface(self) -> Surface:
        target = interaction_target(self.phase, self.tool_mode)
        if target is InteractionTarget.SETUP_FLEET:
            return Surface(target, self.active.planes)
        if target is InteractionTarget.DEDUCE_GHOSTS:
            return Surface(target, self.active.ghost_planes)
        return Surface(target)

    def pointer_down(self, coord: Coordinate) -> None:
        self._apply(self.gestures.pointer_down(coord, self._surface()))

    def pointer_move(self, coord: Coordinate) -> None:
        self.gestures.pointer_move(coord)

    def pointer_up(self, coord: Coordinate) -> None:
        self._apply(self.gestures.pointer_up(coord, self._surface()))

    def pointer_leave(self) -> None:
        self.gestures.pointer_leave()

    def pointer_cancel(self) -> None:
        self.gestures.pointer_cancel()

    def _apply(self, actions: list[GestureAction]) -> None:
        for action in actions:
            self._apply_one(action)

    def _apply_one(self, action: GestureAction) -> None:
        player = self.active
        kind = action.kind
        if kind is ActionKind.PLACE:
            if action.is_ghost:
                ghost = player.place_ghost(action.coord, self.setup_direction)
                self.selected_ghost_id = ghost.id
            else:
                self.place_plane(action.coord)
        elif kind is ActionKind.ROTATE and action.plane_id is not None:
            if action.is_ghost:
                player.rotate_ghost(action.plane_id)
            else:
                player.rotate_plane(action.plane_id)
        elif kind is ActionKind.MOVE and action.plane_id is not None:
            planes = player.ghost_planes if action.is_ghost else player.planes
            plane = find_plane(planes, action.plane_id)
            if plane is None:
                return
            if action.is_ghost:
                player.move_ghost(plane.id, action.coord, plane.direction)
            else:
                player.move_plane(plane.id, action.coord, plane.direction)
        elif kind is ActionKind.SELECT:
            self.select_ghost(action.plane_id)
        elif kind is ActionKind.DESELECT:
            self.deselect_ghost()
        elif kind is ActionKind.ATTACK:
            self.attack(action.coord)

    # -- views -----------------------------------------------------------

    def interactive_planes(self) -> list[InteractivePlane]:
        """Draft planes in setup, or ghosts while deducing, with render flags."""
        size = self.settings.grid_size
        dragging = self.gestures.dragging_id
        target = interaction_target(self.phase, self.tool_mode)
        if target is InteractionTarget.SETUP_FLEET:
            planes, validity = self.active.planes, self.active.plane_validity(size)
        elif target is InteractionTarget.DEDUCE_GHOSTS:
            planes, validity = self.active.ghost_planes, self.active.ghost_validity(size)
        else:
            return []
        return [
            InteractivePlane(
                plane=PlaneSnapshot.of(plane),
                is_valid=validity[plane.id],
                is_dragging=plane.id == dragging,
                is_selected=plane.id == self.selected_ghost_id,
            )
            for plane in planes
        ]

    def preview_cells(self) -> list[PreviewCell]:
        return self.gestures.preview(
            self._surface(), self.setup_direction, self.settings.grid_size
        )

    def get_state(self) -> GameState:
        """Return an immutable view of the current match."""
        return GameState(
            phase=self.phase,
            active_player=self.active_player,
            players={pid: _snapshot_player(player) for pid, player in self.players.items()},
            log=tuple(self.log),
            winner=self.winner,
            setup_direction=self.setup_direction,
            tool_mode=self.tool_mode,
            selected_ghost_id=self.selected_ghost_id,
            pending_handoff=self.pending_handoff,
        )

    def restart(self) -> None:
        """Discard the whole match and start again from player one's setup."""
        logger.info("match_restarted", extra={"phase": self.phase.value})
        self._new_match()
