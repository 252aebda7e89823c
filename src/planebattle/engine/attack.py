"""Strike resolution, the turn log and coordinate labels."""

from __future__ import annotations

import logging
import string
from dataclasses import dataclass
from enum import Enum

from planebattle.telemetry import get_meter, get_tracer

from .board import CellStatus
from .fleet import PlayerState
from .geometry import Coordinate
from .plane import find_plane

logger = logging.getLogger(__name__)
tracer = get_tracer("planebattle.engine.attack")
meter = get_meter("planebattle.engine.attack")

ATTACK_COUNTER = meter.create_counter(
    "planebattle_engine_attacks",
    unit="1",
    description="Attacks resolved against an opponent board",
)

COLUMN_LABELS = string.ascii_uppercase


class AttackOutcome(Enum):
    """What a single strike achieved."""

    MISS = "MISS"
    HIT = "HIT"
    KILL = "KILL"


@dataclass(frozen=True)
class TurnRecord:
    """One entry in the battle log."""

    player: str
    coord: str
    result: AttackOutcome
    turn_number: int


@dataclass(frozen=True)
class AttackResult:
    """Outcome of a resolved attack together with its log entry."""

    outcome: AttackOutcome
    coord: Coordinate
    plane_id: str | None
    defender_alive: int
    record: TurnRecord


def coord_to_label(x: int, y: int) -> str:
    """Column letter then one-based row: (1, 4) -> "B5"."""
    return f"{COLUMN_LABELS[x]}{y + 1}"


def label_to_coord(label: str, size: int) -> Coordinate:
    """Parse a label such as "B5" back into a coordinate on a ``size`` grid."""
    cleaned = label.strip().upper()
    if len(cleaned) < 2:
        raise ValueError("Use a column letter followed by a row number, e.g. B5.")
    column, row_text = cleaned[0], cleaned[1:]
    if column not in COLUMN_LABELS[:size]:
        raise ValueError(f"Column must be between A and {COLUMN_LABELS[size - 1]}.")
    try:
        row = int(row_text)
    except ValueError as exc:
        raise ValueError(f"Row must be a number between 1 and {size}.") from exc
    if not 1 <= row <= size:
        raise ValueError(f"Row must be a number between 1 and {size}.")
    return Coordinate(COLUMN_LABELS.index(column), row - 1)


def resolve_attack(
    attacker: PlayerState, defender: PlayerState, coord: Coordinate, turn_number: int
) -> AttackResult | None:
    """Strike ``coord`` on the defender's board on behalf of ``attacker``.

    Returns None, leaving every state untouched, when the attacker already shot
    this turn or the target is off the board or already struck. Otherwise the
    defender's board and fleet, and the attacker's shot flag, are updated
    together before returning.
    """
    with tracer.start_as_current_span("attack.resolve") as span:
        span.set_attribute("attacker", attacker.player_id.value)
        span.set_attribute("target.x", coord.x)
        span.set_attribute("target.y", coord.y)
        if attacker.has_shot_this_turn:
            logger.info(
                "attack_rejected_already_shot",
                extra={"player": attacker.name, "x": coord.x, "y": coord.y},
            )
            return None
        if not defender.board.can_strike(coord):
            logger.info(
                "attack_rejected_resolved_cell",
                extra={"player": attacker.name, "x": coord.x, "y": coord.y},
            )
            return None

        target = defender.board.cell_at(coord)
        board, prior = defender.board.strike(coord)
        new_status = board.cell_at(coord).status

        if prior is CellStatus.EMPTY:
            outcome = AttackOutcome.MISS
        elif new_status is CellStatus.DEAD:
            outcome = AttackOutcome.KILL
        else:
            outcome = AttackOutcome.HIT

        if outcome is AttackOutcome.KILL and target.plane_id is not None:
            plane = find_plane(defender.planes, target.plane_id)
            if plane is not None:
                plane.is_destroyed = True

        defender.board = board
        attacker.has_shot_this_turn = True
        record = TurnRecord(
            player=attacker.name,
            coord=coord_to_label(coord.x, coord.y),
            result=outcome,
            turn_number=turn_number,
        )

        span.set_attribute("outcome", outcome.value)
        span.set_attribute("defender.alive", defender.alive_count)
        ATTACK_COUNTER.add(1, attributes={"outcome": outcome.value, "player": attacker.name})
        logger.info(
            "attack_resolved",
            extra={
                "player": attacker.name,
                "coord": record.coord,
                "outcome": outcome.value,
                "defender_alive": defender.alive_count,
            },
        )
        return AttackResult(
            outcome=outcome,
            coord=coord,
            plane_id=target.plane_id,
            defender_alive=defender.alive_count,
            record=record,
        )
