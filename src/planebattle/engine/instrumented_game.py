"""Plane Battle controller with match-level telemetry hooks."""

from __future__ import annotations

import time

from planebattle.engine.attack import AttackOutcome, AttackResult
from planebattle.engine.game import GamePhase, PlaneBattleGame
from planebattle.engine.geometry import Coordinate
from planebattle.telemetry import get_logger, get_tracer, record_game_metric


class InstrumentedPlaneBattleGame(PlaneBattleGame):
    """Wraps PlaneBattleGame with a per-match span, attack metrics and logging."""

    def __init__(self, *args, **kwargs) -> None:
        self._logger = get_logger("planebattle.engine")
        self._tracer = get_tracer("planebattle.engine")
        self._match_span_cm = None
        self._match_span = None
        self._match_start_time: float | None = None
        self._match_id_counter = 0
        super().__init__(*args, **kwargs)

    def _new_match(self) -> None:
        super()._new_match()
        self._start_match_span()

    def confirm_setup(self) -> bool:
        player = self.active_player
        with self._tracer.start_as_current_span("planebattle.engine.confirm_setup") as span:
            span.set_attribute("match.id", self._match_id_counter)
            span.set_attribute("player", player.name)
            confirmed = super().confirm_setup()
            span.set_attribute("confirmed", confirmed)
            if confirmed:
                record_game_metric("planebattle_setup_confirmed_total", 1, {"player": player.name})
                self._logger.info("Setup confirmed for %s", player.name)
            return confirmed

    def attack(self, coord: Coordinate) -> AttackResult | None:
        player = self.active_player
        with self._tracer.start_as_current_span("planebattle.engine.attack") as span:
            span.set_attribute("match.id", self._match_id_counter)
            span.set_attribute("player", player.name)
            span.set_attribute("coord.x", coord.x)
            span.set_attribute("coord.y", coord.y)

            result = super().attack(coord)
            if result is None:
                record_game_metric(
                    "planebattle_attacks_rejected_total",
                    1,
                    {"player": player.name, "phase": self.phase.value},
                )
                span.set_attribute("rejected", True)
                self._logger.info(
                    "Rejected attack from %s at (%d,%d)", player.name, coord.x, coord.y
                )
                return None

            span.set_attribute("outcome", result.outcome.name)
            span.set_attribute("kill", result.outcome is AttackOutcome.KILL)
            record_game_metric("planebattle_attacks_total", 1, {"player": player.name})
            record_game_metric(
                "planebattle_attacks_by_result_total",
                1,
                {"player": player.name, "result": result.outcome.value},
            )
            self._logger.info(
                "attack player=%s coord=%s outcome=%s",
                player.name,
                result.record.coord,
                result.outcome.name,
            )

            if self.phase is GamePhase.GAME_OVER and self.winner:
                span.set_attribute("winner", self.winner.name)
                self._finish_match()
            return result

    def _start_match_span(self) -> None:
        self._close_match_span()
        self._match_start_time = time.perf_counter()
        self._match_id_counter += 1
        self._match_span_cm = self._tracer.start_as_current_span("planebattle.engine.match")
        self._match_span = self._match_span_cm.__enter__()
        self._match_span.set_attribute("match.id", self._match_id_counter)

    def _finish_match(self) -> None:
        duration = (
            (time.perf_counter() - self._match_start_time) if self._match_start_time else 0.0
        )
        turns = len(self.log)
        winner = self.winner.name if self.winner else "unknown"

        record_game_metric("planebattle_game_completed_total", 1, {"winner": winner})
        record_game_metric("planebattle_game_duration_seconds", duration, {"winner": winner})

        with self._tracer.start_as_current_span("planebattle.engine.game_complete") as span:
            span.set_attribute("match.id", self._match_id_counter)
            span.set_attribute("winner", winner)
            span.set_attribute("turns", turns)
            span.set_attribute("duration_ms", duration * 1000)

        if self._match_span is not None:
            self._match_span.set_attribute("winner", winner)
            self._match_span.set_attribute("turns", turns)

        self._logger.info(
            "Match finished. Winner=%s turns=%d duration_s=%.3f", winner, turns, duration
        )
        self._close_match_span()

    def _close_match_span(self) -> None:
        if self._match_span_cm is not None:
            self._match_span_cm.__exit__(None, None, None)
            self._match_span_cm = None
            self._match_span = None
