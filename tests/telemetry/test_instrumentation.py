"""Telemetry instrumentation unit tests."""

from __future__ import annotations

import logging
from unittest.mock import MagicMock

import pytest

from planebattle.engine.attack import AttackOutcome, AttackResult, TurnRecord
from planebattle.engine.game import GamePhase, PlaneBattleGame
from planebattle.engine.geometry import Coordinate
from planebattle.engine.instrumented_game import InstrumentedPlaneBattleGame
from planebattle.engine.fleet import PlayerId
from planebattle.settings import GameSettings
from planebattle.telemetry import config as telemetry_config_module
from planebattle.telemetry import logger as logger_module
from planebattle.telemetry import metrics as metrics_module
from planebattle.telemetry import tracer as tracer_module
from planebattle.telemetry.config import TelemetryConfig


class DummySpan:
    def __init__(self, names: list[str], span_name: str) -> None:
        self._names = names
        self._names.append(span_name)
        self.attributes: dict[str, object] = {}

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        return False

    def set_attribute(self, key, value):
        self.attributes[key] = value


class DummyTracer:
    def __init__(self) -> None:
        self.span_names: list[str] = []

    def start_as_current_span(self, name: str):
        return DummySpan(self.span_names, name)


@pytest.fixture(autouse=True)
def reset_singletons():
    yield
    tracer_module._TRACERS.clear()
    tracer_module._TRACER_PROVIDER = None
    metrics_module._METERS.clear()
    metrics_module._METER_PROVIDER = None
    metrics_module._INSTRUMENTS = {}
    logger_module._LOGGERS.clear()


def test_tracer_and_meter_are_cached_per_name() -> None:
    assert tracer_module.get_tracer("a") is tracer_module.get_tracer("a")
    assert metrics_module.get_meter("a") is metrics_module.get_meter("a")


def test_init_tracing_and_metrics_use_sdk_providers(monkeypatch: pytest.MonkeyPatch) -> None:
    provider_instance = MagicMock()
    monkeypatch.setattr(tracer_module, "TracerProvider", MagicMock(return_value=provider_instance))
    monkeypatch.setattr(tracer_module, "OTLPSpanExporter", MagicMock(return_value=MagicMock()))
    monkeypatch.setattr(tracer_module, "BatchSpanProcessor", MagicMock(return_value=MagicMock()))
    monkeypatch.setattr(tracer_module.trace, "set_tracer_provider", MagicMock())
    tracer = tracer_module.init_tracing(
        TelemetryConfig(enable_tracing=True, otlp_traces_endpoint="http://example")
    )
    assert tracer is provider_instance.get_tracer.return_value
    assert tracer_module.OTLPSpanExporter.call_args.kwargs["endpoint"] == "http://example"

    meter_provider = MagicMock()
    monkeypatch.setattr(metrics_module, "MeterProvider", MagicMock(return_value=meter_provider))
    monkeypatch.setattr(metrics_module, "OTLPMetricExporter", MagicMock(return_value=MagicMock()))
    monkeypatch.setattr(
        metrics_module, "PeriodicExportingMetricReader", MagicMock(return_value=MagicMock())
    )
    monkeypatch.setattr(metrics_module.otel_metrics, "set_meter_provider", MagicMock())
    meter = metrics_module.init_metrics(
        TelemetryConfig(enable_metrics=True, otlp_metrics_endpoint="http://example")
    )
    assert meter is meter_provider.get_meter.return_value


def test_record_game_metric_reuses_counter(monkeypatch: pytest.MonkeyPatch) -> None:
    meter = MagicMock()
    monkeypatch.setattr(metrics_module, "get_meter", lambda *_: meter)
    metrics_module.record_game_metric("planebattle_test_total", 1, {"player": "ONE"})
    metrics_module.record_game_metric("planebattle_test_total", 2)
    meter.create_counter.assert_called_once_with("planebattle_test_total")
    counter = meter.create_counter.return_value
    counter.add.assert_any_call(1, attributes={"player": "ONE"})
    counter.add.assert_any_call(2, attributes={})


def test_get_logger_defaults_to_info() -> None:
    logger = logger_module.get_logger("planebattle.test")
    assert logger is logger_module.get_logger("planebattle.test")
    assert logger.level == logging.INFO


def test_trace_context_filter_fills_placeholders() -> None:
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
    assert logger_module.TraceContextFilter().filter(record)
    assert record.otelTraceID == "-"
    assert record.otelSpanID == "-"


def test_init_telemetry_noop(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[str] = []
    monkeypatch.setattr(tracer_module, "init_tracing", lambda cfg: calls.append("tr"))
    monkeypatch.setattr(metrics_module, "init_metrics", lambda cfg: calls.append("me"))
    monkeypatch.setattr(logger_module, "init_logging", lambda cfg: calls.append("lo"))

    telemetry_config_module.init_telemetry(TelemetryConfig())
    assert calls == []


def test_init_telemetry_respects_flags(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[str] = []
    monkeypatch.setattr(tracer_module, "init_tracing", lambda cfg: calls.append("tr"))
    monkeypatch.setattr(metrics_module, "init_metrics", lambda cfg: calls.append("me"))
    monkeypatch.setattr(logger_module, "init_logging", lambda cfg: calls.append("lo"))

    telemetry_config_module.init_telemetry(TelemetryConfig(enable_tracing=True, enable_logging=True))
    assert calls == ["tr", "lo"]


def test_config_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "OTEL_EXPORTER_OTLP_TRACES_ENDPOINT",
        "OTEL_EXPORTER_OTLP_METRICS_ENDPOINT",
        "OTEL_EXPORTER_OTLP_LOGS_ENDPOINT",
        "OTEL_TRACES_ENABLED",
        "OTEL_METRICS_ENABLED",
        "OTEL_LOGS_ENABLED",
        "PLANEBATTLE_ENABLE_TRACING",
        "PLANEBATTLE_ENABLE_LOGGING",
        "OTEL_SERVICE_NAMESPACE",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://collector:4317/")
    monkeypatch.setenv("PLANEBATTLE_ENABLE_METRICS", "no")
    monkeypatch.setenv("OTEL_SERVICE_NAME", "planes")
    monkeypatch.setenv("OTEL_RESOURCE_ATTRIBUTES", "deployment=test,broken")

    config = TelemetryConfig.from_env()

    assert config.otlp_traces_endpoint == "http://collector:4317/v1/traces"
    assert config.otlp_logs_endpoint == "http://collector:4317/v1/logs"
    assert config.enable_tracing is True
    # An endpoint still switches metrics on even when the flag says no.
    assert config.enable_metrics is True
    assert config.service_name == "planes"
    assert config.resource_attributes == {"deployment": "test"}
    assert config.resource_labels()["service.name"] == "planes"


def test_load_telemetry_config_cached(monkeypatch: pytest.MonkeyPatch) -> None:
    telemetry_config_module.load_telemetry_config.cache_clear()
    calls = {"count": 0}

    def fake_from_env(cls, **overrides):
        calls["count"] += 1
        return TelemetryConfig(enable_tracing=True)

    monkeypatch.setattr(TelemetryConfig, "from_env", classmethod(fake_from_env))

    first = telemetry_config_module.load_telemetry_config()
    second = telemetry_config_module.load_telemetry_config()
    assert first is second
    assert calls["count"] == 1
    telemetry_config_module.load_telemetry_config.cache_clear()


def test_instrumented_game_emits_spans(monkeypatch: pytest.MonkeyPatch) -> None:
    tracer = DummyTracer()
    metrics_calls: list[tuple[str, float, dict | None]] = []

    monkeypatch.setattr("planebattle.engine.instrumented_game.get_tracer", lambda *_: tracer)
    monkeypatch.setattr("planebattle.engine.instrumented_game.get_logger", lambda *_: MagicMock())
    monkeypatch.setattr(
        "planebattle.engine.instrumented_game.record_game_metric",
        lambda name, value, attrs=None: metrics_calls.append((name, value, attrs)),
    )

    def fake_attack(self, coord):
        self.phase = GamePhase.GAME_OVER
        self.winner = self.active_player
        record = TurnRecord("Player 1", "A1", AttackOutcome.KILL, 1)
        self.log.insert(0, record)
        return AttackResult(AttackOutcome.KILL, coord, "p2-0", 0, record)

    monkeypatch.setattr(PlaneBattleGame, "attack", fake_attack)

    game = InstrumentedPlaneBattleGame(settings=GameSettings())
    assert "planebattle.engine.match" in tracer.span_names

    tracer.span_names.clear()
    result = game.attack(Coordinate(0, 0))
    assert result.outcome is AttackOutcome.KILL
    assert "planebattle.engine.attack" in tracer.span_names
    assert "planebattle.engine.game_complete" in tracer.span_names
    metric_names = {name for name, _, _ in metrics_calls}
    assert "planebattle_attacks_total" in metric_names
    assert "planebattle_attacks_by_result_total" in metric_names
    assert "planebattle_game_completed_total" in metric_names
    assert game.winner is PlayerId.ONE


def test_instrumented_game_counts_rejected_attacks(monkeypatch: pytest.MonkeyPatch) -> None:
    tracer = DummyTracer()
    metric_names: list[str] = []
    monkeypatch.setattr("planebattle.engine.instrumented_game.get_tracer", lambda *_: tracer)
    monkeypatch.setattr("planebattle.engine.instrumented_game.get_logger", lambda *_: MagicMock())
    monkeypatch.setattr(
        "planebattle.engine.instrumented_game.record_game_metric",
        lambda name, value, attrs=None: metric_names.append(name),
    )

    game = InstrumentedPlaneBattleGame(settings=GameSettings())
    assert game.attack(Coordinate(0, 0)) is None
    assert metric_names == ["planebattle_attacks_rejected_total"]

    game.random_setup()
    assert game.confirm_setup()
    assert "planebattle.engine.confirm_setup" in tracer.span_names
    assert "planebattle_setup_confirmed_total" in metric_names
