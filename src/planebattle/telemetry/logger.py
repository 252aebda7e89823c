"""Logging helpers with optional OpenTelemetry export."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .config import TelemetryConfig

LOG_FORMAT = (
    "%(asctime)s | %(levelname)s | %(name)s | %(message)s "
    "| trace_id=%(otelTraceID)s span_id=%(otelSpanID)s"
)

_LOGGERS: dict[str, logging.Logger] = {}
_OTLP_HANDLER: logging.Handler | None = None


class TraceContextFilter(logging.Filter):
    """Fill in trace/span placeholders so LOG_FORMAT never fails."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "otelTraceID"):
            record.otelTraceID = "-"
        if not hasattr(record, "otelSpanID"):
            record.otelSpanID = "-"
        return True


def get_logger(name: str = "planebattle") -> logging.Logger:
    """Return a named logger defaulting to INFO."""
    logger = _LOGGERS.get(name)
    if logger is None:
        logger = logging.getLogger(name)
        if logger.level == logging.NOTSET:
            logger.setLevel(logging.INFO)
        _LOGGERS[name] = logger
    return logger


def configure_console_logging(level: int = logging.INFO) -> None:
    """Give the root logger a trace-aware console handler if it has none."""
    root_logger = logging.getLogger()
    if root_logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(TraceContextFilter())
    root_logger.addHandler(handler)
    root_logger.setLevel(level)


def init_logging(config: TelemetryConfig) -> logging.Logger:
    """Route stdlib log records to the OTLP log exporter, when available."""
    global _OTLP_HANDLER
    logger = get_logger(config.service_name)
    try:
        from opentelemetry._logs import set_logger_provider
        from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter
        from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
        from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
        from opentelemetry.sdk.resources import Resource
    except ImportError:  # pragma: no cover
        return logger

    provider = LoggerProvider(resource=Resource.create(config.resource_labels()))
    if config.otlp_logs_endpoint:
        exporter = OTLPLogExporter(endpoint=config.otlp_logs_endpoint, insecure=True)
        provider.add_log_record_processor(BatchLogRecordProcessor(exporter))
    set_logger_provider(provider)

    configure_console_logging()
    if _OTLP_HANDLER is None:
        _OTLP_HANDLER = LoggingHandler(level=logging.INFO, logger_provider=provider)
        _OTLP_HANDLER.addFilter(TraceContextFilter())
        logging.getLogger().addHandler(_OTLP_HANDLER)
    return logger
