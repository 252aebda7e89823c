"""Telemetry configuration helpers."""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Any, Dict

from pydantic import BaseModel, Field

_TRUTHY = {"1", "true", "yes", "on"}

# field name -> (project env var, OpenTelemetry env var)
_FLAG_ENV: dict[str, tuple[str, str]] = {
    "enable_tracing": ("PLANEBATTLE_ENABLE_TRACING", "OTEL_TRACES_ENABLED"),
    "enable_metrics": ("PLANEBATTLE_ENABLE_METRICS", "OTEL_METRICS_ENABLED"),
    "enable_logging": ("PLANEBATTLE_ENABLE_LOGGING", "OTEL_LOGS_ENABLED"),
}

# endpoint field -> (signal env var, path appended to OTEL_EXPORTER_OTLP_ENDPOINT)
_ENDPOINT_ENV: dict[str, tuple[str, str]] = {
    "otlp_traces_endpoint": ("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT", "v1/traces"),
    "otlp_metrics_endpoint": ("OTEL_EXPORTER_OTLP_METRICS_ENDPOINT", "v1/metrics"),
    "otlp_logs_endpoint": ("OTEL_EXPORTER_OTLP_LOGS_ENDPOINT", "v1/logs"),
}

_ENDPOINT_FLAGS = {
    "otlp_traces_endpoint": "enable_tracing",
    "otlp_metrics_endpoint": "enable_metrics",
    "otlp_logs_endpoint": "enable_logging",
}


class TelemetryConfig(BaseModel):
    """Which telemetry signals are exported, and where."""

    enable_tracing: bool = False
    enable_metrics: bool = False
    enable_logging: bool = False
    otlp_traces_endpoint: str | None = None
    otlp_metrics_endpoint: str | None = None
    otlp_logs_endpoint: str | None = None
    service_name: str = "planebattle"
    service_namespace: str = "game"
    resource_attributes: dict[str, str] = Field(default_factory=dict)

    def resource_labels(self) -> dict[str, str]:
        """Attributes attached to every exported resource."""
        labels = {
            "service.name": self.service_name,
            "service.namespace": self.service_namespace,
        }
        labels.update(self.resource_attributes)
        return labels

    @classmethod
    def from_env(cls, **overrides: Any) -> "TelemetryConfig":
        """Build a config from `PLANEBATTLE_*` and standard `OTEL_*` variables."""

        data: Dict[str, Any] = cls().model_dump()
        data.update(overrides)

        for field_name, env_names in _FLAG_ENV.items():
            for env_name in env_names:
                raw = os.getenv(env_name)
                if raw is not None:
                    data[field_name] = raw.strip().lower() in _TRUTHY
                    break

        base_endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
        for field_name, (env_name, suffix) in _ENDPOINT_ENV.items():
            if field_name in overrides:
                continue
            endpoint = os.getenv(env_name)
            if not endpoint and base_endpoint:
                endpoint = f"{base_endpoint.rstrip('/')}/{suffix}"
            if endpoint:
                data[field_name] = endpoint

        service_name = os.getenv("OTEL_SERVICE_NAME")
        if service_name:
            data["service_name"] = service_name
        service_namespace = os.getenv("OTEL_SERVICE_NAMESPACE")
        if service_namespace:
            data["service_namespace"] = service_namespace

        resource_env = os.getenv("OTEL_RESOURCE_ATTRIBUTES")
        if resource_env:
            attrs = dict(data.get("resource_attributes") or {})
            for part in resource_env.split(","):
                key, sep, value = part.partition("=")
                if sep:
                    attrs[key.strip()] = value.strip()
            data["resource_attributes"] = attrs

        # A configured endpoint switches its exporter on.
        for endpoint_field, flag_field in _ENDPOINT_FLAGS.items():
            if data.get(endpoint_field):
                data[flag_field] = True

        return cls(**data)


@lru_cache(maxsize=1)
def load_telemetry_config() -> TelemetryConfig:
    """Load and cache telemetry config from the environment."""

    return TelemetryConfig.from_env()


def init_telemetry(config: TelemetryConfig | None = None) -> TelemetryConfig:
    """Initialise whichever telemetry signals the config enables."""

    from .logger import init_logging
    from .metrics import init_metrics
    from .tracer import init_tracing

    resolved = config or load_telemetry_config()

    if resolved.enable_tracing:
        init_tracing(resolved)
    if resolved.enable_metrics:
        init_metrics(resolved)
    if resolved.enable_logging:
        init_logging(resolved)
    return resolved
