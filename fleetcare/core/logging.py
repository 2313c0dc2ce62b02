"""Logging and tracing setup for the maintenance service.

Spans are opened by :mod:`fleetcare.maintenance.service` through
``trace.get_tracer``; until :func:`init_tracer` installs a provider they are
no-ops.
"""

from __future__ import annotations

import logging
from logging.config import dictConfig

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from fleetcare.core.config import Settings

APP_LOGGER = "fleetcare"

# Third-party loggers never drop below WARNING.
_QUIET_LOGGERS = ("asyncpg", "httpx", "opentelemetry")

_provider: TracerProvider | None = None


def parse_headers(header_string: str | None) -> dict[str, str]:
    """Parse ``key=value`` pairs separated by commas, skipping malformed items."""

    headers: dict[str, str] = {}
    for item in (header_string or "").split(","):
        key, sep, value = item.partition("=")
        if sep and key.strip():
            headers[key.strip()] = value.strip()
    return headers


def configure_logging(settings: Settings) -> logging.Logger:
    """Route every logger to stderr and return the ``fleetcare`` logger."""

    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    loggers = {APP_LOGGER: {"level": level}}
    loggers.update({name: {"level": max(level, logging.WARNING)} for name in _QUIET_LOGGERS})
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"plain": {"format": settings.log_format}},
            "handlers": {
                "stderr": {
                    "class": "logging.StreamHandler",
                    "formatter": "plain",
                    "level": level,
                }
            },
            "root": {"handlers": ["stderr"], "level": level},
            "loggers": loggers,
        }
    )
    return logging.getLogger(APP_LOGGER)


def _span_exporter(settings: Settings) -> OTLPSpanExporter:
    options: dict[str, object] = {}
    if settings.otel_exporter_otlp_endpoint:
        options["endpoint"] = settings.otel_exporter_otlp_endpoint
    headers = parse_headers(settings.otel_exporter_otlp_headers)
    if headers:
        options["headers"] = headers
    return OTLPSpanExporter(**options)


def init_tracer(settings: Settings) -> TracerProvider | None:
    """Install the OTLP tracer provider once; ``None`` when tracing is off or already set up."""

    global _provider

    if _provider is not None or not settings.otel_enabled:
        return None

    resource = Resource.create(
        {
            "service.name": settings.otel_service_name,
            "service.namespace": APP_LOGGER,
            "deployment.environment": settings.environment,
        }
    )
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(BatchSpanProcessor(_span_exporter(settings)))
    trace.set_tracer_provider(provider)
    _provider = provider
    return provider


def shutdown_tracer(provider: TracerProvider | None) -> None:
    global _provider

    if provider is None:
        return
    provider.force_flush()
    provider.shutdown()
    if provider is _provider:
        _provider = None
