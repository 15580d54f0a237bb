"""Observability configuration for Azure Monitor and OpenTelemetry.

Call configure_observability() before FastAPI is imported so the Azure Monitor
distro can instrument incoming requests and outgoing httpx calls to the model
provider and the retrieval service.

PII guidance:
- NEVER put user drafts, rewritten text or retrieved guidance in span
  attributes. Drafts routinely contain names, addresses and signatures.
- Record sizes and counts instead (fragment count, transcript length).
- Use correlation IDs to link traces to the StructuredLogger output in
  core/error_handler.py, which redacts sensitive keys.

Production export:
- ENABLE_OBSERVABILITY=true and APPLICATIONINSIGHTS_CONNECTION_STRING set
- azure-monitor-opentelemetry installed (``observability`` extra)
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache

from opentelemetry import trace


logger = logging.getLogger(__name__)

_ENV_ENABLE_OBSERVABILITY = "ENABLE_OBSERVABILITY"
_ENV_APP_INSIGHTS_CONN_STRING = "APPLICATIONINSIGHTS_CONNECTION_STRING"
_ENV_OTEL_SERVICE_NAME = "OTEL_SERVICE_NAME"

_DEFAULT_SERVICE_NAME = "rewrite-assistant"

# Paths to exclude from automatic tracing
EXCLUDED_URLS = "api/health,health,favicon.ico"


def _is_observability_enabled() -> bool:
    value = os.getenv(_ENV_ENABLE_OBSERVABILITY, "false").lower()
    return value in {"true", "1", "yes", "on"}


@lru_cache
def configure_observability() -> bool:
    """Configure OpenTelemetry export to Azure Monitor.

    Returns:
        True if the exporter was configured, False when disabled, missing a
        connection string, or the optional package is not installed.
    """
    if not _is_observability_enabled():
        logger.info(
            "Observability disabled. Set %s=true to enable Azure Monitor.",
            _ENV_ENABLE_OBSERVABILITY,
        )
        return False

    connection_string = os.getenv(_ENV_APP_INSIGHTS_CONN_STRING)
    if not connection_string:
        logger.warning(
            "Observability enabled but %s not set. Skipping Azure Monitor setup.",
            _ENV_APP_INSIGHTS_CONN_STRING,
        )
        return False

    try:
        # Optional extra; only imported when export is requested
        from azure.monitor.opentelemetry import configure_azure_monitor
    except ImportError:
        logger.warning(
            "azure-monitor-opentelemetry package not installed. "
            "Install with: pip install 'rewrite-assistant[observability]'"
        )
        return False

    service_name = os.getenv(_ENV_OTEL_SERVICE_NAME, _DEFAULT_SERVICE_NAME)
    os.environ.setdefault("OTEL_SERVICE_NAME", service_name)
    os.environ.setdefault("OTEL_PYTHON_FASTAPI_EXCLUDED_URLS", EXCLUDED_URLS)

    try:
        configure_azure_monitor(connection_string=connection_string)
    except Exception as e:
        logger.exception("Failed to configure Azure Monitor observability: %s", e)
        return False

    logger.info("Azure Monitor observability configured for service '%s'", service_name)
    return True


def get_tracer(name: str) -> trace.Tracer:
    """Get an OpenTelemetry tracer for custom spans.

    Without a configured SDK the API returns a no-op tracer, so callers never
    need to check whether export is enabled.

    Example:
        tracer = get_tracer(__name__)

        with tracer.start_as_current_span("stream.analysis") as span:
            span.set_attribute("stream.fragment_count", count)

    WARNING: Never add user content or PII to span attributes!
    """
    return trace.get_tracer(name)
