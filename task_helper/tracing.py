"""
OpenTelemetry Tracing Setup
===========================
Spans for task helper runs. Each pipeline invocation opens one
``task_helper_pipeline`` span carrying the target name, its status and the
written destinations.

Export is off unless ENABLE_TRACING=true; otherwise the API's no-op tracer is
handed out and attribute calls are free.
"""

import atexit
from typing import Any, Mapping, Optional

from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource, SERVICE_NAME

from task_helper.config import TRACING

SERVICE_NAME_VALUE = TRACING.SERVICE_NAME
OTLP_ENDPOINT = TRACING.OTLP_ENDPOINT
ENABLE_TRACING = TRACING.ENABLED

# Attribute limits; destination lists of large targets are cut, not dropped.
MAX_ATTRIBUTE_CHARS = 1024
MAX_ATTRIBUTE_ITEMS = 50

_provider: Optional[TracerProvider] = None
_tracer: Optional[trace.Tracer] = None


def shutdown_tracing() -> None:
    """Flush and stop the exporting provider, if one was set up."""
    global _provider
    if _provider is None:
        return
    provider, _provider = _provider, None
    provider.shutdown()


def setup_tracing(service_name: str = SERVICE_NAME_VALUE) -> trace.Tracer:
    """Install an OTLP/HTTP exporting provider and return its tracer."""
    global _provider

    _provider = TracerProvider(resource=Resource.create({SERVICE_NAME: service_name}))
    _provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=OTLP_ENDPOINT)))
    trace.set_tracer_provider(_provider)
    atexit.register(shutdown_tracing)

    return trace.get_tracer(service_name)


def get_tracer(name: str = SERVICE_NAME_VALUE) -> trace.Tracer:
    return trace.get_tracer(name)


def init_tracing() -> trace.Tracer:
    """
    Initialize tracing once per process.

    Returns:
        The exporting tracer when ENABLE_TRACING is set, the no-op tracer otherwise
    """
    global _tracer
    if _tracer is None:
        _tracer = setup_tracing() if ENABLE_TRACING else trace.get_tracer(SERVICE_NAME_VALUE)
    return _tracer


def _attribute_value(value: Any) -> Any:
    """Map ``value`` onto a type OpenTelemetry accepts, or None to skip it."""
    if value is None:
        return None
    if isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, str):
        return value[:MAX_ATTRIBUTE_CHARS]
    if isinstance(value, (list, tuple)):
        return [str(item)[:MAX_ATTRIBUTE_CHARS] for item in list(value)[:MAX_ATTRIBUTE_ITEMS]]
    return str(value)[:MAX_ATTRIBUTE_CHARS]


def safe_set_span_attributes(span: Any, attributes: Mapping[str, Any]) -> None:
    """Set attributes without ever failing the run over tracing."""
    setter = getattr(span, "set_attribute", None)
    if not callable(setter):
        return

    for key, value in attributes.items():
        if not isinstance(key, str) or not key:
            continue
        converted = _attribute_value(value)
        if converted is None:
            continue
        try:
            setter(key, converted)
        except Exception:
            continue


def safe_set_current_span_attributes(attributes: Mapping[str, Any]) -> None:
    safe_set_span_attributes(trace.get_current_span(), attributes)
