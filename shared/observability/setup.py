import logging

import structlog
from fastapi import FastAPI
from prometheus_fastapi_instrumentator import Instrumentator

# OpenTelemetry
from opentelemetry import trace
from opentelemetry.sdk.resources import Resource, SERVICE_NAME
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor

from shared.config import settings
from .redaction import redact_sensitive

# Probes and scrapes would drown the request metrics
UNMETERED_PATHS = ["/health", "/metrics"]


def add_trace_context(logger, log_method, event_dict):
    """Correlate log lines with the active span, when there is one."""
    span = trace.get_current_span()
    if span.is_recording():
        span_ctx = span.get_span_context()
        event_dict["trace_id"] = trace.format_trace_id(span_ctx.trace_id)
        event_dict["span_id"] = trace.format_span_id(span_ctx.span_id)
    return event_dict


def service_tagger(service_name: str):
    def add_service(logger, log_method, event_dict):
        event_dict.setdefault("service", service_name)
        return event_dict
    return add_service


def configure_logging(service_name: str):
    level = logging.getLevelName(settings.LOG_LEVEL)
    if not isinstance(level, int):
        level = logging.INFO

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            service_tagger(service_name),
            add_trace_context,
            structlog.processors.format_exc_info,
            # Last before rendering: nothing reaches the output unmasked
            redact_sensitive,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_tracing(app: FastAPI, service_name: str):
    provider = TracerProvider(resource=Resource.create({SERVICE_NAME: service_name}))
    provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.OTLP_ENDPOINT, insecure=True))
    )
    trace.set_tracer_provider(provider)

    FastAPIInstrumentor.instrument_app(app, excluded_urls=",".join(UNMETERED_PATHS))
    # Outbound gateway calls become child spans of the request
    HTTPXClientInstrumentor().instrument()


def configure_metrics(app: FastAPI):
    Instrumentator(excluded_handlers=UNMETERED_PATHS).instrument(app).expose(app, include_in_schema=False)


def setup_observability(app: FastAPI, service_name: str):
    """
    Logging always; tracing only when TRACING_ENABLED; Prometheus on /metrics.
    Call once, right after the app is created.
    """
    configure_logging(service_name)
    if settings.TRACING_ENABLED:
        configure_tracing(app, service_name)
    configure_metrics(app)
