"""
OpenTelemetry Manager for the tool server.

Provides a small interface for OpenTelemetry instrumentation using standard
OTEL_* environment variables. OTEL_SDK_DISABLED (standard OTel env var)
turns telemetry off.

Key design:
- Process-global SDK initialization via module-level _initialized flag
- Inline span management via span_begin/span_success/span_failure
- Async-safe span stack via contextvars for nesting support
- OtelConfig uses pydantic BaseSettings with OTEL-compliant env var names
"""

import logging
import os
import time
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from opentelemetry import trace, metrics, context as otel_context
from opentelemetry import _logs as otel_logs
from opentelemetry.context import Context
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.resources import Resource, SERVICE_NAME
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter
from opentelemetry.trace import Span, SpanKind, Status, StatusCode

logger = logging.getLogger(__name__)


def _get_log_level() -> int:
    """Get the configured log level as a logging constant.

    Reads from LOG_LEVEL env var, defaults to INFO if not set or invalid.
    """
    level_str = os.getenv("LOG_LEVEL", "INFO").upper()
    level_map = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "WARN": logging.WARNING,
        "ERROR": logging.ERROR,
    }
    return level_map.get(level_str, logging.INFO)


class ToolLoggingHandler(LoggingHandler):
    """LoggingHandler that also exports the logger name as a record attribute."""

    def emit(self, record: logging.LogRecord) -> None:
        if not hasattr(record, "logger_name"):
            record.logger_name = record.name
        super().emit(record)


# Semantic conventions for tool server spans
ATTR_SERVER_NAME = "mcp.server.name"
ATTR_TOOL_NAME = "tool.name"
ATTR_CODE_LENGTH = "tool.code.length"

# Process-global initialization state
_initialized: bool = False


@dataclass
class SpanState:
    """State for an active span on the stack."""

    span: Span
    token: Token[Context]
    start_time: float
    tool: Optional[str] = None
    attrs: Dict[str, Any] = field(default_factory=dict)
    ended: bool = False


# default=None so async contexts never share one mutable list
_span_stack: ContextVar[Optional[List[SpanState]]] = ContextVar("tool_span_stack", default=None)


class OtelConfig(BaseSettings):
    """OpenTelemetry configuration from standard OTEL_* environment variables."""

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    otel_service_name: str
    otel_exporter_otlp_endpoint: str
    otel_sdk_disabled: bool = False
    otel_resource_attributes: str = ""

    @property
    def enabled(self) -> bool:
        return not self.otel_sdk_disabled


def is_otel_enabled() -> bool:
    """True only once init_otel() has successfully initialised the SDK."""
    return _initialized


def should_enable_otel() -> bool:
    """Check env vars before init_otel() runs.

    Returns True if OTEL_SDK_DISABLED is not true AND both OTEL_SERVICE_NAME
    and OTEL_EXPORTER_OTLP_ENDPOINT are configured.
    """
    disabled = os.getenv("OTEL_SDK_DISABLED", "false").lower() in ("true", "1", "yes")
    if disabled:
        return False
    service_name = os.getenv("OTEL_SERVICE_NAME", "")
    endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "")
    return bool(service_name and endpoint)


def init_otel(service_name: Optional[str] = None) -> bool:
    """Initialize OpenTelemetry with standard OTEL_* env vars.

    Idempotent - safe to call multiple times.

    Args:
        service_name: Fallback service name if OTEL_SERVICE_NAME is not set

    Returns:
        True if OTel was initialized, False if disabled or already initialized
    """
    global _initialized

    if _initialized:
        return False

    if os.getenv("OTEL_SDK_DISABLED", "false").lower() in ("true", "1", "yes"):
        logger.debug("OpenTelemetry disabled (OTEL_SDK_DISABLED=true)")
        return False

    try:
        if service_name and not os.getenv("OTEL_SERVICE_NAME"):
            os.environ["OTEL_SERVICE_NAME"] = service_name

        if not os.getenv("OTEL_SERVICE_NAME") or not os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT"):
            logger.debug(
                "OpenTelemetry not configured: "
                "OTEL_SERVICE_NAME and OTEL_EXPORTER_OTLP_ENDPOINT required"
            )
            return False

        config = OtelConfig()  # type: ignore[call-arg]
    except Exception as e:
        logger.warning(f"OpenTelemetry config error: {e}")
        return False

    resource = Resource.create({SERVICE_NAME: config.otel_service_name})

    # Exporters read OTEL_EXPORTER_OTLP_* env vars for endpoint, TLS and headers
    tracer_provider = TracerProvider(resource=resource)
    tracer_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter()))
    trace.set_tracer_provider(tracer_provider)

    metric_reader = PeriodicExportingMetricReader(OTLPMetricExporter())
    metrics.set_meter_provider(MeterProvider(resource=resource, metric_readers=[metric_reader]))

    logger_provider = LoggerProvider(resource=resource)
    logger_provider.add_log_record_processor(BatchLogRecordProcessor(OTLPLogExporter()))
    otel_logs.set_logger_provider(logger_provider)
    otel_handler = ToolLoggingHandler(level=_get_log_level(), logger_provider=logger_provider)
    logging.getLogger().addHandler(otel_handler)

    logger.info(
        f"OpenTelemetry initialized: {config.otel_exporter_otlp_endpoint} "
        f"(service: {config.otel_service_name})"
    )
    _initialized = True
    return True


class ToolOtelManager:
    """Creates tool-call spans and records tool-call metrics.

    Example:
        otel = ToolOtelManager("calculator")
        otel.span_begin("tool.execute_python", tool="execute_python")
        try:
            ...
        except Exception as e:
            otel.span_failure(e)
            raise
        else:
            otel.span_success()
    """

    def __init__(self, server_name: str):
        self.server_name = server_name
        self._tracer = trace.get_tracer(f"minipy.{server_name}")
        self._meter = metrics.get_meter(f"minipy.{server_name}")
        self._tool_counter: Optional[metrics.Counter] = None
        self._tool_duration: Optional[metrics.Histogram] = None

    def _ensure_metrics(self) -> None:
        """Lazily initialize metric instruments."""
        if self._tool_counter is not None:
            return
        self._tool_counter = self._meter.create_counter(
            "minipy.tool.calls", description="Tool call count", unit="1"
        )
        self._tool_duration = self._meter.create_histogram(
            "minipy.tool.duration", description="Tool call duration", unit="ms"
        )

    def _get_stack(self) -> List[SpanState]:
        stack = _span_stack.get()
        if stack is None:
            stack = []
            _span_stack.set(stack)
        return stack

    def span_begin(
        self,
        name: str,
        *,
        tool: Optional[str] = None,
        kind: SpanKind = SpanKind.SERVER,
        attrs: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Begin a span. Must be paired with span_success() or span_failure()."""
        if not _initialized:
            return

        span_attrs: Dict[str, Any] = {ATTR_SERVER_NAME: self.server_name}
        if tool:
            span_attrs[ATTR_TOOL_NAME] = tool
        if attrs:
            span_attrs.update({k: v for k, v in attrs.items() if v is not None})

        span = self._tracer.start_span(name, kind=kind, attributes=span_attrs)
        token = otel_context.attach(trace.set_span_in_context(span))
        self._get_stack().append(
            SpanState(span=span, token=token, start_time=time.perf_counter(), tool=tool, attrs=span_attrs)
        )

    def span_success(self) -> None:
        """End the current span with OK status."""
        self._end(None)

    def span_failure(self, exc: Exception) -> None:
        """End the current span with ERROR status and record the exception."""
        self._end(exc)

    def _end(self, exc: Optional[Exception]) -> None:
        if not _initialized:
            return

        stack = self._get_stack()
        if not stack or stack[-1].ended:
            return

        state = stack[-1]
        state.ended = True
        duration_ms = (time.perf_counter() - state.start_time) * 1000

        if exc is None:
            state.span.set_status(Status(StatusCode.OK))
        else:
            state.span.set_status(Status(StatusCode.ERROR, str(exc)))
            state.span.record_exception(exc)
        state.span.end()
        otel_context.detach(state.token)

        self._record_tool_call(state.tool, duration_ms, success=exc is None)
        stack.pop()

    def _record_tool_call(self, tool: Optional[str], duration_ms: float, success: bool) -> None:
        if not tool:
            return
        self._ensure_metrics()
        labels = {
            ATTR_SERVER_NAME: self.server_name,
            "tool": tool,
            "success": str(success).lower(),
        }
        if self._tool_counter:
            self._tool_counter.add(1, labels)
        if self._tool_duration:
            self._tool_duration.record(duration_ms, labels)
