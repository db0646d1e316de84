"""
OpenTelemetry instrumentation for the tool server.

Uses standard OTEL_* environment variables. When OTEL_SDK_DISABLED is not set or "false",
tool-call traces, metrics, and log export are enabled (if an endpoint is configured).
"""
