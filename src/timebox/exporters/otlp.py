"""
Built-in OTLP emitter for exceeded checkpoints.

POSTs HTTP/JSON to any OTLP endpoint. No opentelemetry-sdk dependency required.
Configure via: timebox.configure(tracer=timebox.exporters.otel(endpoint="..."))
"""

from __future__ import annotations

import json
import logging
import secrets
import threading
import time
from typing import Any
from urllib.error import URLError
from urllib.request import Request, urlopen

logger = logging.getLogger(__name__)


def otel(
    endpoint: str = "http://localhost:4318/v1/traces",
    service_name: str = "timebox",
    timeout_seconds: float = 5.0,
) -> Any:
    """
    Factory that returns a tracer callable compatible with timebox.configure(tracer=...).

    The returned callable accepts a dict of span attributes and POSTs them
    as an OTLP HTTP/JSON trace to the configured endpoint.
    """

    def _emit(span_attrs: dict[str, Any]) -> None:
        """
        Fire-and-forget OTLP span emission.

        Runs in a daemon thread so it never blocks the checkpoint that failed.
        Delivery errors are logged at DEBUG and otherwise dropped.
        """

        def _post() -> None:
            try:
                body = _build_otlp_body(span_attrs, service_name, time.time_ns())
                req = Request(
                    endpoint,
                    data=json.dumps(body).encode("utf-8"),
                    headers={
                        "Content-Type": "application/json",
                        "Accept": "application/json",
                    },
                    method="POST",
                )
                with urlopen(req, timeout=timeout_seconds) as resp:
                    resp.read()  # drain
            except (URLError, OSError, ValueError) as exc:
                logger.debug("OTLP export to %s failed: %s", endpoint, exc)

        threading.Thread(target=_post, daemon=True).start()

    return _emit


def _build_otlp_body(
    span_attrs: dict[str, Any],
    service_name: str,
    now_ns: int,
) -> dict:
    """
    Build a minimal OTLP HTTP/JSON trace body with a single span.

    The span ends now and starts `timebox.elapsed_seconds` earlier, so it
    covers the lifetime of the Budget up to the failed checkpoint.
    """
    elapsed = span_attrs.get("timebox.elapsed_seconds")
    start_ns = now_ns - int(elapsed * 1_000_000_000) if elapsed else now_ns

    name = span_attrs.get("timebox.checkpoint_name")
    span_name = f"timebox.checkpoint {name}" if name else "timebox.checkpoint"

    return {
        "resourceSpans": [
            {
                "resource": {
                    "attributes": _attrs_to_kv({"service.name": service_name}),
                },
                "scopeSpans": [
                    {
                        "scope": {"name": "timebox", "version": "0.1.0"},
                        "spans": [
                            {
                                "traceId": secrets.token_hex(16),
                                "spanId": secrets.token_hex(8),
                                "name": span_name,
                                "kind": 1,  # INTERNAL
                                "startTimeUnixNano": str(start_ns),
                                "endTimeUnixNano": str(now_ns),
                                "attributes": _attrs_to_kv(span_attrs),
                                "status": {
                                    "code": 2,  # ERROR
                                    "message": "Budget exceeded",
                                },
                            }
                        ],
                    }
                ],
            }
        ]
    }


def _attrs_to_kv(attrs: dict[str, Any]) -> list[dict]:
    """Convert a flat dict to OTLP KeyValue list."""
    result = []
    for key, value in attrs.items():
        if value is None:
            continue
        if isinstance(value, bool):
            kv = {"key": key, "value": {"boolValue": value}}
        elif isinstance(value, int):
            kv = {"key": key, "value": {"intValue": str(value)}}
        elif isinstance(value, float):
            kv = {"key": key, "value": {"doubleValue": value}}
        else:
            kv = {"key": key, "value": {"stringValue": str(value)}}
        result.append(kv)
    return result
