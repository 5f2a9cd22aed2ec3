"""Tracer factories for timebox.configure(tracer=...)."""

from .otlp import otel

__all__ = ["otel"]
