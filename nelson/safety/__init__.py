"""Degraded-response path used when the pipeline cannot complete."""

from nelson.safety.fallback import FallbackResponder

__all__ = ["FallbackResponder"]
