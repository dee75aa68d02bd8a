"""Small helpers with no domain dependencies."""

from .ids import generate_id, now_ms

__all__ = ["generate_id", "now_ms"]
