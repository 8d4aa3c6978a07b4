from __future__ import annotations


class ExploitMemoryError(Exception):
    """Base exception for all exploit-memory errors."""


# ── Input-shape Errors ───────────────────────────────────────────────

class DimensionMismatchError(ExploitMemoryError, ValueError):
    """Two vectors being compared have different lengths."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"vector dimension mismatch: expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


# ── Config Errors ────────────────────────────────────────────────────

class ConfigError(ExploitMemoryError):
    """Invalid or missing configuration."""
