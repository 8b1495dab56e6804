"""
Exception types raised by the cable engine.

Advisory problems (non-ideal but usable configurations) never raise; they are
reported as ValidationWarning entries. Only structurally invalid input and
arithmetic impossibilities are hard failures.
"""
from __future__ import annotations


class CableEngineError(Exception):
    """Base class for all cable engine errors."""


class InvalidInput(CableEngineError, ValueError):
    """Raised when a request or record is structurally invalid."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class InvalidNumber(InvalidInput):
    """Raised when a value cannot be used as an exact decimal number."""


class DivisionByZero(CableEngineError, ArithmeticError):
    """Raised instead of returning an infinite or NaN result."""
