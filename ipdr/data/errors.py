"""
Error taxonomy for loading and querying call/session records.

Only structural problems (no rows, tokenizer failure) abort a load.
Value-level problems are absorbed by the canonicalizer.
"""
from __future__ import annotations


class IpdrError(Exception):
    """Base class for all engine errors."""


class EmptyInput(IpdrError):
    """The upload produced zero rows."""


class TokenizeError(IpdrError):
    """The file could not be split into rows and headers."""


class UnparseableValue(IpdrError):
    """A cell failed type coercion. Never fatal to a load."""

    def __init__(self, field: str, raw) -> None:
        super().__init__(f"Cannot parse {raw!r} as {field}")
        self.field = field
        self.raw = raw


class InvalidPredicate(IpdrError, ValueError):
    """A filter constraint is malformed (e.g. an inverted range)."""


# Older name kept for callers that think in terms of expressions
ExpressionError = InvalidPredicate


class NotFound(IpdrError, LookupError):
    """No record with the requested id in the current dataset."""


class AliasCollision(IpdrError):
    """One header alias is configured for two canonical fields."""
