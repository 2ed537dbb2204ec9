"""
Error types for the Bible Notes Companion.

Absence is never an error: lookups return None and deletes of missing
keys are no-ops.
"""


class CompanionError(Exception):
    """Base class for all errors raised by the bnc package."""


class ValidationError(CompanionError, ValueError):
    """Malformed key input (non-positive chapter/verse, bad book id, unknown strategy)."""


class FormatError(CompanionError, ValueError):
    """Unrecognized or missing document version, or an unparseable document."""


class PersistenceError(CompanionError, RuntimeError):
    """The underlying store failed to read or write."""
