"""Exceptions raised by the STV tabulation engine."""


class TabulationError(Exception):
    """Base class for tabulation failures."""


class ConfigurationError(TabulationError, ValueError):
    """Rules or ballot input rejected before any round is counted."""


class InvariantViolation(TabulationError, RuntimeError):
    """A counting invariant failed; every later round would be invalid."""
