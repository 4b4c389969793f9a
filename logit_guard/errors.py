"""
Exception hierarchy for LogitGuard.

Every failure at this layer is a programming or configuration error, never a
transient condition, so nothing here is retried. Each exception also derives
from the matching builtin so callers that only know about ``ValueError`` or
``NotImplementedError`` still catch them.

Hierarchy:
    LogitGuardError
    ├── RuleNotImplementedError  (NotImplementedError)
    ├── InvalidConfigurationError  (ValueError)
    └── ShapeMismatchError  (ValueError)
"""

from typing import List, Optional


class LogitGuardError(Exception):
    """Base class for all LogitGuard errors."""


class RuleNotImplementedError(LogitGuardError, NotImplementedError):
    """A rule was invoked without a concrete ``__call__`` implementation."""


class InvalidConfigurationError(LogitGuardError, ValueError):
    """
    A rule or generation config was constructed with invalid options.

    Attributes:
        errors: Individual error messages (one per failed check)
    """

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = list(errors) if errors else [message]


class ShapeMismatchError(LogitGuardError, ValueError):
    """A score buffer does not have the shape a rule or chain expects."""
