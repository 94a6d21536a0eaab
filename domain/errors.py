"""
Domain errors.

"No eligible seller" and "no matching pricing rule" are expected business
outcomes and are returned as explicit empty results, never raised. The
exceptions below signal caller or data bugs.
"""

from __future__ import annotations


class InvalidConfigurationError(ValueError):
    """Raised when round-robin settings, app settings or rule data are malformed."""


class InvalidPricingRuleError(InvalidConfigurationError):
    """Raised when a single pricing rule is malformed (min > max, negative fee, ...)."""


class InvalidQueueOrderError(ValueError):
    """Raised when a manual queue order does not match the participating sellers."""


class InvalidReassignmentError(ValueError):
    """Raised when a lead reassignment request cannot be carried out as asked."""


class InvalidStatusTransitionError(ValueError):
    """Raised when a quotation status change is not allowed."""

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Invalid status transition: {current} -> {requested}")


__all__ = [
    "InvalidConfigurationError",
    "InvalidPricingRuleError",
    "InvalidQueueOrderError",
    "InvalidReassignmentError",
    "InvalidStatusTransitionError",
]
