"""
Domain: error taxonomy for the fulfillment engine.

Every failure the engine can report belongs to exactly one category:

- ValidationError: malformed lead descriptor or request
- NotFoundError: order or lead missing
- ConflictError: duplicate assignment, quota exceeded at commit time
- ExpiredError: order no longer OPEN (fulfilled or expired)
- TransientError: storage unavailable; the only retryable category
"""

from __future__ import annotations

from typing import Optional


class OrderEngineError(Exception):
    """Base class for engine failures. `kind` is a stable machine-readable code."""

    category: str = "OrderEngineError"
    retryable: bool = False

    def __init__(self, message: str, kind: Optional[str] = None):
        self.message = message
        self.kind = kind or self.category
        super().__init__(message)


class ValidationError(OrderEngineError):
    """Raised when a lead descriptor or request is malformed."""

    category = "ValidationError"


class NotFoundError(OrderEngineError):
    """Raised when an order or lead cannot be found."""

    category = "NotFoundError"


class ConflictError(OrderEngineError):
    """Raised on duplicate assignment or when the quota was consumed by a concurrent winner."""

    category = "ConflictError"


class ExpiredError(OrderEngineError):
    """Raised when an order is no longer OPEN."""

    category = "ExpiredError"


class TransientError(OrderEngineError):
    """Raised when the backing store is unavailable. Safe to retry."""

    category = "TransientError"
    retryable = True


__all__ = [
    "OrderEngineError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "ExpiredError",
    "TransientError",
]
