# Overview: Domain error taxonomy for adjustment approval and ledger posting.

"""
Every error carries:
- code:        stable machine-readable kind (returned to API callers)
- http_status: status the route layer answers with
- retryable:   True only when the caller may safely retry without changes

Services raise these. Routes translate them; they never see partial state
because approval rolls back before the error propagates.
"""

from __future__ import annotations


class AdjustmentError(Exception):
    """Base class for all stock adjustment domain errors."""

    code = "ADJUSTMENT_ERROR"
    http_status = 400
    retryable = False

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message())
        self.message = message or self.default_message()

    @classmethod
    def default_message(cls) -> str:
        return cls.code.replace("_", " ").capitalize()

    def to_dict(self) -> dict:
        return {
            "error": self.code,
            "message": self.message,
            "retryable": self.retryable,
        }


class ValidationError(AdjustmentError):
    """400-level input problem."""
    code = "VALIDATION_ERROR"


class NotFound(AdjustmentError):
    code = "NOT_FOUND"
    http_status = 404


class TenantAccessError(NotFound):
    """Raised when a reference points outside the current tenant. Reported as not found."""
    code = "NOT_FOUND"


class InvalidState(AdjustmentError):
    """Illegal lifecycle transition."""
    code = "INVALID_STATE"
    http_status = 409


class EmptyAdjustment(AdjustmentError):
    code = "EMPTY_ADJUSTMENT"

    @classmethod
    def default_message(cls) -> str:
        return "Cannot submit an adjustment without lines"


class MissingReason(AdjustmentError):
    code = "MISSING_REASON"

    @classmethod
    def default_message(cls) -> str:
        return "Rejection reason is required"


class NoActivePeriod(AdjustmentError):
    code = "NO_ACTIVE_PERIOD"
    http_status = 422

    @classmethod
    def default_message(cls) -> str:
        return "No active financial period found"


class NoDefaultCurrency(AdjustmentError):
    code = "NO_DEFAULT_CURRENCY"
    http_status = 422

    @classmethod
    def default_message(cls) -> str:
        return "No default currency configured"


class InsufficientStock(AdjustmentError):
    code = "INSUFFICIENT_STOCK"
    http_status = 409


class RateNotFound(AdjustmentError):
    code = "RATE_NOT_FOUND"
    http_status = 422


class PriceHistoryWriteError(AdjustmentError):
    """Price history could not be written and the policy is fail_closed."""
    code = "PRICE_HISTORY_WRITE_FAILED"
    http_status = 500


class ConcurrencyTimeout(AdjustmentError):
    """Lock wait or deadlock persisted past the retry budget."""
    code = "CONCURRENCY_TIMEOUT"
    http_status = 503
    retryable = True

    @classmethod
    def default_message(cls) -> str:
        return "Timed out waiting for inventory lock; retry the request"
