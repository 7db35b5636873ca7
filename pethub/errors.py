"""
Error taxonomy for the logic layer.

Every service raises one of these; routes turn them into JSON error
responses with the matching status code (see routes/common.py).
Nothing in this hierarchy is fatal to the process.
"""

from __future__ import annotations


class PetHubError(Exception):
    """Base class. Carries an HTTP status, a stable code and optional details."""

    status_code = 500
    code = "error"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"error": self.message, "code": self.code}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(PetHubError, ValueError):
    """400-level input problem (missing or malformed field)."""

    status_code = 400
    code = "validation_error"


class NotFoundError(PetHubError, LookupError):
    """Referenced row does not exist or belongs to another tenant."""

    status_code = 404
    code = "not_found"


class ConflictError(PetHubError):
    """409-level business rule conflict. The caller may retry with other input."""

    status_code = 409
    code = "conflict"


class SlotConflictError(ConflictError):
    code = "slot_conflict"


class InsufficientStockError(ConflictError):
    code = "insufficient_stock"


class InvalidTransitionError(ConflictError):
    code = "invalid_transition"


class PlanLimitError(ConflictError):
    code = "plan_limit_reached"


class DependencyError(PetHubError):
    """The backing store is unreachable or rejected the operation."""

    status_code = 503
    code = "dependency_error"


class IdempotencyKeyReuseError(ConflictError):
    code = "idempotency_key_reused"
