# Overview: Business-rule and infrastructure errors raised by the service layer.

from __future__ import annotations


class PosError(Exception):
    """Base for errors that abort an operation with no partial effects."""

    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ProductNotFound(PosError):
    status_code = 404


class DiscountNotFound(PosError):
    status_code = 404


class TransactionNotFound(PosError):
    status_code = 404


class InvalidQuantity(PosError):
    status_code = 422


class InsufficientStock(PosError):
    status_code = 409


class InsufficientPayment(PosError):
    status_code = 422


class DuplicateFeedback(PosError):
    status_code = 409


class PersistenceFailure(PosError):
    """Atomic commit failed; detail is logged, never returned to the caller."""

    status_code = 500

    def to_dict(self) -> dict:
        return {"error": "Internal server error"}
