# Overview: Error taxonomy shared by services and routes.

"""
Service errors carry a human message plus structured details; routes map each
class to an HTTP status via ``http_status``.

- ValidationError: bad input shape or range, caller can correct it
- NotFoundError: referenced entity absent or already terminal
- InvalidStateError: entity is in the wrong lifecycle state
- InsufficientStockError / CreditLimitExceededError: business rule violations
  that abort the whole atomic operation
- StoreUnavailableError: database transport failure, retryable
"""

from __future__ import annotations


class BarError(Exception):
    """Base class for domain errors."""
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(BarError):
    http_status = 400


class NotFoundError(BarError):
    http_status = 404


class InvalidStateError(BarError):
    http_status = 409


class InsufficientStockError(BarError):
    http_status = 409


class CreditLimitExceededError(BarError):
    http_status = 409


class StoreUnavailableError(BarError):
    http_status = 503


class AuthError(BarError):
    http_status = 401
