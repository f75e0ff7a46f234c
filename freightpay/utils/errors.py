"""Utility helpers for standardized error responses and domain errors."""
from typing import Any


def error_response(code: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    """Return a standardized error payload."""

    payload: dict[str, Any] = {"error": {"code": code, "message": message}}
    if details:
        payload["error"]["details"] = details
    return payload


class DomainError(Exception):
    """Base class for errors raised by the payment and pricing services."""

    code = "DOMAIN_ERROR"
    status_code = 400
    default_message = "Request could not be processed."

    def __init__(self, message: str | None = None, details: dict[str, Any] | None = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_response(self) -> dict[str, Any]:
        return error_response(self.code, self.message, self.details)


class AuthFailure(DomainError):
    """A gateway notification failed authentication.

    The message is deliberately uniform so responses never reveal which check failed.
    """

    code = "INVALID_NOTIFICATION"
    status_code = 400
    default_message = "Invalid notification."


class InvalidTransition(DomainError):
    code = "INVALID_TRANSITION"
    status_code = 409
    default_message = "Payment cannot move to the requested state."


class PaymentBusy(DomainError):
    code = "PAYMENT_BUSY"
    status_code = 409
    default_message = "Payment is being settled by another request; retry shortly."


class PayoutFailed(DomainError):
    code = "PAYOUT_FAILED"
    status_code = 502
    default_message = "Driver payout was not confirmed by the gateway; the payment remains held."


class RefundFailed(DomainError):
    code = "REFUND_FAILED"
    status_code = 502
    default_message = "Refund was not confirmed by the gateway; the payment remains held."


class NoRateTier(DomainError):
    code = "NO_RATE_TIER"
    status_code = 422
    default_message = "No pricing tier is configured for this category and weight."


class EstimationFailure(DomainError):
    code = "ESTIMATION_FAILURE"
    status_code = 500
    default_message = "Distance could not be estimated."


class InvalidAmount(DomainError):
    code = "INVALID_AMOUNT"
    status_code = 422
    default_message = "Invalid payment amount."


class LoadNotFound(DomainError):
    code = "LOAD_NOT_FOUND"
    status_code = 404
    default_message = "Load not found."


class PaymentNotFound(DomainError):
    code = "PAYMENT_NOT_FOUND"
    status_code = 404
    default_message = "Payment not found."


class CustomerNotFound(DomainError):
    code = "CUSTOMER_NOT_FOUND"
    status_code = 404
    default_message = "Customer not found."


__all__ = [
    "error_response",
    "DomainError",
    "AuthFailure",
    "InvalidTransition",
    "PaymentBusy",
    "PayoutFailed",
    "RefundFailed",
    "NoRateTier",
    "EstimationFailure",
    "InvalidAmount",
    "LoadNotFound",
    "PaymentNotFound",
    "CustomerNotFound",
]
