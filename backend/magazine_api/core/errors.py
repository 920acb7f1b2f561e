"""Error taxonomy for the billing API.

Every error carries the HTTP status it maps to. The exception handlers in
``main.py`` turn them into a bare ``{"success": false}`` body; the message
and context only ever reach the server log.
"""

from __future__ import annotations

from typing import Any


class AppError(RuntimeError):
    status_code: int = 500
    default_message: str = "Unexpected error"

    def __init__(self, message: str | None = None, **context: Any) -> None:
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)

    def log_line(self) -> str:
        if not self.context:
            return self.message
        parts = " ".join(f"{k}={v}" for k, v in sorted(self.context.items()))
        return f"{self.message} {parts}"


class ValidationError(AppError):
    status_code = 400
    default_message = "Malformed request"


class AuthenticationError(AppError):
    status_code = 401
    default_message = "Authentication required"


class AuthorizationError(AppError):
    status_code = 403
    default_message = "Not allowed"


class SubscriptionNotFound(AppError):
    # 404 rather than 403 so a guessed key does not reveal that it exists.
    status_code = 404
    default_message = "Subscription not found"


class ConfigurationError(AppError):
    default_message = "Server is not configured"


class PersistenceError(AppError):
    default_message = "Ledger operation failed"


class LedgerEntryNotFound(PersistenceError):
    default_message = "No ledger entry for transaction"


class InvalidCustomData(AppError):
    default_message = "Payment custom data does not identify a user"


class ScheduleNotFoundError(AppError):
    default_message = "Scheduled charge not found at gateway"


class GatewayError(AppError):
    default_message = "Payment gateway request failed"

    def __init__(
        self,
        message: str | None = None,
        *,
        gateway_status: int | None = None,
        body: str = "",
        **context: Any,
    ) -> None:
        self.gateway_status = gateway_status
        self.body = body
        super().__init__(message, gateway_status=gateway_status, body=body[:500], **context)


class GatewayLookupError(GatewayError):
    default_message = "Payment lookup failed"


class GatewayChargeError(GatewayError):
    default_message = "Billing key charge failed"


class GatewaySchedulingError(GatewayError):
    default_message = "Scheduling the next charge failed"


class GatewayCancellationError(GatewayError):
    default_message = "Gateway cancellation failed"
