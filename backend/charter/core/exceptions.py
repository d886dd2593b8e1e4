"""
Typed error hierarchy for the charter lifecycle.

Every error carries a machine-readable ``code``, the HTTP status it maps to,
and the message that is safe to show a caller. Internal detail stays in the
exception message and in the logs.

    CharterError
    +-- ValidationError
    +-- AuthenticationError
    +-- AuthorizationError
    +-- NotFoundError
    +-- InvalidStateError
    +-- AmountMismatchError
    +-- PaymentGatewayError
    +-- WebhookVerificationError
    +-- PersistenceError
        +-- DuplicateKeyError
"""

from typing import Optional


class CharterError(Exception):
    code: str = "CHARTER_ERROR"
    status_code: int = 500
    public_message: str = "Unexpected error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.public_message)

    def to_dict(self) -> dict:
        return {"code": self.code, "detail": self.public_message}


class ValidationError(CharterError):
    """Caller input broke one or more rules. ``errors`` lists all of them."""

    code = "VALIDATION_FAILED"
    status_code = 422
    public_message = "Validation failed"

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or self.public_message)

    def to_dict(self) -> dict:
        return {"code": self.code, "detail": self.public_message, "errors": self.errors}


class AuthenticationError(CharterError):
    code = "AUTHENTICATION_REQUIRED"
    status_code = 401
    public_message = "Authentication required"


class AuthorizationError(CharterError):
    # Rendered exactly like NotFoundError so callers cannot enumerate
    # records owned by someone else.
    code = "NOT_FOUND"
    status_code = 404
    public_message = "Resource not found"


class NotFoundError(CharterError):
    code = "NOT_FOUND"
    status_code = 404
    public_message = "Resource not found"


class InvalidStateError(CharterError):
    """The entity exists but its status does not allow the transition."""

    code = "INVALID_STATE"
    status_code = 409

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)

    @property
    def public_message(self) -> str:  # type: ignore[override]
        return self.reason


class AmountMismatchError(CharterError):
    code = "AMOUNT_MISMATCH"
    status_code = 409
    public_message = "Payment flagged for manual review"

    def __init__(self, transaction_id: str, expected, received):
        self.transaction_id = transaction_id
        self.expected = expected
        self.received = received
        super().__init__(
            f"Transaction {transaction_id} settled {received}, booking expects {expected}"
        )


class PaymentGatewayError(CharterError):
    code = "PAYMENT_GATEWAY_UNAVAILABLE"
    status_code = 502
    public_message = "Payment service unavailable, please retry"


class WebhookVerificationError(CharterError):
    code = "WEBHOOK_INVALID"
    status_code = 400
    public_message = "Invalid webhook payload"


class PersistenceError(CharterError):
    """Transient storage failure. Only reads and the acceptance group retry it."""

    code = "PERSISTENCE_UNAVAILABLE"
    status_code = 503
    public_message = "Service temporarily unavailable, please retry"


class DuplicateKeyError(PersistenceError):
    code = "DUPLICATE_KEY"
    status_code = 409
    public_message = "Conflicting request, please retry"
