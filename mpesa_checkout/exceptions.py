from dataclasses import dataclass
from enum import Enum
from typing import Any


class CheckoutError(Exception):
    """Base exception for checkout errors."""

    status_code = 500
    message = "Internal server error"

    def to_body(self) -> dict[str, Any]:
        return {"success": False, "message": self.message}


class ValidationError(CheckoutError):
    """Raised when caller input is rejected before any downstream call."""

    status_code = 400

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class AuthErrorKind(str, Enum):
    EXPIRED = "expired"
    INVALID = "invalid"


@dataclass(frozen=True)
class AuthError:
    """Verification outcome for a token that cannot be trusted.

    Returned by the verifier instead of raised. EXPIRED is the only kind a
    client should answer with a refresh-and-retry.
    """

    kind: AuthErrorKind
    detail: str = ""

    @property
    def expired(self) -> bool:
        return self.kind is AuthErrorKind.EXPIRED


class AuthenticationFailed(CheckoutError):
    """Raised by request dependencies when a caller cannot be authenticated."""

    def __init__(self, message: str, status_code: int = 401, expired: bool = False) -> None:
        self.message = message
        self.status_code = status_code
        self.expired = expired
        super().__init__(message)

    @classmethod
    def from_auth_error(cls, error: AuthError, subject: str = "Access token") -> "AuthenticationFailed":
        if error.expired:
            return cls(f"{subject} expired", status_code=401, expired=True)
        return cls(f"Invalid {subject.lower()}", status_code=403)

    def to_body(self) -> dict[str, Any]:
        return {"success": False, "message": self.message, "expired": self.expired}


class GatewayError(CheckoutError):
    """Raised when the payment gateway rejects or cannot complete a charge."""

    message = "Payment failed"

    def __init__(self, status_code: int, error: Any) -> None:
        self.status_code = status_code
        self.error = error
        super().__init__(f"Gateway returned {status_code}")

    def to_body(self) -> dict[str, Any]:
        return {"success": False, "message": self.message, "error": self.error}


class PersistenceError(CheckoutError):
    """Raised when an order cannot be recorded after a successful charge."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NotificationError(CheckoutError):
    """Raised when the notification collaborator cannot be reached."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NotFoundError(CheckoutError):
    status_code = 404

    def __init__(self, message: str = "Order not found") -> None:
        self.message = message
        super().__init__(message)
