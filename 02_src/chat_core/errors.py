"""Error taxonomy for the chat core.

ChatError (base)
├── ValidationError - missing or malformed input, reported to the caller
├── NotFoundError   - referenced message or conversation is absent
├── TransientError  - store or network hiccup, eligible for a caller retry
└── AuthError       - missing, invalid or expired bearer credential
"""

from typing import Any


class ChatError(Exception):
    """Base exception for all chat core errors."""

    default_error_code = "CHAT_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to an API error body."""
        body: dict[str, Any] = {"error": self.message, "code": self.error_code}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(ChatError):
    """A required field is missing or has the wrong shape."""

    default_error_code = "VALIDATION_ERROR"


class NotFoundError(ChatError):
    """The referenced message or conversation does not exist."""

    default_error_code = "NOT_FOUND"


class TransientError(ChatError):
    """Store call timed out or failed in a way that may succeed on retry."""

    default_error_code = "TRANSIENT_ERROR"


class AuthError(ChatError):
    """Bearer credential missing, invalid or expired."""

    default_error_code = "AUTH_ERROR"
