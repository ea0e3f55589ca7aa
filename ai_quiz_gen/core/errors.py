"""
Typed error taxonomy for quiz generation.

Every failure in the pipeline converges on QuizGenerationError, which carries
a stable ErrorCode independent of the human-readable message.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Stable error codes exposed to callers."""
    CONFIG_ERROR = "CONFIG_ERROR"            # Missing provider credential
    VALIDATION_ERROR = "VALIDATION_ERROR"    # Malformed request or generated content
    NETWORK_ERROR = "NETWORK_ERROR"          # Connection failed before a response
    TIMEOUT_ERROR = "TIMEOUT_ERROR"          # Configured deadline exceeded
    RATE_LIMIT_ERROR = "RATE_LIMIT_ERROR"    # Provider returned 429
    API_ERROR = "API_ERROR"                  # Any other non-2xx from provider
    INVALID_RESPONSE = "INVALID_RESPONSE"    # Envelope missing choices/content
    PARSE_ERROR = "PARSE_ERROR"              # Content could not be decoded as JSON
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"        # User reached the generation limit


USER_MESSAGES: Dict[ErrorCode, str] = {
    ErrorCode.CONFIG_ERROR: "Service configuration error. Please contact support.",
    ErrorCode.VALIDATION_ERROR: "The request or generated quiz was invalid. Please rephrase your prompt and try again.",
    ErrorCode.NETWORK_ERROR: "Unable to connect to the AI service. Please check your connection.",
    ErrorCode.TIMEOUT_ERROR: "Request took too long. Please try again.",
    ErrorCode.RATE_LIMIT_ERROR: "Too many requests, please wait and try again.",
    ErrorCode.API_ERROR: "AI service error. Please try again later.",
    ErrorCode.INVALID_RESPONSE: "Received an invalid response from the AI service. Please try again.",
    ErrorCode.PARSE_ERROR: "Received an invalid response from the AI service. Please try again.",
    ErrorCode.QUOTA_EXCEEDED: "You have reached your AI quiz generation limit.",
}


class QuizGenerationError(Exception):
    """Base class for all typed pipeline errors."""

    code: ErrorCode = ErrorCode.API_ERROR

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        tokens_used: int = 0
    ):
        super().__init__(message)
        self.message = message
        self.details = details
        # Tokens the provider billed before the failure; logged against quota
        self.tokens_used = tokens_used

    @property
    def retryable(self) -> bool:
        """Whether the caller may retry the same request."""
        return False

    @property
    def user_message(self) -> str:
        """Stable, non-technical message for end users."""
        return USER_MESSAGES[self.code]

    def is_error_code(self, code: ErrorCode) -> bool:
        return self.code is code

    def to_dict(self) -> Dict[str, Any]:
        """External-facing representation; never includes raw provider payloads."""
        payload: Dict[str, Any] = {
            "code": self.code.value,
            "message": self.user_message,
        }
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ConfigError(QuizGenerationError):
    """Raised at startup when the provider credential is missing."""
    code = ErrorCode.CONFIG_ERROR


class ValidationError(QuizGenerationError):
    """Raised for a malformed request or malformed generated content."""
    code = ErrorCode.VALIDATION_ERROR


class NetworkError(QuizGenerationError):
    """Raised when the transport fails before a response is received."""
    code = ErrorCode.NETWORK_ERROR

    @property
    def retryable(self) -> bool:
        return True


class RequestTimeoutError(QuizGenerationError):
    """Raised when the provider call exceeds the configured timeout."""
    code = ErrorCode.TIMEOUT_ERROR

    def __init__(self, timeout: float):
        super().__init__(
            f"Request timed out after {timeout:g}s",
            details={"timeout": timeout},
        )
        self.timeout = timeout

    @property
    def retryable(self) -> bool:
        return True


class RateLimitError(QuizGenerationError):
    """Raised when the provider answers with HTTP 429."""
    code = ErrorCode.RATE_LIMIT_ERROR

    @property
    def retryable(self) -> bool:
        return True


class ApiError(QuizGenerationError):
    """Raised for non-2xx provider responses other than 429.

    The kind tag is one of "auth" (401/403), "server" (>=500) or "client".
    """
    code = ErrorCode.API_ERROR

    AUTH = "auth"
    SERVER = "server"
    CLIENT = "client"

    def __init__(
        self,
        message: str,
        kind: str = CLIENT,
        status: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        merged = {"status": status, "kind": kind}
        if details:
            merged.update(details)
        super().__init__(message, details=merged)
        self.kind = kind
        self.status = status

    @property
    def retryable(self) -> bool:
        return self.kind == self.SERVER


class InvalidResponseError(QuizGenerationError):
    """Raised when the provider envelope lacks choices or message content."""
    code = ErrorCode.INVALID_RESPONSE

    @property
    def retryable(self) -> bool:
        return True


class ParseError(QuizGenerationError):
    """Raised when generated content cannot be decoded as JSON."""
    code = ErrorCode.PARSE_ERROR

    @property
    def retryable(self) -> bool:
        return True


class QuotaExceededError(QuizGenerationError):
    """Raised when a user has no generation attempts left."""
    code = ErrorCode.QUOTA_EXCEEDED

    def __init__(self, quota):
        super().__init__(
            f"AI generation limit reached ({quota.used}/{quota.limit})",
            details={"quota": quota.to_dict()},
        )
        self.quota = quota
