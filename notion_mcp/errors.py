"""
Exception types and error classification for the Notion MCP server.

This module provides:
- Typed exceptions raised at the HTTP transport boundary
- Local exceptions for configuration, credentials and watchers
- ErrorKind, the closed set the retry orchestrator dispatches on
"""

from enum import Enum
from typing import Any, NamedTuple, Optional

import requests


class ErrorKind(str, Enum):
    """Stable error categories reported to tool callers."""

    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    CLIENT_ERROR = "client_error"
    LOCAL_ERROR = "local_error"
    UNKNOWN = "unknown"


class ErrorClass(NamedTuple):
    """Result of classifying an exception."""

    kind: ErrorKind
    retry_after: Optional[float] = None


# =============================================================================
# API Exceptions
# =============================================================================


class NotionAPIError(Exception):
    """
    Base exception for Notion API errors.

    Attributes:
        status_code: HTTP status code from the API response
        code: Notion-specific error code (e.g., 'rate_limited', 'unauthorized')
        message: Human-readable error message
        request_id: Optional request ID for debugging
    """

    PERMANENT_STATUS_CODES = {400, 401, 403, 404}

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        request_id: Optional[str] = None
    ):
        self.status_code = status_code
        self.code = code
        self.message = message
        self.request_id = request_id
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the error message with all available details."""
        base = f"[{self.status_code}] {self.code}: {self.message}"
        if self.request_id:
            base += f" (Request ID: {self.request_id})"
        return base

    @property
    def kind(self) -> ErrorKind:
        """Classify this error by its status code."""
        if self.status_code == 429:
            return ErrorKind.RATE_LIMITED
        if self.status_code >= 500:
            return ErrorKind.SERVER_ERROR
        if self.status_code in self.PERMANENT_STATUS_CODES:
            return ErrorKind.CLIENT_ERROR
        return ErrorKind.UNKNOWN

    @classmethod
    def from_response(cls, response: Any) -> "NotionAPIError":
        """
        Create an exception from an HTTP response object.

        Args:
            response: The HTTP response object (requests.Response)

        Returns:
            Appropriate NotionAPIError subclass instance
        """
        status_code = response.status_code
        request_id = response.headers.get("x-request-id")

        try:
            error_data = response.json()
            code = error_data.get("code", "unknown_error")
            message = error_data.get("message", "Unknown error occurred")
        except (ValueError, KeyError, AttributeError):
            code = "unknown_error"
            message = response.text or "Unknown error occurred"

        if status_code == 401:
            return NotionAuthenticationError(code, message, request_id)
        elif status_code == 429:
            return NotionRateLimitError(
                code, message, request_id,
                retry_after=parse_retry_after(response.headers.get("Retry-After"))
            )
        elif status_code == 400:
            return NotionValidationError(code, message, request_id)
        elif status_code == 404:
            return NotionNotFoundError(code, message, request_id)
        elif status_code == 403:
            return NotionPermissionError(code, message, request_id)
        else:
            return cls(status_code, code, message, request_id)


class NotionAuthenticationError(NotionAPIError):
    """Raised when authentication fails (401 Unauthorized)."""

    def __init__(
        self,
        code: str,
        message: str,
        request_id: Optional[str] = None
    ):
        super().__init__(401, code, message, request_id)


class NotionRateLimitError(NotionAPIError):
    """
    Raised when rate limit is exceeded (429 Too Many Requests).

    Attributes:
        retry_after: Seconds to wait before retrying (from Retry-After header)
    """

    def __init__(
        self,
        code: str,
        message: str,
        request_id: Optional[str] = None,
        retry_after: Optional[float] = None
    ):
        super().__init__(429, code, message, request_id)
        self.retry_after = retry_after


class NotionValidationError(NotionAPIError):
    """Raised when request validation fails (400 Bad Request)."""

    def __init__(
        self,
        code: str,
        message: str,
        request_id: Optional[str] = None
    ):
        super().__init__(400, code, message, request_id)


class NotionNotFoundError(NotionAPIError):
    """Raised when a resource is not found (404 Not Found)."""

    def __init__(
        self,
        code: str,
        message: str,
        request_id: Optional[str] = None
    ):
        super().__init__(404, code, message, request_id)


class NotionPermissionError(NotionAPIError):
    """Raised when access is forbidden (403 Forbidden)."""

    def __init__(
        self,
        code: str,
        message: str,
        request_id: Optional[str] = None
    ):
        super().__init__(403, code, message, request_id)


class NotionConnectionError(Exception):
    """Raised when connection to Notion API fails."""
    pass


class ToolInputError(ValueError):
    """Raised when tool arguments are invalid or name something that does not exist."""
    pass


# =============================================================================
# Local Exceptions
# =============================================================================


class NotionConfigurationError(Exception):
    """Raised when server configuration is invalid or incomplete."""
    pass


class CredentialNotFoundError(NotionConfigurationError):
    """Raised when no Notion API key can be resolved."""
    pass


class WatcherNotFoundError(KeyError):
    """Raised when stopping a watcher that is not active."""

    def __init__(self, watch_path: str):
        self.watch_path = watch_path
        super().__init__(watch_path)

    def __str__(self) -> str:
        return f"No active watcher found for {self.watch_path}"


# =============================================================================
# Classification
# =============================================================================


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """
    Parse a Retry-After header value in seconds.

    Returns None when the header is absent or not numeric.
    """
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def classify_error(error: BaseException) -> ErrorClass:
    """
    Map an exception onto the closed ErrorKind set.

    Args:
        error: Exception raised by an outbound operation

    Returns:
        ErrorClass with the kind and, for rate limits, the retry-after delay
    """
    if isinstance(error, NotionRateLimitError):
        return ErrorClass(ErrorKind.RATE_LIMITED, error.retry_after)
    if isinstance(error, NotionAPIError):
        return ErrorClass(error.kind)
    if isinstance(error, ToolInputError):
        return ErrorClass(ErrorKind.CLIENT_ERROR)
    if isinstance(error, (NotionConnectionError, requests.RequestException)):
        return ErrorClass(ErrorKind.UNKNOWN)
    if isinstance(error, (NotionConfigurationError, WatcherNotFoundError, OSError)):
        return ErrorClass(ErrorKind.LOCAL_ERROR)
    return ErrorClass(ErrorKind.UNKNOWN)


def error_payload(error: BaseException) -> dict:
    """Build the tool error payload for an exception."""
    return {
        "error": str(error) or error.__class__.__name__,
        "kind": classify_error(error).kind.value,
    }
