"""Core exceptions for the proxy."""

from typing import Optional


class ProxyError(Exception):
    """Base exception for proxy errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationError(ProxyError):
    """Raised when there's an issue with the configuration.

    An empty session pool is a configuration error: it ends the current
    request and is never retried.
    """
    pass


class SessionRetryableError(ProxyError):
    """Signals that another session attempt should be made."""
    pass


class SessionIndexError(SessionRetryableError):
    """Raised when a selected index no longer exists in the pool."""

    def __init__(self, index: int, pool_size: int) -> None:
        super().__init__(f"invalid session index: {index} (pool size {pool_size})")
        self.index = index
        self.pool_size = pool_size


class UploadError(SessionRetryableError):
    """Raised when an attachment or oversized prompt fails to upload."""
    pass


class UpstreamStatusError(SessionRetryableError):
    """Raised when the upstream answers with a non-success status."""

    def __init__(self, status_code: int, message: Optional[str] = None) -> None:
        if message is None:
            if status_code == 429:
                message = "rate limit exceeded"
            else:
                message = f"unexpected status code: {status_code}"
        super().__init__(message)
        self.status_code = status_code


class RetriesExhaustedError(ProxyError):
    """Raised when every attempt for a request failed."""

    def __init__(self, attempts: int, last_error: Optional[str] = None) -> None:
        super().__init__("Failed to process request after multiple attempts")
        self.attempts = attempts
        self.last_error = last_error


class InvalidRequestError(ProxyError):
    """Raised when an incoming request is invalid."""

    def __init__(self, message: str, code: str = "invalid_request") -> None:
        super().__init__(message)
        self.code = code
