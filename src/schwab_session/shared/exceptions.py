"""Consolidated exceptions for schwab-session.

All custom exceptions are defined here to provide a single source of truth
for error handling across the token providers and the streaming session.
"""


class SchwabSessionError(Exception):
    """Base exception for schwab-session errors"""

    pass


class ConfigurationError(SchwabSessionError):
    """Raised when configuration is invalid or missing"""

    pass


class AuthenticationError(SchwabSessionError):
    """Base exception for token acquisition errors"""

    pass


class TokenDecodeError(AuthenticationError):
    """Raised when a token exchange response cannot be decoded"""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RemoteTokenFetchError(AuthenticationError):
    """Raised when the session API does not vend an access token"""

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class StreamError(SchwabSessionError):
    """Base exception for streaming protocol errors"""

    pass


class StreamDecodeError(StreamError):
    """Raised when a streamer frame does not match any known message shape"""

    pass


class UnsupportedServiceError(StreamError):
    """Raised when a data frame carries content for an unhandled service"""

    def __init__(self, service: str) -> None:
        super().__init__(f"Unsupported service type {service}")
        self.service = service


class UnsupportedResponseCodeError(StreamError):
    """Raised when a response frame carries an unexpected service or code"""

    def __init__(self, service: str, code: int, message: str | None) -> None:
        super().__init__(f"{service}: {code} - {message}")
        self.service = service
        self.code = code
        self.message = message
