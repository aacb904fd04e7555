"""Shared utilities and exceptions"""

from .exceptions import (
    AuthenticationError,
    ConfigurationError,
    RemoteTokenFetchError,
    SchwabSessionError,
    StreamDecodeError,
    StreamError,
    TokenDecodeError,
    UnsupportedResponseCodeError,
    UnsupportedServiceError,
)

__all__ = [
    "AuthenticationError",
    "ConfigurationError",
    "RemoteTokenFetchError",
    "SchwabSessionError",
    "StreamDecodeError",
    "StreamError",
    "TokenDecodeError",
    "UnsupportedResponseCodeError",
    "UnsupportedServiceError",
]
