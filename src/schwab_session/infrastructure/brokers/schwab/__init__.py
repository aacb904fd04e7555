"""Schwab infrastructure module

AuthenticatedTransport - bearer-token httpx transport with retry on 401
OAuthTokenProvider - OAuth2 code/refresh exchange, self-authenticating transport
DelegatedTokenProvider - tokens vended by a remote session API
StreamingSessionClient - streamer WebSocket login, subscribe and dispatch
"""

from .delegated import DelegatedTokenProvider
from .log_hooks import build_http_client, install_logging_bridge
from .models import AccessToken, CachedSessionToken
from .oauth import OAuthTokenProvider, parse_authorization_code
from .preferences import fetch_streamer_info
from .retry import RetryPolicy
from .stream_models import (
    AccountContent,
    DataMessage,
    NotifyMessage,
    ResponseMessage,
    StreamerInfo,
    parse_stream_message,
)
from .streaming import SessionState, StreamingSessionClient
from .transport import AuthenticatedTransport

__all__ = [
    "AccessToken",
    "AccountContent",
    "AuthenticatedTransport",
    "CachedSessionToken",
    "DataMessage",
    "DelegatedTokenProvider",
    "NotifyMessage",
    "OAuthTokenProvider",
    "ResponseMessage",
    "RetryPolicy",
    "SessionState",
    "StreamerInfo",
    "StreamingSessionClient",
    "build_http_client",
    "fetch_streamer_info",
    "install_logging_bridge",
    "parse_authorization_code",
    "parse_stream_message",
]
