"""Broker protocols defining interfaces for broker integrations.

Token sources are composed into transports and streaming sessions by
injection; anything satisfying TokenProvider can authorize either.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class TokenProvider(Protocol):
    """Protocol for a source of bearer access tokens."""

    async def get_access_token(self, force_refresh: bool = False) -> str:
        """Return a usable access token, refreshing it when forced or stale."""
        ...
