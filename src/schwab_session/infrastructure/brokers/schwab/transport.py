"""AuthenticatedTransport - bearer-token HTTP transport with retry on 401"""

import httpx
from loguru import logger

from ..protocols import TokenProvider
from .retry import RetryPolicy


class AuthenticatedTransport(httpx.AsyncBaseTransport):
    """httpx transport that authorizes every request with a bearer token

    Responsibilities:
    - Attach ``Authorization: Bearer <token>`` from the token provider
    - Force a token refresh and resend when the server answers 401
    - Hand back any other response untouched

    After the last attempt the final response is returned as-is, so callers
    detect a persistent 401 by inspecting the status code.
    """

    def __init__(
        self,
        token_provider: TokenProvider,
        inner: httpx.AsyncBaseTransport | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        """Initialize authenticated transport

        Args:
            token_provider: Source of access tokens
            inner: Transport that performs the actual send
            retry_policy: Attempt cap and backoff (default 3 x 2s)
        """
        self._token_provider = token_provider
        self._inner = inner or httpx.AsyncHTTPTransport()
        self._retry_policy = retry_policy or RetryPolicy()

    async def handle_async_request(
        self, request: httpx.Request
    ) -> httpx.Response:
        access_token = await self._token_provider.get_access_token()
        attempt = 0
        while True:
            request.headers["Authorization"] = f"Bearer {access_token}"

            response = await self._inner.handle_async_request(request)

            if response.status_code != 401:
                return response

            logger.warning(
                f"Unauthorized {request.method} {request.url} "
                f"(attempt {attempt + 1}/{self._retry_policy.max_attempts})"
            )
            if self._retry_policy.is_last(attempt):
                return response

            await response.aclose()
            access_token = await self._token_provider.get_access_token(
                force_refresh=True
            )
            await self._retry_policy.wait(attempt)
            attempt += 1

    async def aclose(self) -> None:
        await self._inner.aclose()
