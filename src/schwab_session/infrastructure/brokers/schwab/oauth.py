"""OAuth2 authorization-code and refresh-token flow for the Schwab API

OAuthTokenProvider owns the token exchange against ``{base_url}/oauth/token``
and is itself an httpx transport: requests routed through it carry the held
access token and are re-authenticated when the server answers 401.

Based on: https://developer.schwab.com/products/trader-api--individual/details/documentation/Retail%20Trader%20API%20Production
"""

import base64
from urllib.parse import parse_qs, urlencode, urlsplit

import httpx
from loguru import logger
from pydantic import ValidationError

from schwab_session.core.config import Config
from schwab_session.shared.exceptions import (
    AuthenticationError,
    TokenDecodeError,
)

from .models import AccessToken
from .retry import RetryPolicy


def parse_authorization_code(redirect_url: str) -> str:
    """Extract the one-time authorization code from the browser redirect

    Args:
        redirect_url: Full URL the authorization server redirected to,
            e.g. ``https://127.0.0.1?code=C0.b2F1dGg%40&session=...``

    Returns:
        Decoded authorization code

    Raises:
        AuthenticationError: If the URL carries no ``code`` parameter
    """
    codes = parse_qs(urlsplit(redirect_url).query).get("code")
    if not codes or not codes[0]:
        raise AuthenticationError(
            f"No authorization code found in redirect URL: {redirect_url}"
        )
    return codes[0]


class OAuthTokenProvider(httpx.AsyncBaseTransport):
    """Token provider and self-authenticating transport for Schwab OAuth2

    Responsibilities:
    - Authorization-code exchange (first login) and refresh-token exchange
    - Basic client-credential authorization on the token endpoint only
    - Retry of ordinary requests after re-authenticating on 401

    Per request the flow is NoToken -> code exchange -> Authenticated, and
    Authenticated -> refresh exchange -> Authenticated on every 401.
    """

    TOKEN_PATH = "/oauth/token"
    AUTHORIZE_PATH = "/oauth/authorize"

    def __init__(
        self,
        base_url: str,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        authorization_code: str = "",
        refresh_token: str = "",
        inner: httpx.AsyncBaseTransport | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        """Initialize OAuth token provider

        Args:
            base_url: OAuth server root, e.g. "https://api.schwabapi.com/v1"
            client_id: Application key
            client_secret: Application secret
            redirect_uri: Callback URL registered for the application
            authorization_code: Code obtained from the authorization redirect
            refresh_token: Refresh token from an earlier exchange, if any
            inner: Transport that performs the actual send
            retry_policy: Attempt cap and backoff (default 3 x 2s)
        """
        self._base_url = base_url.rstrip("/")
        self._client_id = client_id
        self._redirect_uri = redirect_uri
        self._authorization_code = authorization_code
        self._refresh_token: str | None = refresh_token or None
        self._encoded_client_credentials = base64.b64encode(
            f"{client_id}:{client_secret}".encode("utf-8")
        ).decode("ascii")
        self._inner = inner or httpx.AsyncHTTPTransport()
        self._retry_policy = retry_policy or RetryPolicy()
        self._access_token: AccessToken | None = None

    @classmethod
    def from_config(
        cls,
        config: Config,
        inner: httpx.AsyncBaseTransport | None = None,
    ) -> "OAuthTokenProvider":
        """Build a provider from loaded configuration"""
        return cls(
            base_url=config.api_url,
            client_id=config.client_id,
            client_secret=config.client_secret,
            redirect_uri=config.redirect_uri,
            authorization_code=config.authorization_code,
            refresh_token=config.refresh_token,
            inner=inner,
            retry_policy=RetryPolicy.from_config(config.retry),
        )

    @property
    def access_token(self) -> AccessToken | None:
        """Currently held token, if any"""
        return self._access_token

    @property
    def refresh_token(self) -> str | None:
        """Refresh token used by the next refresh exchange"""
        return self._refresh_token

    @property
    def token_url(self) -> str:
        return f"{self._base_url}{self.TOKEN_PATH}"

    def get_authorization_url(self) -> str:
        """URL the account holder opens to grant access and obtain a code"""
        query = urlencode(
            {"client_id": self._client_id, "redirect_uri": self._redirect_uri}
        )
        return f"{self._base_url}{self.AUTHORIZE_PATH}?{query}"

    async def get_access_token(self, force_refresh: bool = False) -> str:
        """Return the held access token, exchanging for a new one if needed

        Args:
            force_refresh: Skip the held token even if it has not expired

        Raises:
            AuthenticationError: If no grant is available
            TokenDecodeError: If the token endpoint reply cannot be decoded
        """
        token = self._access_token
        if token is None or force_refresh or token.is_expired():
            token = await self._reauthenticate()
        return token.access_token

    async def handle_async_request(
        self, request: httpx.Request
    ) -> httpx.Response:
        attempt = 0
        while True:
            if self._access_token is not None:
                request.headers["Authorization"] = (
                    self._access_token.authorization
                )

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
            await self._reauthenticate()
            await self._retry_policy.wait(attempt)
            attempt += 1

    async def exchange_authorization_code(
        self, authorization_code: str | None = None
    ) -> AccessToken:
        """Trade the one-time authorization code for access + refresh tokens

        Args:
            authorization_code: Code to use instead of the configured one

        Raises:
            AuthenticationError: If no authorization code is available
            TokenDecodeError: If the reply cannot be decoded
        """
        code = authorization_code or self._authorization_code
        if not code:
            raise AuthenticationError(
                "No authorization code available; open the authorization URL first"
            )

        logger.info("Requesting access token with authorization code...")
        token = await self._send_sign_in(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self._redirect_uri,
            }
        )
        self._store(token)
        return token

    async def refresh_access_token(self) -> AccessToken:
        """Exchange the held refresh token for a new access token

        Raises:
            AuthenticationError: If no refresh token is held
            TokenDecodeError: If the reply cannot be decoded
        """
        if not self._refresh_token:
            raise AuthenticationError("No refresh token available")

        logger.info("Refreshing access token...")
        token = await self._send_sign_in(
            {
                "grant_type": "refresh_token",
                "refresh_token": self._refresh_token,
            }
        )
        self._store(token)
        return token

    async def aclose(self) -> None:
        await self._inner.aclose()

    async def _reauthenticate(self) -> AccessToken:
        if self._access_token is None and not self._refresh_token:
            return await self.exchange_authorization_code()
        return await self.refresh_access_token()

    def _store(self, token: AccessToken) -> None:
        # Refresh replies may omit the refresh token; keep the old one then.
        self._access_token = token
        if token.refresh_token:
            self._refresh_token = token.refresh_token
        logger.info(f"Access token acquired, expires at {token.expires_at}")

    async def _send_sign_in(self, payload: dict[str, str]) -> AccessToken:
        request = httpx.Request(
            "POST",
            self.token_url,
            data=payload,
            headers={
                "Authorization": f"Basic {self._encoded_client_credentials}",
                "Content-Type": "application/x-www-form-urlencoded",
            },
        )
        response = await self._inner.handle_async_request(request)
        try:
            await response.aread()
        finally:
            await response.aclose()

        try:
            return AccessToken.model_validate_json(response.content)
        except ValidationError as e:
            raise TokenDecodeError(
                f"Token exchange ({payload['grant_type']}) failed: "
                f"{response.status_code} - {response.text}",
                status_code=response.status_code,
            ) from e
