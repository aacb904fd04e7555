"""DelegatedTokenProvider - access tokens vended by a remote session API"""

from datetime import datetime
from hashlib import sha256

import httpx
from loguru import logger
from pydantic import ValidationError

from schwab_session.core.config import DelegatedConfig
from schwab_session.shared.exceptions import (
    ConfigurationError,
    RemoteTokenFetchError,
)

from .log_hooks import build_http_client
from .models import CachedSessionToken, RemoteTokenRequest, RemoteTokenResponse


class DelegatedTokenProvider:
    """Fetches pre-vended access tokens instead of running OAuth locally

    The remote service performs the OAuth exchange on behalf of a deployment.
    The last good token is cached in a single slot for 29 minutes; a stale
    or empty slot triggers one fetch that replaces it wholesale. Concurrent
    callers racing past an expired slot may each fetch; the last write wins.
    """

    REFRESH_PATH = "live/auth0/refresh"

    def __init__(
        self,
        api_url: str,
        user_id: str,
        api_token: str,
        brokerage: str,
        deploy_id: str,
        project_id: int,
        account_number: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize delegated token provider

        Args:
            api_url: Session API root, e.g. "https://www.quantconnect.com/api/v2/"
            user_id: Session API user id
            api_token: Session API token, never sent in clear
            brokerage: Brokerage name, e.g. "CharlesSchwab"
            deploy_id: Deployment the token is vended for
            project_id: Project owning the deployment
            account_number: Brokerage account number
            transport: Transport for the session API (for testing)
        """
        self._user_id = user_id
        self._api_token = api_token
        self._body = RemoteTokenRequest(
            brokerage=brokerage,
            deploy_id=deploy_id,
            project_id=project_id,
            account_number=account_number,
        ).to_json()
        if not api_url.endswith("/"):
            api_url += "/"
        self._http_client = build_http_client(
            transport or httpx.AsyncHTTPTransport(), base_url=api_url
        )
        self._cached: CachedSessionToken | None = None

    @classmethod
    def from_config(
        cls,
        config: DelegatedConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "DelegatedTokenProvider":
        """Build a provider from loaded configuration

        Raises:
            ConfigurationError: If any session API field is missing
        """
        if not config.is_configured:
            raise ConfigurationError(
                "Session API requires SESSION_API_USER_ID, SESSION_API_TOKEN, "
                "SESSION_DEPLOY_ID, SESSION_PROJECT_ID and SCHWAB_ACCOUNT_NUMBER"
            )
        return cls(
            api_url=config.api_url,
            user_id=config.user_id,  # type: ignore[arg-type]
            api_token=config.api_token,  # type: ignore[arg-type]
            brokerage=config.brokerage,
            deploy_id=config.deploy_id,  # type: ignore[arg-type]
            project_id=config.project_id,  # type: ignore[arg-type]
            account_number=config.account_number,  # type: ignore[arg-type]
            transport=transport,
        )

    @property
    def cached_token(self) -> CachedSessionToken | None:
        return self._cached

    async def get_access_token(self, force_refresh: bool = False) -> str:
        """Return the cached token, fetching a new one when stale

        Args:
            force_refresh: Ignore the cached token even if still valid

        Raises:
            RemoteTokenFetchError: If the session API does not vend a token
        """
        cached = self._cached
        if cached is not None and not force_refresh and cached.is_valid():
            return cached.access_token

        token = await self._fetch()
        self._cached = token
        return token.access_token

    async def aclose(self) -> None:
        await self._http_client.aclose()

    def _auth(self) -> tuple[httpx.BasicAuth, dict[str, str]]:
        """Session API credentials: user id plus a timestamped token hash"""
        timestamp = str(int(datetime.now().timestamp()))
        hashed = sha256(f"{self._api_token}:{timestamp}".encode("utf-8"))
        return (
            httpx.BasicAuth(self._user_id, hashed.hexdigest()),
            {"Timestamp": timestamp},
        )

    async def _fetch(self) -> CachedSessionToken:
        auth, headers = self._auth()
        headers["Content-Type"] = "application/json"

        logger.info("Fetching access token from session API...")
        try:
            response = await self._http_client.post(
                self.REFRESH_PATH, content=self._body, headers=headers, auth=auth
            )
        except httpx.HTTPError as e:
            raise RemoteTokenFetchError(
                f"DelegatedTokenProvider.get_access_token: {e}"
            ) from e

        try:
            payload = RemoteTokenResponse.model_validate_json(response.content)
        except ValidationError as e:
            raise RemoteTokenFetchError(
                f"DelegatedTokenProvider.get_access_token: "
                f"{response.status_code} - {response.text}"
            ) from e

        if not response.is_success or not payload.success or not payload.access_token:
            raise RemoteTokenFetchError(
                f"DelegatedTokenProvider.get_access_token: {','.join(payload.errors)}",
                errors=payload.errors,
            )

        token = CachedSessionToken.issue(payload.access_token)
        logger.info(f"Session API token cached until {token.expires_at}")
        return token
