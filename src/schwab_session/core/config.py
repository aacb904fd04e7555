"""Configuration management for schwab-session"""

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv
from loguru import logger

from schwab_session.shared.exceptions import ConfigurationError


@dataclass(frozen=True)
class RetryConfig:
    """Retry parameters shared by the authenticating transports"""

    # Total send attempts per request, including the first one
    max_attempts: int = 3

    # Fixed wait between attempts (seconds)
    interval_seconds: float = 2.0


@dataclass(frozen=True)
class DelegatedConfig:
    """Identifiers for fetching pre-vended tokens from the session API"""

    api_url: str = "https://www.quantconnect.com/api/v2/"
    user_id: str | None = None
    api_token: str | None = None
    brokerage: str = "CharlesSchwab"
    deploy_id: str | None = None
    project_id: int | None = None
    account_number: str | None = None

    @property
    def is_configured(self) -> bool:
        """True when every field needed for a remote fetch is present"""
        return all(
            value is not None
            for value in (
                self.user_id,
                self.api_token,
                self.deploy_id,
                self.project_id,
                self.account_number,
            )
        )


@dataclass
class Config:
    """Configuration for schwab-session loaded from environment variables"""

    # Fields without defaults (required parameters)
    client_id: str
    client_secret: str
    redirect_uri: str

    # Fields with defaults
    api_url: str = "https://api.schwabapi.com/v1"
    trader_url: str = "https://api.schwabapi.com/trader/v1"
    authorization_code: str = ""
    refresh_token: str = ""
    retry: RetryConfig = field(default_factory=RetryConfig)
    delegated: DelegatedConfig = field(default_factory=DelegatedConfig)

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables

        Values from a local .env file are loaded first without overriding
        variables already present in the environment.

        Returns:
            Config instance with values from environment

        Raises:
            ConfigurationError: If required variables are missing or invalid
        """
        load_dotenv(override=False)

        required = {
            "SCHWAB_APP_KEY": os.getenv("SCHWAB_APP_KEY"),
            "SCHWAB_APP_SECRET": os.getenv("SCHWAB_APP_SECRET"),
            "SCHWAB_REDIRECT_URL": os.getenv("SCHWAB_REDIRECT_URL"),
        }
        missing = [k for k, v in required.items() if not v]
        if missing:
            raise ConfigurationError(f"Missing Schwab configuration: {missing}")

        try:
            retry = RetryConfig(
                max_attempts=int(os.getenv("SCHWAB_MAX_RETRIES", "3")),
                interval_seconds=float(
                    os.getenv("SCHWAB_RETRY_INTERVAL", "2.0")
                ),
            )
            project_id = os.getenv("SESSION_PROJECT_ID")
            delegated = DelegatedConfig(
                api_url=os.getenv(
                    "SESSION_API_URL", DelegatedConfig.api_url
                ),
                user_id=os.getenv("SESSION_API_USER_ID"),
                api_token=os.getenv("SESSION_API_TOKEN"),
                brokerage=os.getenv(
                    "SESSION_BROKERAGE", DelegatedConfig.brokerage
                ),
                deploy_id=os.getenv("SESSION_DEPLOY_ID"),
                project_id=int(project_id) if project_id else None,
                account_number=os.getenv("SCHWAB_ACCOUNT_NUMBER"),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric setting: {e}") from e

        if retry.max_attempts < 1:
            raise ConfigurationError("SCHWAB_MAX_RETRIES must be at least 1")

        config = cls(
            client_id=required["SCHWAB_APP_KEY"],  # type: ignore[arg-type]
            client_secret=required["SCHWAB_APP_SECRET"],  # type: ignore[arg-type]
            redirect_uri=required["SCHWAB_REDIRECT_URL"],  # type: ignore[arg-type]
            api_url=os.getenv("SCHWAB_API_URL", cls.api_url).rstrip("/"),
            trader_url=os.getenv("SCHWAB_TRADER_URL", cls.trader_url).rstrip(
                "/"
            ),
            authorization_code=os.getenv("SCHWAB_AUTHORIZATION_CODE", ""),
            refresh_token=os.getenv("SCHWAB_REFRESH_TOKEN", ""),
            retry=retry,
            delegated=delegated,
        )

        logger.info("Configuration loaded:")
        logger.info(f"  API URL: {config.api_url}")
        logger.info(f"  Trader URL: {config.trader_url}")
        logger.info(f"  Redirect URL: {config.redirect_uri}")
        logger.info(
            f"  Refresh Token: {'Configured' if config.refresh_token else 'Not configured'}"
        )
        logger.info(
            f"  Retry: {retry.max_attempts} attempts, {retry.interval_seconds}s interval"
        )
        logger.info(
            f"  Session API: {'Configured' if delegated.is_configured else 'Not configured'}"
        )

        return config
