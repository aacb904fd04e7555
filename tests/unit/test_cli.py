"""Tests for CLI and CommandDispatcher"""

import io
from unittest.mock import AsyncMock

import httpx
import pytest
from rich.console import Console

from schwab_session import cli
from schwab_session.cli import CommandDispatcher
from schwab_session.core.config import Config, DelegatedConfig
from schwab_session.infrastructure.brokers.schwab import (
    DelegatedTokenProvider,
    OAuthTokenProvider,
    RetryPolicy,
)
from schwab_session.shared.exceptions import ConfigurationError

REDIRECT = "https://127.0.0.1/?code=C0.b2F1dGg%40&session=abc-123"


@pytest.fixture
def config() -> Config:
    return Config(
        client_id="abc",
        client_secret="xyz",
        redirect_uri="https://127.0.0.1",
    )


@pytest.fixture
def output() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def dispatcher(config, output) -> CommandDispatcher:
    return CommandDispatcher(config, console=Console(file=output, width=200))


class TestCommandDispatcher:
    """Tests for CommandDispatcher."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_dispatch_unknown_command_returns_error(self, dispatcher):
        """dispatch should return 1 for unknown commands."""
        result = await dispatcher.dispatch(["schwab-session", "unknown_command"])
        assert result == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_dispatch_no_args_returns_error(self, dispatcher):
        """dispatch should return 1 when no command is provided."""
        result = await dispatcher.dispatch(["schwab-session"])
        assert result == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_authorize_url_prints_url(self, dispatcher, output):
        result = await dispatcher.dispatch(["schwab-session", "authorize-url"])

        assert result == 0
        assert (
            "https://api.schwabapi.com/v1/oauth/authorize"
            "?client_id=abc&redirect_uri=https%3A%2F%2F127.0.0.1"
        ) in output.getvalue()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_exchange_requires_redirect_url(self, dispatcher):
        result = await dispatcher.dispatch(["schwab-session", "exchange"])
        assert result == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_exchange_uses_code_from_redirect(
        self, dispatcher, config, output, mocker
    ):
        """exchange should post the decoded code and print the refresh token"""
        forms: list[bytes] = []

        def handler(request: httpx.Request) -> httpx.Response:
            forms.append(request.content)
            return httpx.Response(
                200,
                json={
                    "access_token": "access",
                    "refresh_token": "refresh-1",
                    "expires_in": 1800,
                },
            )

        provider = OAuthTokenProvider(
            base_url=config.api_url,
            client_id=config.client_id,
            client_secret=config.client_secret,
            redirect_uri=config.redirect_uri,
            inner=httpx.MockTransport(handler),
            retry_policy=RetryPolicy(sleep=AsyncMock()),
        )
        mocker.patch.object(dispatcher, "_oauth_provider", return_value=provider)

        result = await dispatcher.dispatch(["schwab-session", "exchange", REDIRECT])

        assert result == 0
        assert b"code=C0.b2F1dGg%40" in forms[0]
        assert "SCHWAB_REFRESH_TOKEN=refresh-1" in output.getvalue()

    @pytest.mark.unit
    def test_token_provider_defaults_to_oauth(self, dispatcher):
        assert isinstance(dispatcher._token_provider(), OAuthTokenProvider)

    @pytest.mark.unit
    def test_token_provider_uses_session_api_when_configured(self, config):
        config.delegated = DelegatedConfig(
            user_id="1",
            api_token="t",
            deploy_id="L-1",
            project_id=2,
            account_number="3",
        )
        dispatcher = CommandDispatcher(config, console=Console(file=io.StringIO()))

        assert isinstance(dispatcher._token_provider(), DelegatedTokenProvider)


class TestMain:
    @pytest.fixture(autouse=True)
    def quiet_logger(self, mocker):
        return mocker.patch.object(cli, "logger")

    @pytest.mark.unit
    def test_main_returns_error_on_bad_config(self, mocker):
        mocker.patch.object(
            cli.Config, "from_env", side_effect=ConfigurationError("missing")
        )

        assert cli.main() == 1

    @pytest.mark.unit
    def test_main_runs_dispatcher(self, mocker, config):
        mocker.patch.object(cli.Config, "from_env", return_value=config)
        dispatch = mocker.patch.object(
            CommandDispatcher, "dispatch", new=AsyncMock(return_value=0)
        )
        mocker.patch.object(cli.sys, "argv", ["schwab-session", "authorize-url"])

        assert cli.main() == 0
        dispatch.assert_awaited_once_with(["schwab-session", "authorize-url"])

    @pytest.mark.unit
    def test_main_reports_unhandled_errors(self, mocker, config, quiet_logger):
        mocker.patch.object(cli.Config, "from_env", return_value=config)
        mocker.patch.object(
            CommandDispatcher,
            "dispatch",
            new=AsyncMock(side_effect=RuntimeError("boom")),
        )

        assert cli.main() == 1
        quiet_logger.exception.assert_called_once()
