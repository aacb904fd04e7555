import asyncio
import sys

import httpx
from loguru import logger
from rich.console import Console

from schwab_session.core.config import Config
from schwab_session.infrastructure.brokers.schwab import (
    AccountContent,
    AuthenticatedTransport,
    DelegatedTokenProvider,
    OAuthTokenProvider,
    RetryPolicy,
    StreamingSessionClient,
    build_http_client,
    parse_authorization_code,
)
from schwab_session.shared.exceptions import SchwabSessionError


class CommandDispatcher:
    """Dispatches CLI commands to appropriate handlers"""

    def __init__(self, config: Config, console: Console | None = None) -> None:
        self.config = config
        self.console = console or Console()
        self._handlers = {
            "authorize-url": self._handle_authorize_url,
            "exchange": self._handle_exchange,
            "stream": self._handle_stream,
        }

    async def dispatch(self, argv: list[str]) -> int:
        """Parse and execute command

        Args:
            argv: Command line arguments (sys.argv)

        Returns:
            Exit code (0 for success, non-zero for error)
        """
        if len(argv) < 2:
            self._print_usage()
            return 1

        method = argv[1]
        handler = self._handlers.get(method)

        if handler is None:
            logger.error(f"Unknown method: {method}")
            self._print_usage()
            return 1

        return await handler(argv)

    def _print_usage(self) -> None:
        """Print available commands"""
        logger.error(
            "No method specified. Available: authorize-url, exchange <redirect-url>, stream"
        )

    def _oauth_provider(self) -> OAuthTokenProvider:
        return OAuthTokenProvider.from_config(self.config)

    def _token_provider(self) -> OAuthTokenProvider | DelegatedTokenProvider:
        """Session API tokens when configured, local OAuth otherwise"""
        if self.config.delegated.is_configured:
            return DelegatedTokenProvider.from_config(self.config.delegated)
        return self._oauth_provider()

    async def _handle_authorize_url(self, argv: list[str]) -> int:
        """Handle authorize-url command"""
        url = self._oauth_provider().get_authorization_url()
        self.console.print(f"[bold cyan]Authorization URL:[/bold cyan] {url}")
        return 0

    async def _handle_exchange(self, argv: list[str]) -> int:
        """Handle exchange command"""
        if len(argv) < 3:
            logger.error("exchange requires the redirect URL")
            return 1

        provider = self._oauth_provider()
        try:
            code = parse_authorization_code(argv[2])
            token = await provider.exchange_authorization_code(code)
        finally:
            await provider.aclose()

        self.console.print("[green]Authorization code exchanged[/green]")
        self.console.print(f"  Expires at: {token.expires_at}")
        self.console.print(f"  SCHWAB_REFRESH_TOKEN={provider.refresh_token}")
        return 0

    async def _handle_stream(self, argv: list[str]) -> int:
        """Handle stream command"""
        provider = self._token_provider()
        transport = AuthenticatedTransport(
            provider,
            inner=httpx.AsyncHTTPTransport(),
            retry_policy=RetryPolicy.from_config(self.config.retry),
        )
        trader_client = build_http_client(
            transport, base_url=self.config.trader_url
        )

        def on_account_update(content: AccountContent) -> None:
            self.console.print(
                f"[yellow]{content.message_type}[/yellow] "
                f"account={content.account} seq={content.seq}"
            )

        def on_error(error: Exception) -> None:
            self.console.print(f"[red]{type(error).__name__}:[/red] {error}")

        try:
            session = await StreamingSessionClient.from_user_preference(
                provider, trader_client, on_account_update, on_error
            )
            try:
                await session.connect()
                await session.run()
            finally:
                await session.close()
        finally:
            await trader_client.aclose()
            await provider.aclose()
        return 0


def main() -> int:
    """CLI entry point

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    logger.add(
        "logs/schwab_session_{time}.log",
        rotation="1 day",
        retention="30 days",
        compression="gz",
        level="INFO",
    )

    try:
        config = Config.from_env()
    except SchwabSessionError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    dispatcher = CommandDispatcher(config)

    try:
        return asyncio.run(dispatcher.dispatch(sys.argv))
    except KeyboardInterrupt:
        logger.warning("Stopped manually.")
        return 1
    except SchwabSessionError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Unhandled exception: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
