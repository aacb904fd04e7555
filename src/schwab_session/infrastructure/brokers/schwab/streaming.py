"""StreamingSessionClient - streamer WebSocket login, subscribe and dispatch"""

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

import httpx
import websockets
from loguru import logger
from websockets.exceptions import (
    ConnectionClosed,
    ConnectionClosedError,
    WebSocketException,
)

from schwab_session.shared.exceptions import (
    StreamError,
    UnsupportedResponseCodeError,
    UnsupportedServiceError,
)

from ..protocols import TokenProvider
from .log_hooks import install_logging_bridge
from .preferences import fetch_streamer_info
from .stream_models import (
    AccountContent,
    Command,
    DataMessage,
    NotifyMessage,
    ResponseMessage,
    Service,
    StreamerInfo,
    StreamMessage,
    StreamRequest,
    account_subscribe_request,
    admin_login_request,
    admin_logout_request,
    parse_stream_message,
    resolve_service,
)

AccountUpdateHandler = Callable[[AccountContent], None]
ErrorHandler = Callable[[Exception], None]
Connector = Callable[[str], Awaitable[Any]]


class SessionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    LOGGING_IN = "logging_in"
    SUBSCRIBED = "subscribed"
    STREAMING = "streaming"


class StreamingSessionClient:
    """Manages one streamer WebSocket session end to end

    Responsibilities:
    - Open the socket and send the ADMIN LOGIN frame with a fresh token
    - Subscribe to account activity once the login is acknowledged
    - Classify inbound frames and hand account content to the callback

    Every outbound frame carries the current request counter as its
    ``requestid``; the counter is incremented once after each send. Sends
    are serialized so no two frames share an id.
    """

    def __init__(
        self,
        token_provider: TokenProvider,
        streamer_info: StreamerInfo,
        on_account_update: AccountUpdateHandler,
        on_error: ErrorHandler | None = None,
        connector: Connector | None = None,
    ) -> None:
        """Initialize streaming session

        Args:
            token_provider: Source of the bearer token for the login frame
            streamer_info: Connection parameters from user preferences
            on_account_update: Called once per account content item
            on_error: Called with errors raised while handling a frame
            connector: Coroutine factory opening the socket (for testing)
        """
        self._token_provider = token_provider
        self._streamer_info = streamer_info
        self._on_account_update = on_account_update
        self._on_error = on_error
        self._connector = connector or websockets.connect

        self._websocket: Any = None
        self._receive_task: asyncio.Task | None = None
        self._state = SessionState.DISCONNECTED
        self._request_count = 0
        self._send_lock = asyncio.Lock()
        self._handlers: dict[str, Callable[[Any], Awaitable[None]]] = {
            "notify": self._handle_notify,
            "response": self._handle_response,
            "data": self._handle_data,
        }

        install_logging_bridge()

    @classmethod
    async def from_user_preference(
        cls,
        token_provider: TokenProvider,
        trader_client: httpx.AsyncClient,
        on_account_update: AccountUpdateHandler,
        on_error: ErrorHandler | None = None,
        connector: Connector | None = None,
    ) -> "StreamingSessionClient":
        """Look up streamer parameters once, then build the session"""
        streamer_info = await fetch_streamer_info(trader_client)
        return cls(
            token_provider,
            streamer_info,
            on_account_update,
            on_error=on_error,
            connector=connector,
        )

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def request_count(self) -> int:
        """Request id the next outbound frame will carry"""
        return self._request_count

    @property
    def streamer_info(self) -> StreamerInfo:
        return self._streamer_info

    @property
    def is_connected(self) -> bool:
        return self._websocket is not None

    async def connect(self) -> None:
        """Open the socket and send the login frame

        Raises:
            StreamError: If the socket cannot be opened
            AuthenticationError: If no access token can be obtained
        """
        if self._websocket is not None:
            logger.warning("Streamer session already connected")
            return

        url = self._streamer_info.streamer_socket_url
        logger.info(f"Connecting to streamer at {url}...")
        self._state = SessionState.CONNECTING
        try:
            self._websocket = await self._connector(url)
        except (OSError, WebSocketException) as e:
            self._state = SessionState.DISCONNECTED
            raise StreamError(f"Connection failed: {e}") from e

        try:
            await self._on_open()
        except BaseException:
            logger.error("Streamer login failed, closing socket")
            await self._release_socket()
            raise

    async def start(self) -> None:
        """Connect and receive frames in a background task"""
        await self.connect()
        self._receive_task = asyncio.create_task(
            self.run(), name="SchwabStreamerReceive"
        )

    async def run(self) -> None:
        """Receive and handle frames until the socket closes

        A StreamError raised while handling one frame is passed to
        ``on_error`` and the session keeps receiving; without an error
        callback it propagates and ends the loop. No reconnection is
        attempted.
        """
        websocket = self._require_socket()
        try:
            async for raw in websocket:
                try:
                    await self.handle_message(raw)
                except StreamError as e:
                    if self._on_error is None:
                        raise
                    logger.error(f"Streamer frame handling failed: {e}")
                    self._on_error(e)
        except ConnectionClosedError as e:
            logger.warning(f"Streamer connection closed with error: {e}")
            raise StreamError(f"Streamer connection lost: {e}") from e
        finally:
            logger.info("Streamer receive loop stopped")
            await self._release_socket()

    async def handle_message(self, raw: str | bytes) -> None:
        """Classify one inbound frame and dispatch it

        Raises:
            StreamDecodeError: If the frame matches no message variant
            UnsupportedResponseCodeError: On an unexpected response
            UnsupportedServiceError: On data for an unhandled service
        """
        logger.debug(f"Streamer frame: {raw!r}")
        message: StreamMessage = parse_stream_message(raw)
        await self._handlers[message.kind](message)

    async def logout(self) -> None:
        """Send ADMIN LOGOUT"""
        await self._send(
            lambda request_id: admin_logout_request(
                request_id, self._streamer_info
            )
        )

    async def close(self) -> None:
        """Log out if logged in, stop receiving and close the socket"""
        if self._websocket is None:
            # The receive loop may have ended on its own; collect its outcome.
            await self._cancel_receive_task()
            return

        logger.info("Closing streamer session...")
        try:
            if self._state in (SessionState.SUBSCRIBED, SessionState.STREAMING):
                with contextlib.suppress(ConnectionClosed):
                    await self.logout()
        finally:
            await self._cancel_receive_task()
            await self._release_socket()
            logger.info("Streamer session closed")

    async def __aenter__(self) -> "StreamingSessionClient":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _on_open(self) -> None:
        self._state = SessionState.LOGGING_IN
        access_token = await self._token_provider.get_access_token()
        await self._send(
            lambda request_id: admin_login_request(
                request_id, self._streamer_info, access_token
            )
        )

    async def _send(self, build: Callable[[int], StreamRequest]) -> None:
        async with self._send_lock:
            websocket = self._require_socket()
            request = build(self._request_count)
            # Login frames carry the bearer token; log the envelope only.
            logger.debug(
                f"Streamer send: {request.service.value} {request.command.value} "
                f"requestid={request.request_id}"
            )
            await websocket.send(request.to_frame())
            self._request_count += 1

    async def _handle_notify(self, message: NotifyMessage) -> None:
        pass

    async def _handle_response(self, message: ResponseMessage) -> None:
        for response in message.response:
            service = resolve_service(response.service)
            code = response.content.code

            if service is Service.ADMIN and code == 0:
                if response.command == Command.LOGOUT.value:
                    logger.info("Streamer logout acknowledged")
                    continue
                logger.info("Streamer login succeeded, subscribing to account activity")
                await self._send(
                    lambda request_id: account_subscribe_request(
                        request_id, self._streamer_info
                    )
                )
                self._state = SessionState.SUBSCRIBED
            elif service is Service.ACCOUNT:
                continue
            else:
                raise UnsupportedResponseCodeError(
                    response.service, code, response.content.message
                )

    async def _handle_data(self, message: DataMessage) -> None:
        for data in message.data:
            if resolve_service(data.service) is not Service.ACCOUNT:
                raise UnsupportedServiceError(data.service)
            self._state = SessionState.STREAMING
            for content in data.content:
                self._on_account_update(content)

    async def _cancel_receive_task(self) -> None:
        task = self._receive_task
        self._receive_task = None
        if task is None or task is asyncio.current_task():
            return
        if task.done():
            if not task.cancelled() and task.exception() is not None:
                logger.warning(f"Streamer receive task failed: {task.exception()}")
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError, StreamError):
            await task

    async def _release_socket(self) -> None:
        websocket = self._websocket
        self._websocket = None
        self._state = SessionState.DISCONNECTED
        if websocket is not None:
            await websocket.close()

    def _require_socket(self) -> Any:
        if self._websocket is None:
            raise StreamError("Streamer session not connected - call connect() first")
        return self._websocket
