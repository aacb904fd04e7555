"""Logging helpers shared by the Schwab HTTP and streaming clients"""

import logging

import httpx
from loguru import logger

_SENSITIVE_HEADERS = frozenset({"authorization", "cookie", "set-cookie"})
_bridge_installed = False


class _LoguruHandler(logging.Handler):
    """Bridge stdlib logging into loguru"""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        logger.opt(depth=6, exception=record.exc_info).log(
            level, record.getMessage()
        )


def install_logging_bridge() -> None:
    """Bridge stdlib logging used by httpx/websockets into loguru once."""
    global _bridge_installed
    if _bridge_installed:
        return

    handler = _LoguruHandler()
    for name in ("schwab_session", "httpx", "websockets"):
        std_logger = logging.getLogger(name)
        std_logger.setLevel(logging.DEBUG)
        std_logger.addHandler(handler)
        std_logger.propagate = False

    _bridge_installed = True


def mask_headers(headers: httpx.Headers) -> dict[str, str]:
    """Copy headers with credentials replaced by ***"""
    return {
        k: ("***" if k.lower() in _SENSITIVE_HEADERS else v)
        for k, v in headers.items()
    }


async def log_httpx_request(request: httpx.Request) -> None:
    """Log outbound httpx requests with headers (auth masked)."""
    logger.debug(
        f"HTTPX request: {request.method} {request.url} {mask_headers(request.headers)}"
    )


async def log_httpx_response(response: httpx.Response) -> None:
    """Log httpx responses with status; bodies are read lazily by callers."""
    logger.debug(
        f"HTTPX response: status={response.status_code} url={response.url}"
    )


def build_http_client(
    transport: httpx.AsyncBaseTransport,
    base_url: str = "",
    timeout: float = 20.0,
) -> httpx.AsyncClient:
    """Create an AsyncClient over ``transport`` with logging hooks."""
    install_logging_bridge()
    return httpx.AsyncClient(
        base_url=base_url,
        timeout=timeout,
        transport=transport,
        event_hooks={
            "request": [log_httpx_request],
            "response": [log_httpx_response],
        },
    )
