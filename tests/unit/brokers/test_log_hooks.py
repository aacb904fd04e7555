"""Tests for httpx logging hooks"""

import httpx
import pytest

from schwab_session.infrastructure.brokers.schwab import build_http_client
from schwab_session.infrastructure.brokers.schwab.log_hooks import (
    log_httpx_request,
    mask_headers,
)


@pytest.mark.unit
def test_mask_headers_hides_credentials():
    headers = httpx.Headers(
        {
            "Authorization": "Bearer secret",
            "Cookie": "session=1",
            "Accept": "application/json",
        }
    )

    masked = mask_headers(headers)

    assert masked["authorization"] == "***"
    assert masked["cookie"] == "***"
    assert masked["accept"] == "application/json"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_request_hook_never_logs_token(mocker):
    logger = mocker.patch(
        "schwab_session.infrastructure.brokers.schwab.log_hooks.logger"
    )
    request = httpx.Request(
        "GET",
        "https://api.schwabapi.com/trader/v1/accounts",
        headers={"Authorization": "Bearer secret"},
    )

    await log_httpx_request(request)

    message = logger.debug.call_args.args[0]
    assert "secret" not in message
    assert "/trader/v1/accounts" in message


@pytest.mark.unit
@pytest.mark.asyncio
async def test_build_http_client_uses_transport_and_base_url():
    transport = httpx.MockTransport(
        lambda request: httpx.Response(200, json={"path": request.url.path})
    )

    async with build_http_client(
        transport, base_url="https://api.schwabapi.com/trader/v1"
    ) as client:
        response = await client.get("/userPreference")

    assert response.json() == {"path": "/trader/v1/userPreference"}
