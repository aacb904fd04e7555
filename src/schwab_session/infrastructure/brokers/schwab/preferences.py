"""User preference lookup yielding streamer connection parameters"""

import httpx
from loguru import logger
from pydantic import ValidationError

from schwab_session.shared.exceptions import StreamDecodeError, StreamError

from .stream_models import StreamerInfo

USER_PREFERENCE_PATH = "/userPreference"


async def fetch_streamer_info(client: httpx.AsyncClient) -> StreamerInfo:
    """Get streamer parameters from ``GET {trader_url}/userPreference``

    Args:
        client: Client rooted at the Trader API, normally routed through an
            authenticating transport

    Returns:
        The first ``streamerInfo`` entry

    Raises:
        StreamError: If the lookup does not succeed
        StreamDecodeError: If the reply carries no usable streamer entry
    """
    logger.info("Retrieving streamer info from user preferences...")
    response = await client.get(USER_PREFERENCE_PATH)

    if not response.is_success:
        raise StreamError(
            f"User preference lookup failed: {response.status_code} - {response.text}"
        )

    try:
        payload = response.json()
    except ValueError as e:
        raise StreamDecodeError(
            f"User preference reply is not JSON: {response.text}"
        ) from e

    entries = payload.get("streamerInfo") if isinstance(payload, dict) else None
    if not entries:
        raise StreamDecodeError(f"No streamerInfo in user preferences: {payload}")

    try:
        info = StreamerInfo.model_validate(entries[0])
    except ValidationError as e:
        raise StreamDecodeError(f"Malformed streamerInfo entry: {e}") from e

    logger.info(f"Streamer socket: {info.streamer_socket_url}")
    return info
