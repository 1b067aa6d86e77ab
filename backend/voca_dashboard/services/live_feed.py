import json
import logging
from typing import Any, AsyncIterator, Optional

import websockets

logger = logging.getLogger(__name__)


def decode_feed_message(raw: Any) -> Optional[Any]:
    """Decode one upstream frame; keepalive pings and unparsable frames yield None."""
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        logger.error(f"WebSocket parse error: {e}")
        return None
    if isinstance(data, dict) and data.get("type") == "ping":
        return None
    return data


def feed_url(ws_base: str, endpoint: str) -> str:
    return f"{ws_base.rstrip('/')}/{endpoint.lstrip('/')}"


async def stream_feed(ws_base: str, endpoint: str) -> AsyncIterator[Any]:
    """Yield decoded messages from the upstream WebSocket until it closes."""
    url = feed_url(ws_base, endpoint)
    async with websockets.connect(url) as upstream:
        logger.info(f"WebSocket connected: {url}")
        try:
            async for raw in upstream:
                message = decode_feed_message(raw)
                if message is not None:
                    yield message
        finally:
            logger.info(f"WebSocket disconnected: {url}")
