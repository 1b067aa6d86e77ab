from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
import logging

from websockets.exceptions import WebSocketException

from ..config import DashboardConfig
from ..services.live_feed import stream_feed
from .deps import get_dashboard_config

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/feed/{endpoint:path}")
async def relay_feed(websocket: WebSocket, endpoint: str, config: DashboardConfig = Depends(get_dashboard_config)):
    """Relay JSON messages from the upstream WebSocket to a dashboard client."""
    await websocket.accept()
    try:
        async for message in stream_feed(config.ws_url, endpoint):
            await websocket.send_json(message)
    except WebSocketDisconnect:
        logger.info(f"Dashboard client left feed {endpoint}")
        return
    except (OSError, WebSocketException) as e:
        logger.error(f"WebSocket error on feed {endpoint}: {str(e)}")
        await websocket.send_json({"error": "Feed unavailable", "message": str(e)})
    await websocket.close()
