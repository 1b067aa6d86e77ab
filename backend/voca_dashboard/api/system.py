from fastapi import APIRouter, Depends, HTTPException, Query
import logging

from ..services.backend_client import BackendClient, BackendError, BackendResponseError, HealthApi, LocalVoiceApi, LogsApi
from .deps import get_backend_client

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def backend_health(client: BackendClient = Depends(get_backend_client)):
    api = HealthApi(client)
    try:
        try:
            detail = await api.check()
        except BackendResponseError as e:
            # Backend is up but has no /health route
            logger.info(f"Health endpoint answered {e.status_code}, checking root")
            detail = await api.check_root()
    except BackendError as e:
        logger.warning(f"Backend health check failed: {str(e)}")
        return {"backend": "unreachable", "base_url": client.base_url, "message": str(e)}
    return {"backend": "ok", "base_url": client.base_url, "detail": detail}


@router.get("/local-voice/status")
async def local_voice_status(client: BackendClient = Depends(get_backend_client)):
    return await LocalVoiceApi(client).status()


@router.post("/local-voice/{action}")
async def local_voice_action(action: str, client: BackendClient = Depends(get_backend_client)):
    if action not in LocalVoiceApi.ACTIONS:
        raise HTTPException(status_code=404, detail=f"Unknown local voice action: {action}")
    logger.info(f"Local voice action: {action}")
    handler = getattr(LocalVoiceApi(client), action.replace("-", "_"))
    return await handler()


@router.get("/logs")
async def backend_logs(limit: int = Query(default=100, ge=1, le=1000), client: BackendClient = Depends(get_backend_client)):
    return await LogsApi(client).get_logs(limit)
