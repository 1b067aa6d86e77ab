from fastapi import APIRouter
from .proxy import router as proxy_router
from .prompts import router as prompts_router
from .conversations import router as conversations_router
from .calls import router as calls_router
from .system import router as system_router
from .feed import router as feed_router
from .prompt_store import router as prompt_store_router

dashboard_router = APIRouter()
dashboard_router.include_router(prompts_router, prefix="/prompts", tags=["prompts"])
dashboard_router.include_router(conversations_router, prefix="/conversations", tags=["conversations"])
dashboard_router.include_router(calls_router, prefix="/calls", tags=["calls"])
dashboard_router.include_router(system_router, tags=["system"])
dashboard_router.include_router(feed_router, tags=["feed"])

api_router = APIRouter()
api_router.include_router(proxy_router, prefix="/proxy", tags=["proxy"])
api_router.include_router(dashboard_router, prefix="/dashboard")
api_router.include_router(prompt_store_router, prefix="/prompt-store", tags=["prompt-store"])
