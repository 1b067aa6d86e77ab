import os
import pathlib
import logging
from functools import lru_cache
from typing import Mapping, Optional, Sequence

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "http://localhost:8000"
DEFAULT_PORT = 3000

# Ordered lookups, first non-empty value wins
API_BASE_URL_ENV = ("API_BASE_URL", "BACKEND_URL")
WS_URL_ENV = ("WS_URL",)
SUPABASE_KEY_ENV = ("SUPABASE_SERVICE_ROLE_KEY", "SUPABASE_ANON_KEY")


class DashboardConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    api_base_url: str = DEFAULT_API_BASE_URL
    ws_url: str = "ws://localhost:8000"
    default_organization_id: str = ""
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    log_level: str = "INFO"
    port: int = DEFAULT_PORT


def _first_env(env: Mapping[str, str], names: Sequence[str]) -> Optional[str]:
    for name in names:
        value = env.get(name)
        if value and value.strip():
            return value.strip()
    return None


def to_websocket_url(http_url: str) -> str:
    """Swap the scheme of an http(s) origin for its WebSocket counterpart."""
    if http_url.startswith("https:"):
        return "wss:" + http_url[len("https:"):]
    if http_url.startswith("http:"):
        return "ws:" + http_url[len("http:"):]
    return http_url


def _parse_port(value: Optional[str]) -> int:
    if not value:
        return DEFAULT_PORT
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Invalid PORT '{value}', using default: {DEFAULT_PORT}")
        return DEFAULT_PORT


def build_config(env: Mapping[str, str]) -> DashboardConfig:
    api_base_url = _first_env(env, API_BASE_URL_ENV)
    if not api_base_url:
        logger.warning(f"No API_BASE_URL configured, using default: {DEFAULT_API_BASE_URL}")
        api_base_url = DEFAULT_API_BASE_URL
    ws_url = _first_env(env, WS_URL_ENV) or to_websocket_url(api_base_url)
    return DashboardConfig(
        api_base_url=api_base_url,
        ws_url=ws_url,
        default_organization_id=_first_env(env, ("DEFAULT_ORGANIZATION_ID",)) or "",
        supabase_url=_first_env(env, ("SUPABASE_URL",)),
        supabase_key=_first_env(env, SUPABASE_KEY_ENV),
        log_level=(_first_env(env, ("LOG_LEVEL",)) or "INFO").upper(),
        port=_parse_port(_first_env(env, ("PORT",))),
    )


@lru_cache(maxsize=1)
def get_config() -> DashboardConfig:
    # Try the project root first, then the current directory
    project_root = pathlib.Path(__file__).parent.parent.parent
    env_path = project_root / ".env"
    if env_path.exists():
        load_dotenv(env_path)
    else:
        load_dotenv()
    config = build_config(os.environ)
    logger.info(f"Upstream API base URL: {config.api_base_url} (ws: {config.ws_url})")
    return config
