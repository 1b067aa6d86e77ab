from typing import Optional

import httpx
from fastapi import Depends, Query

from ..config import DashboardConfig, get_config
from ..services.backend_client import BackendClient


def get_dashboard_config() -> DashboardConfig:
    return get_config()


def get_upstream_transport() -> Optional[httpx.AsyncBaseTransport]:
    # httpx default transport; overridden in tests
    return None


def get_backend_client(
    config: DashboardConfig = Depends(get_dashboard_config),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_upstream_transport),
) -> BackendClient:
    return BackendClient(config.api_base_url, transport=transport)


def get_organization_id(
    organization_id: Optional[str] = Query(default=None),
    config: DashboardConfig = Depends(get_dashboard_config),
) -> str:
    """Request-scoped organization id, defaulting to the configured one."""
    if organization_id is not None:
        return organization_id.strip()
    return config.default_organization_id
