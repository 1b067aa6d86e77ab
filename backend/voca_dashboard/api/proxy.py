from typing import Optional

import httpx
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response

from ..config import DashboardConfig
from ..schemas.pydantic_schemas import ProxyRequest, ProxyResponse
from ..services.forwarder import BODYLESS_METHODS, SUPPORTED_METHODS, forward
from .deps import get_dashboard_config, get_upstream_transport

router = APIRouter()


def to_http_response(result: ProxyResponse) -> Response:
    headers = dict(result.headers)
    if result.status_code == 204 and result.body is None:
        return Response(status_code=204, headers=headers)
    headers["Content-Type"] = result.content_type
    if result.is_json:
        return JSONResponse(result.body, status_code=result.status_code, headers=headers)
    return Response(content=result.body or "", status_code=result.status_code, headers=headers)


async def _read_body(request: Request) -> Optional[str]:
    if request.method in BODYLESS_METHODS:
        return None
    raw = await request.body()
    return raw.decode("utf-8", errors="replace") if raw else None


@router.api_route("", methods=list(SUPPORTED_METHODS), include_in_schema=False)
@router.api_route("/{path:path}", methods=list(SUPPORTED_METHODS))
async def proxy(
    request: Request,
    config: DashboardConfig = Depends(get_dashboard_config),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_upstream_transport),
):
    path = request.path_params.get("path", "")
    proxy_request = ProxyRequest(
        method=request.method,
        path_segments=path.split("/") if path else [],
        query_params=request.query_params.multi_items(),
        headers=request.headers.items(),
        body=await _read_body(request),
        url=str(request.url),
    )
    result = await forward(proxy_request, config.api_base_url, transport=transport)
    return to_http_response(result)
