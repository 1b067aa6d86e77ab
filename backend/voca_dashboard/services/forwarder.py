import json
import logging
from typing import Dict, List, Optional, Sequence, Tuple
from urllib.parse import urlencode, urlsplit

import httpx

from ..schemas.pydantic_schemas import ProxyRequest, ProxyResponse

# Set up logger
logger = logging.getLogger(__name__)

PROXY_PREFIX = "/api/proxy"
SUPPORTED_METHODS = ("GET", "POST", "PUT", "DELETE", "OPTIONS")
BODYLESS_METHODS = ("GET", "DELETE")
STRIPPED_HEADERS = ("host", "content-length")

CORS_HEADERS: Dict[str, str] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


def resolve_path(request: ProxyRequest) -> Optional[str]:
    """Return the upstream path (without leading slash), or None when it cannot be determined."""
    if request.path_segments:
        return "/".join(request.path_segments)

    if not request.url:
        return None
    pathname = urlsplit(request.url).path
    if not pathname.startswith(PROXY_PREFIX):
        logger.error(f"Could not extract path from URL: {pathname}")
        return None
    # Drop the prefix and the slash that follows it
    return pathname[len(PROXY_PREFIX) + 1:]


def build_upstream_url(upstream_base: str, path: str, query_params: Sequence[Tuple[str, str]] = ()) -> str:
    base_url = upstream_base.rstrip("/")
    query = urlencode(list(query_params))
    url = f"{base_url}/{path}" if path else base_url
    return f"{url}?{query}" if query else url


def build_forward_headers(headers: Sequence[Tuple[str, str]]) -> List[Tuple[str, str]]:
    forwarded = [
        (key, value)
        for key, value in headers
        if key.lower() not in STRIPPED_HEADERS and key.lower() != "content-type"
    ]
    forwarded.append(("Content-Type", "application/json"))
    return forwarded


def error_response(status_code: int, error: str, message: str) -> ProxyResponse:
    return ProxyResponse(
        status_code=status_code,
        content_type="application/json",
        body={"error": error, "message": message},
        headers=dict(CORS_HEADERS),
        is_json=True,
    )


def preflight_response() -> ProxyResponse:
    return ProxyResponse(status_code=204, content_type="", body=None, headers=dict(CORS_HEADERS), is_json=False)


async def _send(transport: Optional[httpx.AsyncBaseTransport], method: str, url: str, headers, body: Optional[str]) -> ProxyResponse:
    # No timeout: a hanging upstream is the upstream's problem
    async with httpx.AsyncClient(transport=transport, timeout=None) as client:
        response = await client.request(method, url, headers=headers, content=body)
    logger.info(f"Upstream response: {response.status_code} for {method} {url}")

    content_type = response.headers.get("content-type", "")
    is_json = "application/json" in content_type and bool(response.content)
    payload = json.loads(response.text) if is_json else response.text
    return ProxyResponse(
        status_code=response.status_code,
        content_type=content_type or "application/json",
        body=payload,
        headers=dict(CORS_HEADERS),
        is_json=is_json,
    )


async def forward(request: ProxyRequest, upstream_base: str, transport: Optional[httpx.AsyncBaseTransport] = None) -> ProxyResponse:
    """Relay one request to ``upstream_base`` and mirror the upstream answer.

    Upstream 4xx/5xx answers are passed through untouched. Only a path that
    cannot be resolved (400) or a transport failure (500) produce a local error.
    """
    method = request.method.upper()
    if method == "OPTIONS":
        return preflight_response()

    path = resolve_path(request)
    if path is None:
        return error_response(400, "Invalid request path", "Could not determine backend path")

    url = build_upstream_url(upstream_base, path, request.query_params)
    headers = build_forward_headers(request.headers)
    body = request.body if method not in BODYLESS_METHODS and request.body else None
    logger.info(f"Proxying {method} {url}")

    try:
        return await _send(transport, method, url, headers, body)
    except httpx.RequestError as e:
        logger.error(f"Proxy transport error for {method} {url}: {str(e)}")
        return error_response(500, "Proxy error", str(e) or e.__class__.__name__)
    except ValueError as e:
        # Upstream declared JSON but sent something else
        logger.error(f"Proxy could not decode upstream JSON for {method} {url}: {str(e)}")
        return error_response(500, "Proxy error", str(e))
