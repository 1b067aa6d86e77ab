import json
import logging
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlencode

import httpx

# Set up logger
logger = logging.getLogger(__name__)

MAX_DETAIL_CHARS = 500


class BackendError(Exception):
    """Base class for failures talking to the upstream backend."""


class BackendUnavailableError(BackendError):
    def __init__(self, url: str, base_url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(
            f"Network Error: Failed to connect to {url} ({reason}). "
            f"Check that the backend is running on {base_url}; test URL: {base_url}/health"
        )


class BackendResponseError(BackendError):
    def __init__(self, status_code: int, reason: str, detail: str = "") -> None:
        self.status_code = status_code
        self.detail = detail
        suffix = f" - {detail[:MAX_DETAIL_CHARS]}" if detail else ""
        super().__init__(f"API Error: {status_code} {reason}{suffix}")


class BackendHTMLError(BackendError):
    def __init__(self, endpoint: str, url: Optional[str] = None) -> None:
        self.endpoint = endpoint
        where = f" at {url}" if url else ""
        super().__init__(
            f"API returned HTML error page for {endpoint}{where}. Check if endpoint exists and backend server is running."
        )


def looks_like_html(text: str) -> bool:
    lowered = text.strip().lower()
    return lowered.startswith("<!doctype html") or "<html" in lowered


def parse_json_payload(value: Any, endpoint: str = "") -> Any:
    """Decode a payload that may have arrived as text; HTML is rejected before parsing."""
    if not isinstance(value, str):
        return value
    if looks_like_html(value):
        logger.error(f"{endpoint} returned HTML instead of JSON: {value[:200]}")
        raise BackendHTMLError(endpoint)
    try:
        return json.loads(value)
    except ValueError:
        raise BackendError(f"API returned non-JSON response for {endpoint}")


def build_query_string(params: Mapping[str, Any]) -> str:
    pairs = []
    for key, value in params.items():
        if value is None or value == "":
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        pairs.append((key, str(value)))
    query = urlencode(pairs)
    return f"?{query}" if query else ""


def _error_detail(text: str) -> str:
    try:
        parsed = json.loads(text)
    except ValueError:
        return text
    if isinstance(parsed, dict) and "message" in parsed:
        return str(parsed["message"])
    return text


class BackendClient:
    """Async JSON client for the voice assistant backend."""

    def __init__(self, base_url: str, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.transport = transport
        logger.info(f"BackendClient initialized with base URL: {self.base_url}")

    async def request(self, method: str, endpoint: str, json_body: Any = None) -> Any:
        url = f"{self.base_url}{endpoint}"
        logger.info(f"Backend request: {method} {url}")
        headers = {"Content-Type": "application/json"}
        content = json.dumps(json_body) if json_body is not None else None

        try:
            async with httpx.AsyncClient(transport=self.transport, headers={"Cache-Control": "no-store"}) as client:
                response = await client.request(method, url, headers=headers, content=content, timeout=30.0)
        except httpx.RequestError as e:
            logger.error(f"Network error when fetching {url}: {str(e)}")
            raise BackendUnavailableError(url, self.base_url, str(e) or e.__class__.__name__)

        if response.status_code in (204, 205):
            return None

        if not response.is_success:
            detail = _error_detail(response.text)
            logger.error(f"Backend error {response.status_code} for {method} {url}: {detail[:200]}")
            raise BackendResponseError(response.status_code, response.reason_phrase, detail)

        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type:
            return response.json()

        text = response.text
        if looks_like_html(text):
            logger.error(f"{endpoint} - Received HTML response instead of JSON from {url}")
            raise BackendHTMLError(endpoint, url)
        try:
            return json.loads(text)
        except ValueError:
            logger.warning(f"{endpoint} - Failed to parse as JSON, returning as text")
            return text

    async def get(self, endpoint: str) -> Any:
        return await self.request("GET", endpoint)

    async def post(self, endpoint: str, data: Any = None) -> Any:
        return await self.request("POST", endpoint, data)

    async def put(self, endpoint: str, data: Any = None) -> Any:
        return await self.request("PUT", endpoint, data)

    async def delete(self, endpoint: str, data: Any = None) -> Any:
        return await self.request("DELETE", endpoint, data)


def _with_organization(body: Dict[str, Any], organization_id: Optional[str]) -> Dict[str, Any]:
    # organization_id is only sent when it is non-blank
    if organization_id and organization_id.strip():
        body["organization_id"] = organization_id
    return body


class SystemPromptApi:
    def __init__(self, client: BackendClient) -> None:
        self.client = client

    async def list(self, organization_id: Optional[str] = None) -> Any:
        # Not every backend version exposes /list; callers fall back to get_active
        return await self.client.get(f"/api/system-prompt/list{build_query_string({'organization_id': organization_id})}")

    async def get_active(self, organization_id: Optional[str] = None) -> Any:
        return await self.client.get(f"/api/system-prompt{build_query_string({'organization_id': organization_id})}")

    async def get_by_id(self, prompt_id: str, organization_id: Optional[str] = None) -> Any:
        return await self.client.get(
            f"/api/system-prompt/{prompt_id}{build_query_string({'organization_id': organization_id})}"
        )

    async def create(self, payload: Dict[str, Any], organization_id: Optional[str] = None) -> Any:
        body = _with_organization(dict(payload), organization_id)
        logger.debug(f"Creating system prompt: {body}")
        return await self.client.post("/api/system-prompt", body)

    async def update(self, prompt_id: str, payload: Dict[str, Any], organization_id: Optional[str] = None) -> Any:
        return await self.client.put(f"/api/system-prompt/{prompt_id}", _with_organization(dict(payload), organization_id))

    async def activate(self, prompt_id: str, organization_id: Optional[str] = None) -> Any:
        return await self.client.post(f"/api/system-prompt/{prompt_id}/activate", _with_organization({}, organization_id))

    async def reset(self, organization_id: Optional[str] = None) -> Any:
        return await self.client.post("/api/system-prompt/reset", _with_organization({}, organization_id))

    async def update_welcome_message(self, welcome_message: str, organization_id: Optional[str] = None) -> Any:
        body = _with_organization({"welcome_message": welcome_message}, organization_id)
        return await self.client.put("/api/system-prompt/welcome-message", body)


class ConversationsApi:
    def __init__(self, client: BackendClient) -> None:
        self.client = client

    async def list(self, organization_id: Optional[str], limit: Optional[int] = None) -> Any:
        query = build_query_string({"organization_id": organization_id, "limit": limit})
        return await self.client.get(f"/api/conversations{query}")

    async def get(self, organization_id: Optional[str], conversation_id: str) -> Any:
        query = build_query_string({"organization_id": organization_id})
        return await self.client.get(f"/api/conversations/{conversation_id}{query}")


class TwilioApi:
    def __init__(self, client: BackendClient) -> None:
        self.client = client

    async def country_codes(self) -> Any:
        return await self.client.get("/api/twilio/country-codes")

    async def configured(self) -> Any:
        return await self.client.get("/api/twilio/configured")

    async def start_server(self) -> Any:
        return await self.client.post("/api/twilio/start-server")

    async def make_call(self, phone_number: str) -> Any:
        return await self.client.post("/api/twilio/make-call", {"phone_number": phone_number})

    async def hangup_all(self) -> Any:
        return await self.client.post("/api/twilio/hangup-all")

    async def status(self) -> Any:
        return await self.client.get("/api/twilio/status")

    async def call_status(self) -> Any:
        return await self.client.get("/api/twilio/call-status")

    async def call_status_summary(self, limit: int = 15) -> Any:
        return await self.client.get(f"/api/twilio/call-status/summary{build_query_string({'limit': limit})}")


class LocalVoiceApi:
    ACTIONS = ("start-continuous", "stop-continuous", "one-minute-test")

    def __init__(self, client: BackendClient) -> None:
        self.client = client

    async def start_continuous(self) -> Any:
        return await self.client.post("/api/local-voice/start-continuous")

    async def stop_continuous(self) -> Any:
        return await self.client.post("/api/local-voice/stop-continuous")

    async def one_minute_test(self) -> Any:
        return await self.client.post("/api/local-voice/one-minute-test")

    async def status(self) -> Any:
        return await self.client.get("/api/local-voice/status")


class LogsApi:
    def __init__(self, client: BackendClient) -> None:
        self.client = client

    async def get_logs(self, limit: int = 100) -> Any:
        return await self.client.get(f"/api/logs{build_query_string({'limit': limit})}")


class HealthApi:
    def __init__(self, client: BackendClient) -> None:
        self.client = client

    async def check(self) -> Any:
        return await self.client.get("/health")

    async def check_root(self) -> Any:
        return await self.client.get("/")
