"""Shared fixtures: a scripted fake upstream and a TestClient wired to it."""

from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest
from fastapi.testclient import TestClient

from voca_dashboard.api.deps import get_dashboard_config, get_upstream_transport
from voca_dashboard.config import DashboardConfig
from voca_dashboard.db import InMemoryPromptStore, get_prompt_store
from voca_dashboard.main import app

UPSTREAM_BASE = "http://upstream.test"


class FakeUpstream:
    """Answers httpx requests from a (method, path) table and records every request."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.routes: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self.error: Optional[Exception] = None

    def reply(self, method: str, path: str, status: int = 200, json: Any = None, text: Optional[str] = None,
              content_type: Optional[str] = None) -> None:
        self.routes[(method, path)] = {"status": status, "json": json, "text": text, "content_type": content_type}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        spec = self.routes.get((request.method, request.url.path))
        if spec is None:
            return httpx.Response(404, json={"message": "Not Found"})
        if spec["text"] is not None:
            headers = {"content-type": spec["content_type"]} if spec["content_type"] else {}
            return httpx.Response(spec["status"], content=spec["text"].encode(), headers=headers)
        if spec["json"] is None:
            return httpx.Response(spec["status"])
        return httpx.Response(spec["status"], json=spec["json"])

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def dashboard_config():
    return DashboardConfig(api_base_url=UPSTREAM_BASE, ws_url="ws://upstream.test")


@pytest.fixture
def prompt_store():
    return InMemoryPromptStore()


@pytest.fixture
def client(upstream, dashboard_config, prompt_store):
    app.dependency_overrides[get_dashboard_config] = lambda: dashboard_config
    app.dependency_overrides[get_upstream_transport] = lambda: upstream.transport
    app.dependency_overrides[get_prompt_store] = lambda: prompt_store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def call_summary():
    """Upstream /api/twilio/call-status/summary payload."""
    return {
        "ongoing": [{"sid": "CA1", "to": "+15551234567", "status": "in-progress"}],
        "completed": [],
        "declined": [],
        "others": [{"sid": "CA2", "status": "queued", "to": "+1555"}],
    }
