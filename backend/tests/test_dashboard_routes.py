import json

import httpx
import pytest


class TestPromptRoutes:
    def test_list_from_list_endpoint(self, client, upstream):
        upstream.reply("GET", "/api/system-prompt/list", json={"prompts": [
            {"id": 1, "name": "Sales", "prompt": "Sell", "is_active": True},
            {"key": "support", "prompt": "Help"},
            {"name": "no id"},
        ]})
        response = client.get("/api/dashboard/prompts/?organization_id=org1")
        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 2
        assert [item["id"] for item in body["items"]] == ["1", "support"]
        assert body["items"][0]["is_active"] is True
        assert body["items"][1]["name"] == "support"
        assert upstream.requests[0].url.params["organization_id"] == "org1"

    def test_list_falls_back_to_active_prompt(self, client, upstream):
        upstream.reply("GET", "/api/system-prompt", json={"id": "p1", "name": "Main", "is_default": True})
        response = client.get("/api/dashboard/prompts/")
        assert response.status_code == 200
        assert response.json()["items"][0]["id"] == "p1"
        assert [request.url.path for request in upstream.requests] == ["/api/system-prompt/list", "/api/system-prompt"]

    def test_list_fails_when_both_endpoints_fail(self, client, upstream):
        response = client.get("/api/dashboard/prompts/")
        assert response.status_code == 502
        assert response.json()["error"] == "Backend error"
        assert "API Error: 404" in response.json()["message"]

    def test_unreachable_backend_is_503(self, client, upstream):
        upstream.error = httpx.ConnectError("connection refused")
        response = client.get("/api/dashboard/prompts/active")
        assert response.status_code == 503
        assert response.json()["error"] == "Backend unavailable"

    def test_active_prompt_missing(self, client, upstream):
        upstream.reply("GET", "/api/system-prompt", json={"message": "nothing here"})
        response = client.get("/api/dashboard/prompts/active")
        assert response.status_code == 404
        assert response.json() == {"error": "Request failed", "message": "System prompt not found"}

    def test_create_sends_organization(self, client, upstream):
        upstream.reply("POST", "/api/system-prompt", status=201, json={"id": "p9", "name": "New", "prompt": "Hi"})
        response = client.post("/api/dashboard/prompts/?organization_id=org1", json={"name": "New", "prompt": "Hi"})
        assert response.status_code == 201
        assert response.json()["id"] == "p9"
        assert json.loads(upstream.last.content) == {"name": "New", "prompt": "Hi", "organization_id": "org1"}

    def test_activate(self, client, upstream):
        upstream.reply("POST", "/api/system-prompt/p1/activate", json={"id": "p1", "is_active": True})
        response = client.post("/api/dashboard/prompts/p1/activate")
        assert response.status_code == 200
        assert response.json()["activated"] == "p1"
        assert response.json()["prompt"]["is_active"] is True

    def test_welcome_message(self, client, upstream):
        upstream.reply("PUT", "/api/system-prompt/welcome-message", status=204)
        response = client.put("/api/dashboard/prompts/welcome-message", json={"welcome_message": "Hello!"})
        assert response.json() == {"updated": True, "prompt": None}
        assert json.loads(upstream.last.content) == {"welcome_message": "Hello!"}


class TestConversationRoutes:
    def test_no_organization_means_no_conversations(self, client, upstream):
        response = client.get("/api/dashboard/conversations/")
        assert response.json() == {"items": [], "total": 0}
        assert upstream.requests == []

    def test_list(self, client, upstream):
        upstream.reply("GET", "/api/conversations", json={"conversations": [
            {"id": 7, "call_sid": "CA1", "lead_status": "hot", "lead_data": {"name": "Ann"}},
            {"call_sid": "CA2"},
        ]})
        response = client.get("/api/dashboard/conversations/?organization_id=org1&limit=10")
        body = response.json()
        assert body["total"] == 1
        assert body["items"][0]["id"] == "7"
        assert body["items"][0]["lead_data"] == {"name": "Ann"}
        assert upstream.last.url.params["limit"] == "10"

    def test_detail_not_found(self, client, upstream):
        upstream.reply("GET", "/api/conversations/42", json={})
        response = client.get("/api/dashboard/conversations/42?organization_id=org1")
        assert response.status_code == 404
        assert response.json()["message"] == "Conversation not found"


class TestCallRoutes:
    def test_status_groups_from_summary(self, client, upstream, call_summary):
        upstream.reply("GET", "/api/twilio/call-status/summary", json=call_summary)
        response = client.get("/api/dashboard/calls/status-groups")
        assert response.status_code == 200
        body = response.json()
        assert [call["sid"] for call in body["groups"]["active"]] == ["CA1"]
        assert [call["sid"] for call in body["groups"]["queued"]] == ["CA2"]
        assert body["groups"]["active"][0]["duration_human"] == "—"
        assert body["counts"] == {"active": 1, "queued": 1, "completed": 0, "declined": 0}
        assert upstream.last.url.params["limit"] == "15"

    def test_status_groups_from_buckets(self, client, upstream):
        upstream.reply("GET", "/api/twilio/call-status/summary", json={
            "completed_calls": [{"sid": "CA3", "status": "completed", "duration": "65"}],
        })
        body = client.get("/api/dashboard/calls/status-groups?limit=5").json()
        assert body["groups"]["completed"][0]["duration_human"] == "1m 5s"
        assert body["counts"]["completed"] == 1

    def test_status_groups_rejects_empty_answer(self, client, upstream):
        upstream.reply("GET", "/api/twilio/call-status/summary", status=204)
        response = client.get("/api/dashboard/calls/status-groups")
        assert response.status_code == 502
        assert response.json()["message"] == "Empty response from API"

    def test_make_call(self, client, upstream):
        upstream.reply("POST", "/api/twilio/make-call", json={"message": "Call queued"})
        response = client.post("/api/dashboard/calls/", json={"phone_number": " 5551234567 ", "country_code": "+1"})
        assert response.status_code == 202
        assert response.json() == {"phone_number": "+15551234567", "message": "Call queued"}
        assert json.loads(upstream.last.content) == {"phone_number": "+15551234567"}

    def test_status_groups_fall_back_to_call_status(self, client, upstream):
        upstream.reply("GET", "/api/twilio/call-status", json={
            "ongoing": [{"sid": "CA1", "status": "in-progress"}],
            "pending": [{"sid": "CA2", "status": "queued"}],
        })
        response = client.get("/api/dashboard/calls/status-groups")
        assert response.status_code == 200
        assert response.json()["counts"] == {"active": 1, "queued": 1, "completed": 0, "declined": 0}
        assert [request.url.path for request in upstream.requests] == [
            "/api/twilio/call-status/summary",
            "/api/twilio/call-status",
        ]

    def test_make_call_requires_number(self, client, upstream):
        response = client.post("/api/dashboard/calls/", json={"phone_number": "   "})
        assert response.status_code == 400
        assert upstream.requests == []

    def test_make_call_missing_body_field(self, client, upstream):
        response = client.post("/api/dashboard/calls/", json={})
        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "Invalid request"
        assert "body.phone_number" in body["message"]
        assert "detail" not in body
        assert upstream.requests == []

    def test_bad_query_parameter(self, client, upstream):
        response = client.get("/api/dashboard/calls/status-groups?limit=abc")
        assert response.status_code == 422
        assert response.json()["error"] == "Invalid request"
        assert "query.limit" in response.json()["message"]
        assert upstream.requests == []

    def test_countries_fall_back_to_defaults(self, client, upstream):
        response = client.get("/api/dashboard/calls/countries")
        assert response.status_code == 200
        countries = response.json()
        assert len(countries) == 37
        assert countries[0] == {"name": "United States", "code": "+1"}

    def test_countries_from_backend(self, client, upstream):
        upstream.reply("GET", "/api/twilio/country-codes", json={"countries": [{"name": "Chile", "code": "+56"}]})
        assert client.get("/api/dashboard/calls/countries").json() == [{"name": "Chile", "code": "+56"}]

    def test_status(self, client, upstream):
        upstream.reply("GET", "/api/twilio/status", json={
            "running": True,
            "active_calls": [{"CallSid": "CA1", "Status": "in-progress"}],
        })
        body = client.get("/api/dashboard/calls/status").json()
        assert body["running"] is True
        assert body["call_count"] == 1
        assert body["active_calls"][0]["sid"] == "CA1"


class TestSystemRoutes:
    def test_backend_health_ok(self, client, upstream):
        upstream.reply("GET", "/health", json={"status": "healthy"})
        body = client.get("/api/dashboard/health").json()
        assert body["backend"] == "ok"
        assert body["detail"] == {"status": "healthy"}

    def test_backend_health_unreachable(self, client, upstream):
        upstream.error = httpx.ConnectError("connection refused")
        body = client.get("/api/dashboard/health").json()
        assert body["backend"] == "unreachable"
        assert body["base_url"] == "http://upstream.test"

    def test_backend_health_falls_back_to_root(self, client, upstream):
        upstream.reply("GET", "/", text="Voice backend running", content_type="text/plain")
        body = client.get("/api/dashboard/health").json()
        assert body["backend"] == "ok"
        assert body["detail"] == "Voice backend running"
        assert [request.url.path for request in upstream.requests] == ["/health", "/"]

    def test_unknown_local_voice_action(self, client, upstream):
        assert client.post("/api/dashboard/local-voice/dance").status_code == 404
        assert upstream.requests == []

    @pytest.mark.parametrize("action", ["start-continuous", "stop-continuous", "one-minute-test"])
    def test_local_voice_actions_forwarded(self, client, upstream, action):
        upstream.reply("POST", f"/api/local-voice/{action}", json={"success": True})
        response = client.post(f"/api/dashboard/local-voice/{action}")
        assert response.json() == {"success": True}
        assert upstream.last.url.path == f"/api/local-voice/{action}"

    def test_logs_limit(self, client, upstream):
        upstream.reply("GET", "/api/logs", json={"logs": ["a"]})
        assert client.get("/api/dashboard/logs").json() == {"logs": ["a"]}
        assert upstream.last.url.params["limit"] == "100"

    def test_dashboard_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}


class TestProxyRoute:
    def test_get_forwarded(self, client, upstream):
        upstream.reply("GET", "/api/system-prompt", json={"id": "p1"})
        response = client.get(
            "/api/proxy/api/system-prompt?organization_id=org1&tag=a&tag=b",
            headers={"Authorization": "Bearer t"},
        )
        assert response.status_code == 200
        assert response.json() == {"id": "p1"}
        assert response.headers["access-control-allow-origin"] == "*"
        sent = upstream.last
        assert str(sent.url) == "http://upstream.test/api/system-prompt?organization_id=org1&tag=a&tag=b"
        assert sent.headers["host"] == "upstream.test"
        assert sent.headers["authorization"] == "Bearer t"

    def test_preflight(self, client, upstream):
        response = client.options("/api/proxy/api/system-prompt")
        assert response.status_code == 204
        assert response.content == b""
        assert response.headers["access-control-allow-methods"] == "GET, POST, PUT, DELETE, OPTIONS"
        assert upstream.requests == []

    def test_post_body_forwarded(self, client, upstream):
        upstream.reply("POST", "/api/twilio/make-call", status=201, json={"message": "ok"})
        response = client.post("/api/proxy/api/twilio/make-call", content=b'{"phone_number": "+1555"}')
        assert response.status_code == 201
        assert upstream.last.content == b'{"phone_number": "+1555"}'
        assert upstream.last.headers["content-type"] == "application/json"

    def test_upstream_error_text_relayed(self, client, upstream):
        upstream.reply("GET", "/api/logs", status=500, text="boom", content_type="text/plain")
        response = client.get("/api/proxy/api/logs")
        assert response.status_code == 500
        assert response.text == "boom"
        assert response.headers["content-type"].startswith("text/plain")

    def test_transport_failure(self, client, upstream):
        upstream.error = httpx.ConnectError("connection refused")
        response = client.delete("/api/proxy/api/conversations/1")
        assert response.status_code == 500
        assert response.json() == {"error": "Proxy error", "message": "connection refused"}
