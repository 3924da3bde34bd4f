import json

import httpx
import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, patch

from counsellor_gateway.main import create_app
from counsellor_gateway.routers.conversation import ensure_conversation_id


@pytest.mark.parametrize(
    "method, path",
    [
        ("POST", "/create_conversation"),
        ("POST", "/send_message"),
        ("POST", "/generate_message"),
        ("GET", "/get_messages"),
        ("POST", "/generate_report"),
        ("POST", "/delete_conversation"),
    ],
)
def test_routes_forward_to_same_path_and_method(client, upstream, method, path):
    upstream.handler = lambda request: httpx.Response(200, json={"conversation_id": "abc-123", "ok": True})

    response = client.request(method, path)

    assert response.status_code == 200
    assert upstream.last.method == method
    assert upstream.last.url.path == path


@pytest.mark.parametrize("path", ["/send_message", "/generate_message", "/generate_report", "/delete_conversation"])
def test_post_routes_reject_get(client, upstream, path):
    response = client.get(path)

    # Kein GET-Handler: landet beim Static-Mount bzw. 405, nie beim Upstream.
    assert response.status_code in (404, 405)
    assert upstream.requests == []


def test_create_conversation_relays_upstream_id(client, upstream):
    upstream.handler = lambda request: httpx.Response(200, json={"conversation_id": "abc-123"})

    response = client.post("/create_conversation", json={})

    assert response.status_code == 200
    assert response.json() == {"conversation_id": "abc-123"}
    assert upstream.last_json() == {}


def test_create_conversation_forwards_client_body(client, upstream):
    upstream.handler = lambda request: httpx.Response(200, json={"conversation_id": "abc-123"})

    client.post("/create_conversation", json={"conversation_id": None})

    assert upstream.last_json() == {"conversation_id": None}


def test_create_conversation_generates_missing_id(client, upstream, caplog):
    upstream.handler = lambda request: httpx.Response(200, json={"status": "created"})

    response = client.post("/create_conversation", json={})

    data = response.json()
    assert response.status_code == 200
    assert data["status"] == "created"
    assert isinstance(data["conversation_id"], str) and data["conversation_id"]
    assert "generated" in caplog.text


def test_create_conversation_gateway_policy(settings, upstream):
    settings = settings.model_copy(update={"conversation_id_policy": "gateway"})
    client = TestClient(create_app(settings, transport=httpx.MockTransport(upstream)))
    upstream.handler = lambda request: httpx.Response(200, json=json.loads(request.content))

    with patch("counsellor_gateway.routers.conversation.new_conversation_id", return_value="gw-1"):
        response = client.post("/create_conversation", json={"conversation_id": "from-client"})

    assert upstream.last_json() == {"conversation_id": "gw-1"}
    assert response.json() == {"conversation_id": "gw-1"}


def test_ensure_conversation_id_leaves_errors_alone():
    assert ensure_conversation_id(500, {"error": "x"}) == {"error": "x"}
    assert ensure_conversation_id(200, ["not", "a", "dict"]) == ["not", "a", "dict"]
    assert ensure_conversation_id(200, {"conversation_id": "abc"}) == {"conversation_id": "abc"}


def test_health(client, upstream):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "upstream": "http://upstream.test:5000"}
    assert upstream.requests == []


def test_settings_stored_on_app_state(app, settings):
    assert app.state.settings is settings
    assert app.state.proxy.base_url == "http://upstream.test:5000"


def _failing_app(settings):
    app = create_app(settings, transport=httpx.MockTransport(lambda request: httpx.Response(200, json={})))
    app.state.proxy = AsyncMock()
    app.state.proxy.forward.side_effect = ValueError("kaputt")
    return app


def test_unhandled_error_returns_envelope(settings):
    client = TestClient(_failing_app(settings), raise_server_exceptions=False)

    response = client.post("/send_message", json={})

    assert response.status_code == 500
    assert response.json() == {"error": "Internal Server Error", "message": "kaputt"}


def test_unhandled_error_includes_stack_in_development(settings):
    settings = settings.model_copy(update={"app_env": "development"})
    client = TestClient(_failing_app(settings), raise_server_exceptions=False)

    response = client.post("/send_message", json={})

    assert response.status_code == 500
    assert "ValueError" in response.json()["stack"]
