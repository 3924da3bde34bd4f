import json
from typing import Callable, List

import httpx
import pytest
from fastapi.testclient import TestClient

from counsellor_gateway.core.config import Settings
from counsellor_gateway.main import create_app


class FakeUpstream:
    """Simuliert den Counsellor-Service und merkt sich alle Requests."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.handler: Callable[[httpx.Request], httpx.Response] = lambda request: httpx.Response(200, json={})

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    def last_json(self):
        return json.loads(self.last.content)


@pytest.fixture
def settings():
    return Settings(upstream_host="upstream.test", upstream_port=5000, log_file="", app_env="production")


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def app(settings, upstream):
    return create_app(settings, transport=httpx.MockTransport(upstream))


@pytest.fixture
def client(app):
    return TestClient(app)
