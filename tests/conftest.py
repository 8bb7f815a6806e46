"""Shared fixtures: a real Mem0 client talking to an in-memory HTTP fake."""

import json
import os
from unittest.mock import patch

import httpx
import pytest

# mem0 reads this once at import time
os.environ.setdefault("MEM0_TELEMETRY", "False")

from mem0 import AsyncMemoryClient  # noqa: E402
from mem0.client.project import AsyncProject  # noqa: E402


class FakeMem0API:
    """Records requests and answers them with canned JSON per (method, path)."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self._routes: dict[tuple[str, str], tuple[int, object]] = {}

    def respond(self, method: str, path: str, body: object, status_code: int = 200) -> None:
        """Register a reply. A callable body maps the request to (status, body)."""
        self._routes[(method, path)] = (status_code, body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status_code, body = self._routes.get((request.method, request.url.path), (200, {}))
        if callable(body):
            status_code, body = body(request)
        return httpx.Response(status_code, json=body)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    @staticmethod
    def payload(request: httpx.Request) -> dict:
        return json.loads(request.content)


@pytest.fixture
def mem0_api():
    return FakeMem0API()


@pytest.fixture
async def mem0_client(mem0_api):
    """AsyncMemoryClient with key validation and telemetry stubbed out."""
    http = httpx.AsyncClient(transport=httpx.MockTransport(mem0_api.handler))
    with (
        patch.object(AsyncMemoryClient, "_validate_api_key", return_value=None),
        patch.object(AsyncProject, "_validate_org_project", return_value=None),
        patch("mem0.client.main.capture_client_event"),
    ):
        yield AsyncMemoryClient(api_key="m0-test", client=http)
    await http.aclose()
