from __future__ import annotations

import copy
from typing import Any

import httpx
import pytest

from flowtest.workflows.models import Workflow
from flowtest.workflows.runner import WorkflowRunner

API_DOCUMENT = {
    "openapi": "3.1.0",
    "info": {"title": "Users", "version": "1.0.0"},
    "servers": [{"url": "http://api.example.com"}],
    "paths": {
        "/users": {
            "get": {"operationId": "listUsers"},
            "post": {"operationId": "createUser"},
        },
        "/users/{userId}": {
            "get": {"operationId": "getUser"},
            "delete": {"operationId": "deleteUser"},
        },
    },
}


class FakeAPI:
    """Answers requests by (method, path) and records them.

    Responses queued for a route are served in order; the last one repeats.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.routes: dict[tuple[str, str], list[dict[str, Any]]] = {}

    def add(self, method: str, path: str, status_code: int = 200, **kwargs: Any) -> FakeAPI:
        self.routes.setdefault((method.upper(), path), []).append({"status_code": status_code, **kwargs})
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"detail": "Not Found"})
        spec = queue.pop(0) if len(queue) > 1 else queue[0]
        return httpx.Response(**spec)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method.upper() and r.url.path == path]


@pytest.fixture
def api_document():
    return copy.deepcopy(API_DOCUMENT)


@pytest.fixture
def documents(api_document):
    return {"users": api_document}


@pytest.fixture
def fake_api():
    return FakeAPI()


@pytest.fixture
def client(fake_api):
    client = httpx.Client(transport=httpx.MockTransport(fake_api.handler))
    yield client
    client.close()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def runner(client, sleeps):
    return WorkflowRunner(client=client, sleep=sleeps.append)


@pytest.fixture
def make_workflow():
    def factory(steps: list[dict[str, Any]], **kwargs: Any) -> Workflow:
        return Workflow.model_validate({"workflowId": "test-workflow", "steps": steps, **kwargs})

    return factory
