from __future__ import annotations

import asyncio
import json
import sys
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest
from jose import jwt

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from profile_core.client import ApiClient  # noqa: E402
from profile_core.config import Settings  # noqa: E402

GRAPHQL_URL = "https://example.test/api/graphql-engine/v1/graphql"
AUTH_URL = "https://example.test/api/auth/signin"


def mint_token(sub: Any = 42, *, exp: Optional[float] = None, **claims: Any) -> str:
    payload: Dict[str, Any] = dict(claims)
    if sub is not None:
        payload["sub"] = sub
    payload["exp"] = exp if exp is not None else time.time() + 3600
    return jwt.encode(payload, "test-secret", algorithm="HS256")


@pytest.fixture
def token() -> str:
    return mint_token("42", login="alice")


@pytest.fixture
def test_settings() -> Settings:
    return Settings(GRAPHQL_ENDPOINT=GRAPHQL_URL, AUTH_ENDPOINT=AUTH_URL)


USER_ROW = {"id": 42, "login": "alice", "firstName": "Alice", "lastName": "Doe", "email": "alice@example.test"}

TRANSACTIONS = [
    {"id": 1, "type": "xp", "amount": 1000, "createdAt": "2024-01-01T10:00:00Z", "path": "/school/div-01/go-reloaded"},
    {"id": 2, "type": "xp", "amount": 2000, "createdAt": "2024-02-01T10:00:00Z", "path": "/school/div-01/ascii-art"},
]

AUDITS = [
    {"id": 10, "type": "up", "amount": 300, "createdAt": "2024-01-05T10:00:00Z", "path": "/school/div-01/go-reloaded"},
    {"id": 11, "type": "down", "amount": 200, "createdAt": "2024-01-06T10:00:00Z", "path": "/school/div-01/ascii-art"},
]

PROGRESS = [
    {"id": 100, "grade": 1, "createdAt": "2024-01-02T10:00:00Z", "path": "/school/piscine-go/quest-01", "object": {"name": "quest-01", "type": "exercise"}},
    {"id": 101, "grade": 0, "createdAt": "2024-01-03T10:00:00Z", "path": "/school/piscine-js/quest-02", "object": {"name": "quest-02", "type": "exercise"}},
    {"id": 102, "grade": 1, "createdAt": "2024-01-04T10:00:00Z", "path": "/school/div-01/ascii-art", "object": {"name": "ascii-art", "type": "project"}},
]

SKILLS = [
    {"id": 200, "type": "skill_go", "amount": 55, "createdAt": "2024-01-05T10:00:00Z", "object": {"name": "go", "type": "skill"}},
    {"id": 201, "type": "skill_algo", "amount": 30, "createdAt": "2024-01-05T10:00:00Z", "object": {"name": "algo", "type": "skill"}},
]

DEFAULT_ROWS: Dict[str, Any] = {
    "UserInfo": {"user": [USER_ROW]},
    "Transactions": {"transaction": TRANSACTIONS},
    "Audits": {"transaction": AUDITS},
    "Progress": {"progress": PROGRESS},
    "Results": {"result": []},
    "Projects": {"progress": [p for p in PROGRESS if p["object"]["type"] == "project"]},
    "Skills": {"transaction": SKILLS},
}


class FakeGraphQL:
    """In-process query boundary: answers by operation name, records every request it sees."""

    def __init__(self, rows: Optional[Dict[str, Any]] = None) -> None:
        self.rows: Dict[str, Any] = dict(DEFAULT_ROWS if rows is None else rows)
        self.overrides: Dict[str, Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: list = []
        self.signin_response: httpx.Response = httpx.Response(200, json=mint_token("42"))
        self.http_clients: List[httpx.AsyncClient] = []

    def fail(self, operation: str, response: httpx.Response) -> None:
        self.overrides[operation] = lambda request: response

    def handler(self, request: httpx.Request) -> httpx.Response:
        if str(request.url) == AUTH_URL:
            self.requests.append(("signin", request))
            return self.signin_response
        body = json.loads(request.content.decode("utf-8"))
        operation = body.get("operationName")
        self.requests.append((operation, request))
        if operation in self.overrides:
            return self.overrides[operation](request)
        return httpx.Response(200, json={"data": self.rows.get(operation, {})})

    def client(self, settings: Settings, handler: Optional[Callable[..., Any]] = None) -> ApiClient:
        # ApiClient leaves injected transports open; aclose() below owns them
        http = httpx.AsyncClient(transport=httpx.MockTransport(handler or self.handler))
        self.http_clients.append(http)
        return ApiClient(settings, http=http)

    async def aclose(self) -> None:
        for http in self.http_clients:
            if not http.is_closed:
                await http.aclose()


@pytest.fixture
def make_graphql():
    fakes: List[FakeGraphQL] = []

    def make(rows: Optional[Dict[str, Any]] = None) -> FakeGraphQL:
        fake = FakeGraphQL(rows)
        fakes.append(fake)
        return fake

    yield make
    for fake in fakes:
        asyncio.run(fake.aclose())


@pytest.fixture
def graphql(make_graphql) -> FakeGraphQL:
    return make_graphql()
