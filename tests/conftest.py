"""Shared fixtures: a scriptable stand-in for the remote API."""

from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import httpx
import pytest

from fleet_console.config import ConsoleConfig
from fleet_console.session.context import BrowserSession
from fleet_console.session.guard import SessionGuard
from fleet_console.transport.client import RemoteAPI

REMOTE_URL = "http://remote.test"
CONSOLE_HOST = "console.example.com"

Handler = Callable[[httpx.Request], Any]


class FakeRemote:
    """Routes (method, path) to canned responses and records every request."""

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Union[Tuple[int, Any], Handler]] = {}
        self.calls: List[httpx.Request] = []

    def route(
        self,
        method: str,
        path: str,
        status: int = 200,
        json: Any = None,
        handler: Optional[Handler] = None,
    ) -> None:
        self.routes[(method, path)] = handler if handler is not None else (status, json)

    def user(self, email: str = "ops@example.com", groups=None, status: int = 200) -> None:
        if status == 200:
            self.route("GET", "/api/user", json={"email": email, "groups": groups or []})
        else:
            self.route("GET", "/api/user", status=status, json={"error": "unauthorized"})

    def calls_to(self, method: str, path: str) -> List[httpx.Request]:
        return [c for c in self.calls if c.method == method and c.url.path == path]

    def handle(self, request: httpx.Request):
        self.calls.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"error": "not found"})
        if callable(route):
            return route(request)
        status, body = route
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def config() -> ConsoleConfig:
    return ConsoleConfig(api_base_url=REMOTE_URL, request_timeout_seconds=5)


@pytest.fixture
async def make_session(remote, config):
    """Factory: (browser, guard) for a session holding the given cookies."""
    clients: List[httpx.AsyncClient] = []

    def _make(cookies=None, cfg: Optional[ConsoleConfig] = None):
        browser = BrowserSession(cookies=cookies, hostname=CONSOLE_HOST)
        client = httpx.AsyncClient(base_url=REMOTE_URL, transport=remote.transport)
        clients.append(client)
        api = RemoteAPI(client, browser)
        guard = SessionGuard(api, browser, cfg or config)
        return browser, guard

    yield _make

    for client in clients:
        await client.aclose()
