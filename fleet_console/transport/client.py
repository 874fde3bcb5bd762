"""
Remote API transport.

Every call the console makes goes through ``RemoteAPI``: the session's
cookies are attached from an injected ``CredentialProvider`` and any
failure to obtain a response is raised as ``RemoteUnavailable`` so call
sites can turn it into a ``TransportFailure``.
"""

import logging
from typing import Any, Mapping, Optional, Protocol
from urllib.parse import quote

import httpx

from fleet_console.config import ConsoleConfig
from fleet_console.errors import RemoteUnavailable

logger = logging.getLogger(__name__)


class CredentialProvider(Protocol):
    """Supplies the session cookie jar for the current request."""

    def cookies(self) -> Mapping[str, str]:
        ...


def build_http_client(
    config: ConsoleConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Create the shared client with an explicit timeout budget."""
    return httpx.AsyncClient(
        base_url=config.api_base_url,
        timeout=config.request_timeout_seconds,
        headers={"Accept": "application/json"},
        transport=transport,
    )


def path_segment(value: Any) -> str:
    return quote(str(value), safe="")


def json_body(response: httpx.Response) -> Any:
    """Parsed JSON body, or None when the body is empty or not JSON."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return None


def error_message(response: httpx.Response, default: str) -> str:
    """Server-supplied error text if present, else ``default``."""
    body = json_body(response)
    if isinstance(body, dict):
        for key in ("error", "message", "msg"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return default


class RemoteAPI:
    """
    Thin per-session wrapper around a shared ``httpx.AsyncClient``.

    The client is shared across sessions; credentials are not. They are
    sent as an explicit Cookie header on each request.
    """

    def __init__(self, client: httpx.AsyncClient, credentials: CredentialProvider):
        self._client = client
        self.credentials = credentials

    def _headers(self) -> dict:
        jar = self.credentials.cookies()
        if not jar:
            return {}
        return {"Cookie": "; ".join(f"{name}={value}" for name, value in jar.items())}

    async def request(
        self, method: str, path: str, json: Optional[Any] = None
    ) -> httpx.Response:
        try:
            response = await self._client.request(
                method, path, json=json, headers=self._headers()
            )
        except httpx.TransportError as e:
            logger.warning("%s %s failed without a response: %s", method, path, e)
            raise RemoteUnavailable(f"{method} {path}: {e}") from e
        logger.debug("%s %s -> %s", method, path, response.status_code)
        return response

    async def get(self, path: str) -> httpx.Response:
        return await self.request("GET", path)

    async def post(self, path: str, json: Optional[Any] = None) -> httpx.Response:
        return await self.request("POST", path, json=json)

    async def put(self, path: str, json: Optional[Any] = None) -> httpx.Response:
        return await self.request("PUT", path, json=json)

    async def delete(self, path: str) -> httpx.Response:
        return await self.request("DELETE", path)
