"""
Shared fixtures and fakes for the Drive Archiver test suite.
"""

import asyncio
import json
from pathlib import Path
from typing import Callable, Dict, List, Optional
from urllib.parse import parse_qs, urlencode, urlsplit

import httpx
import pytest


@pytest.fixture
def credentials_file(tmp_path: Path) -> Path:
    path = tmp_path / "credentials.json"
    path.write_text(json.dumps({
        "installed": {"client_id": "client-123", "client_secret": "shh-secret"},
    }))
    return path


class TokenEndpoint:
    """Fake Google token endpoint recording every form it receives."""

    def __init__(self, responses: Optional[List[httpx.Response]] = None):
        self.responses = list(responses or [])
        self.requests: List[Dict[str, str]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
        self.requests.append(form)
        if not self.responses:
            raise AssertionError(f"Unexpected token request: {form.get('grant_type')}")
        return self.responses.pop(0)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


async def send_redirect(redirect_uri: str, query: str) -> bytes:
    """Play the browser: hit the loopback listener with a redirect."""
    target = urlsplit(redirect_uri)
    reader, writer = await asyncio.open_connection(target.hostname, target.port)
    writer.write(
        f"GET /?{query} HTTP/1.1\r\nHost: {target.netloc}\r\n\r\n".encode()
    )
    await writer.drain()
    response = await reader.read()
    writer.close()
    return response


class RedirectingBrowser:
    """Browser opener that follows the consent URL straight back to the listener."""

    def __init__(
        self,
        code: Optional[str] = "auth-code",
        state: Optional[Callable[[str], Optional[str]]] = None,
    ):
        self.code = code
        self.state = state or (lambda generated: generated)
        self.opened: List[str] = []
        self.tasks: List[asyncio.Task] = []

    def __call__(self, url: str) -> bool:
        self.opened.append(url)
        query = {k: v[0] for k, v in parse_qs(urlsplit(url).query).items()}
        params = {}
        if self.code is not None:
            params["code"] = self.code
        state = self.state(query["state"])
        if state is not None:
            params["state"] = state
        self.tasks.append(asyncio.get_running_loop().create_task(
            send_redirect(query["redirect_uri"], urlencode(params))
        ))
        return True

    async def responses(self) -> List[bytes]:
        return await asyncio.gather(*self.tasks)

    @property
    def redirect_uri(self) -> str:
        query = parse_qs(urlsplit(self.opened[-1]).query)
        return query["redirect_uri"][0]


@pytest.fixture
def token_endpoint() -> Callable[..., TokenEndpoint]:
    return TokenEndpoint


@pytest.fixture
def browser() -> Callable[..., RedirectingBrowser]:
    return RedirectingBrowser
