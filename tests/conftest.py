# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_oauth_client

import base64
import json
import socket
from collections.abc import Callable, Generator
from typing import Any
from unittest.mock import MagicMock, patch
from urllib.parse import parse_qsl

import httpx
import pytest

AUTHORITY = "https://login.microsoftonline.com/common/"
DISCOVERY_URL = "https://login.microsoftonline.com/common/v2.0/.well-known/openid-configuration"
TOKEN_URL = "https://login.microsoftonline.com/common/oauth2/v2.0/token"

DISCOVERY_DOCUMENT = {
    "authorization_endpoint": "https://login.microsoftonline.com/{tenant}/oauth2/v2.0/authorize",
    "token_endpoint": "https://login.microsoftonline.com/{tenant}/oauth2/v2.0/token",
    "issuer": "https://login.microsoftonline.com/{tenant}/v2.0",
    "end_session_endpoint": "https://login.microsoftonline.com/{tenant}/oauth2/v2.0/logout",
}

TENANT_ID = "72f988bf-86f1-41af-91ab-2d7cd011db47"


def b64url(data: dict[str, Any]) -> str:
    return base64.urlsafe_b64encode(json.dumps(data).encode("utf-8")).rstrip(b"=").decode("ascii")


def make_id_token(**claims: Any) -> str:
    """Unsigned JWT; the library only reads the payload."""
    return f"{b64url({'alg': 'none', 'typ': 'JWT'})}.{b64url(claims)}.sig"


def token_body(**overrides: Any) -> dict[str, Any]:
    body: dict[str, Any] = {"access_token": "at-123", "token_type": "Bearer", "expires_in": 3600}
    body.update(overrides)
    return body


Reply = httpx.Response | Exception | Callable[[httpx.Request], httpx.Response]


class FakeIdP:
    """
    In-process identity provider backed by httpx.MockTransport.
    Routes are matched on method plus URL without query; queued replies are consumed in order and
    the last one repeats.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], list[Reply]] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, url: str, *replies: Reply) -> None:
        self.routes[(method, url)] = list(replies)

    def add_discovery(self, url: str = DISCOVERY_URL, document: dict[str, Any] | None = None) -> None:
        self.add("GET", url, httpx.Response(200, json=DISCOVERY_DOCUMENT if document is None else document))

    def calls(self, method: str, url: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and self._key(r)[1] == url]

    @staticmethod
    def _key(request: httpx.Request) -> tuple[str, str]:
        return request.method, f"{request.url.scheme}://{request.url.host}{request.url.path}"

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        replies = self.routes.get(self._key(request))
        if not replies:
            return httpx.Response(404, text="no route")
        reply = replies.pop(0) if len(replies) > 1 else replies[0]
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(request)
        return reply

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


def form(request: httpx.Request) -> dict[str, str]:
    return dict(parse_qsl(request.content.decode("utf-8")))


@pytest.fixture
def idp() -> FakeIdP:
    return FakeIdP()


@pytest.fixture(autouse=True)
def mock_dns_resolution() -> Generator[MagicMock, None, None]:
    """
    Globally patches socket.getaddrinfo to return a safe public IP by default, so the pinned
    transport never performs real DNS lookups in tests.
    """
    safe_response = [(socket.AF_INET, socket.SOCK_STREAM, 6, "", ("8.8.8.8", 443))]

    with patch("socket.getaddrinfo", return_value=safe_response) as mock:
        yield mock
