"""Shared fixtures: an in-memory OneFS cluster served through httpx.MockTransport."""

import json
from typing import Any

import httpx
import pytest

from onefs_papi import papi

ENDPOINT = "https://cluster.example.com:8080"


class FakeCluster:
    """Minimal PAPI endpoint.

    Logins hand out numbered tokens (sess-1/csrf-1, sess-2/csrf-2, ...).
    Other paths answer from per-route queues of (status, response kwargs);
    the last queued response of a route is repeated once the queue drains.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.logins = 0
        self.login_status = 200
        self.login_cookies: list[str] | None = None
        self.logout_error: Exception | None = None
        self._routes: dict[tuple[str, str], list[tuple[int, dict[str, Any]]]] = {}
        self.transport = httpx.MockTransport(self.handler)

    def add(self, method: str, path: str, status: int = 200, **kwargs: Any) -> None:
        """Queue a response for ``method path`` (kwargs go to httpx.Response)."""
        self._routes.setdefault((method, path), []).append((status, kwargs))

    def add_exception(self, method: str, path: str, exc: Exception) -> None:
        """Queue a transport failure for ``method path``."""
        self._routes.setdefault((method, path), []).append((0, {"exception": exc}))

    def add_json(self, method: str, path: str, payload: Any, status: int = 200) -> None:
        self.add(method, path, status, content=json.dumps(payload).encode())

    @property
    def api_requests(self) -> list[httpx.Request]:
        """Requests other than session create/delete."""
        return [
            r for r in self.requests if r.url.path.lstrip("/") != papi.SESSION_PATH
        ]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.lstrip("/")

        if path == papi.SESSION_PATH and request.method == "POST":
            return self._login(request)
        if path == papi.SESSION_PATH and request.method == "DELETE":
            if self.logout_error is not None:
                raise self.logout_error
            return httpx.Response(204)

        queue = self._routes.get((request.method, path))
        if not queue:
            return httpx.Response(
                404,
                json={"errors": [{"code": "AEC_NOT_FOUND", "message": "Path not found"}]},
            )
        status, kwargs = queue.pop(0) if len(queue) > 1 else queue[0]
        if "exception" in kwargs:
            raise kwargs["exception"]
        return httpx.Response(status, **kwargs)

    def _login(self, request: httpx.Request) -> httpx.Response:
        if self.login_status != 200:
            return httpx.Response(
                self.login_status,
                json={"message": "Username or password is incorrect."},
            )
        self.logins += 1
        cookies = self.login_cookies
        if cookies is None:
            cookies = [
                f"isisessid=sess-{self.logins}; path=/; HttpOnly; Secure",
                f"isicsrf=csrf-{self.logins}; path=/; Secure",
            ]
        return httpx.Response(
            201,
            headers=[("Set-Cookie", cookie) for cookie in cookies],
            json={"services": ["platform", "namespace"], "timeout_absolute": 14400},
        )


@pytest.fixture
def cluster() -> FakeCluster:
    """Fresh fake cluster."""
    return FakeCluster()


@pytest.fixture
def credentials() -> papi.TransportConfig:
    """Connection settings used by the session fixtures."""
    return papi.TransportConfig(
        endpoint=ENDPOINT,
        user="api_user",
        password="api_password",
        ignore_cert=True,
    )


@pytest.fixture
def session(cluster: FakeCluster, credentials: papi.TransportConfig) -> papi.PapiSession:
    """Disconnected session wired to the fake cluster."""
    s = papi.PapiSession(credentials.endpoint, transport=cluster.transport)
    s.set_user(credentials.user)
    s.set_password(credentials.password)
    s.set_ignore_cert(credentials.ignore_cert)
    return s


@pytest.fixture
def connected(session: papi.PapiSession) -> papi.PapiSession:
    """Session connected to the fake cluster."""
    session.connect()
    return session
