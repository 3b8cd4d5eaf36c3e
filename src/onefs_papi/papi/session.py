"""PAPI session management.

Owns the authentication lifecycle of a OneFS Platform API session
(connect, disconnect, reconnect), the extraction of the session and CSRF
tokens from the login response, header assembly and raw request dispatch.
Paged JSON responses are combined by :mod:`.pagination` via :meth:`send`.
"""

import json
import re
import time
from collections.abc import Mapping, Sequence
from typing import Any, TypeAlias

import httpx
import pydantic
import structlog

from . import pagination
from .config import TransportConfig
from .errors import ConfigError, ConnectError, PapiError, TransportError
from .metrics import SessionMetrics
from .transport import build_http_client

logger = structlog.get_logger(__name__)

SESSION_PATH = "session/1/session"
SESSION_SERVICES = ["platform", "namespace"]
SESSION_COOKIE = "isisessid"
CSRF_COOKIE = "isicsrf"
CSRF_HEADER = "X-CSRF-Token"

DEFAULT_MAX_REAUTH = 1

PathArg: TypeAlias = str | Sequence[str]
Query: TypeAlias = Mapping[str, Any]
Body: TypeAlias = bytes | None
Headers: TypeAlias = Mapping[str, str]


def extract_cookie_token(set_cookie: str, name: str) -> str | None:
    """Return the value of cookie ``name`` in one ``Set-Cookie`` header value.

    Args:
        set_cookie: A single Set-Cookie header value,
            e.g. ``"isisessid=abc123; path=/; HttpOnly"``.
        name: Cookie name to look for.

    Returns:
        The cookie value, or None if the header does not carry the cookie.
    """
    match = re.search(rf"{re.escape(name)}=([^;]+)", set_cookie)
    if match is None:
        return None
    return match.group(1)


def extract_session_tokens(set_cookies: Sequence[str]) -> tuple[str, str]:
    """Scan Set-Cookie header values for the session and CSRF tokens.

    Each header value is checked for both cookies; the first match for
    each cookie wins. Missing tokens are returned as empty strings.
    """
    session_token = ""
    csrf_token = ""
    for value in set_cookies:
        if not session_token:
            session_token = extract_cookie_token(value, SESSION_COOKIE) or ""
        if not csrf_token:
            csrf_token = extract_cookie_token(value, CSRF_COOKIE) or ""
    return session_token, csrf_token


class PapiSession:
    """Stateful session against a OneFS Platform API endpoint.

    A session is Disconnected (no tokens) or Connected (both tokens set).
    :meth:`connect` always yields a fresh session, :meth:`disconnect` always
    tears down local state. Sessions are not safe for unsynchronized use
    from several threads; serialize access or give each thread its own.

    Can be used as a context manager; exiting disconnects.
    """

    def __init__(
        self,
        endpoint: str = "",
        *,
        max_reauth: int = DEFAULT_MAX_REAUTH,
        transport: httpx.BaseTransport | None = None,
        metrics: SessionMetrics | None = None,
    ):
        """Create a disconnected session.

        Args:
            endpoint: Cluster URL including scheme and port
                (e.g. "https://cluster.example.com:8080"). May be set later.
            max_reauth: Re-authentications allowed per :meth:`send` call
                when the cluster answers 401 (default: 1).
            transport: Optional httpx transport override, used for testing.
            metrics: Optional Prometheus counters to update.
        """
        self._config = TransportConfig(endpoint=endpoint)
        self._transport = transport
        self._client: httpx.Client | None = None
        self._session_token = ""
        self._csrf_token = ""
        self.max_reauth = max_reauth
        self.reauth_count = 0
        self.metrics = metrics

    def __enter__(self):
        """Enter context manager."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit context manager and end the session."""
        self.disconnect()

    # Configuration

    @property
    def config(self) -> TransportConfig:
        """Copy of the current connection settings."""
        return self._config.model_copy()

    @property
    def endpoint(self) -> str:
        return self._config.endpoint

    @property
    def user(self) -> str:
        return self._config.user

    @property
    def ignore_cert(self) -> bool:
        return self._config.ignore_cert

    @property
    def timeout(self) -> float:
        return self._config.timeout

    def _replace(self, field: str, value: Any) -> Any:
        old = getattr(self._config, field)
        try:
            setattr(self._config, field, value)
        except pydantic.ValidationError as exc:
            msg = f"Invalid value for {field}: {value!r}"
            raise ConfigError(msg) from exc
        return old

    def set_endpoint(self, endpoint: str) -> str:
        """Set the cluster URL and return the previous one.

        The URL must include scheme and port, e.g. https://cluster:8080.
        A connected session keeps talking to the old endpoint until the
        next :meth:`connect`.
        """
        return self._replace("endpoint", endpoint)

    def set_user(self, user: str) -> str:
        """Set the API user name and return the previous one."""
        return self._replace("user", user)

    def set_password(self, password: str) -> str:
        """Set the API password and return the previous one."""
        return self._replace("password", password)

    def set_ignore_cert(self, ignore_cert: bool) -> bool:  # noqa: FBT001
        """Enable or disable TLS verification skipping; return the previous flag."""
        return self._replace("ignore_cert", ignore_cert)

    def set_timeout(self, timeout: float) -> float:
        """Set the HTTP timeout in seconds and return the previous one.

        Takes effect when the next HTTP client is built, i.e. on the next
        :meth:`connect` after a disconnect.
        """
        return self._replace("timeout", timeout)

    # Session state

    @property
    def session_token(self) -> str:
        return self._session_token

    @property
    def csrf_token(self) -> str:
        return self._csrf_token

    @property
    def client(self) -> httpx.Client | None:
        """The HTTP client, present while connected or connecting."""
        return self._client

    @property
    def is_connected(self) -> bool:
        return bool(self._session_token and self._csrf_token)

    def _release(self) -> None:
        if self._client is not None:
            self._client.close()
        self._client = None
        self._session_token = ""
        self._csrf_token = ""

    def connect(self) -> None:
        """Create a new PAPI session.

        Any existing session is closed first, so calling connect again
        switches to a fresh session (and to a changed endpoint).

        Raises:
            ConnectError: If the login request cannot be sent, the cluster
                rejects it, or either token is missing from the response.
        """
        try:
            self.disconnect()
        except PapiError as exc:
            logger.warning("Failed to close previous session", error=str(exc))

        if self._client is None:
            self._client = build_http_client(self._config, self._transport)

        payload = {
            "username": self._config.user,
            "password": self._config.password,
            "services": SESSION_SERVICES,
        }
        try:
            url = self.build_url(SESSION_PATH)
            response = self._client.post(
                url,
                content=json.dumps(payload).encode(),
                headers={
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                },
            )
        except (ConfigError, httpx.InvalidURL) as exc:
            self._release()
            msg = f"Failed to create session request: {exc}"
            raise ConnectError(msg) from exc
        except httpx.HTTPError as exc:
            self._release()
            logger.exception("Session request failed", endpoint=self._config.endpoint)
            msg = f"Session request error: {exc}"
            raise ConnectError(msg) from exc

        if self.metrics is not None:
            self.metrics.observe_request("POST", response.status_code)

        if not response.is_success:
            self._release()
            msg = (
                f"Unable to create a session ({response.status_code}): "
                f"{response.content.decode(errors='replace')}"
            )
            raise ConnectError(msg, response.status_code, response.content)

        session_token, csrf_token = extract_session_tokens(
            response.headers.get_list("set-cookie"),
        )
        if not session_token:
            self._release()
            msg = "No session token found in API connect call"
            raise ConnectError(msg, response.status_code, response.content)
        if not csrf_token:
            self._release()
            msg = "No CSRF token found in API connect call"
            raise ConnectError(msg, response.status_code, response.content)

        # Tokens are sent explicitly by build_headers
        self._client.cookies.clear()
        self._session_token = session_token
        self._csrf_token = csrf_token
        self.reauth_count = 0
        logger.info(
            "Connected to PAPI",
            endpoint=self._config.endpoint,
            user=self._config.user,
        )

    def disconnect(self) -> None:
        """End the PAPI session.

        Does nothing if no HTTP client is held. Otherwise the session is
        deleted on the cluster, and the client and tokens are released
        whether or not the delete succeeded.

        Raises:
            TransportError: If the delete request could not be sent. Local
                state has already been torn down.
        """
        if self._client is None:
            return
        try:
            response = self._client.delete(
                self.build_url(SESSION_PATH),
                headers=self.build_headers(),
            )
            if self.metrics is not None:
                self.metrics.observe_request("DELETE", response.status_code)
            logger.debug("Session deleted", status_code=response.status_code)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            msg = f"Session delete error: {exc}"
            raise TransportError(msg) from exc
        finally:
            self._release()

    def reconnect(self) -> None:
        """Disconnect, ignoring any error, then connect."""
        try:
            self.disconnect()
        except PapiError as exc:
            logger.debug("Ignoring disconnect error during reconnect", error=str(exc))
        self.connect()

    # Requests

    def build_url(self, path: PathArg, query: Query | None = None) -> httpx.URL:
        """Join the endpoint with an API path and encode the query.

        Args:
            path: A path string ("platform/latest") or a sequence of
                segments (["platform", "10", "zones"]) joined with "/".
            query: Optional query parameters.

        Raises:
            ConfigError: If the endpoint lacks a scheme or host, or the path
                or query cannot be encoded.
        """
        endpoint = self._config.endpoint
        try:
            base = httpx.URL(endpoint)
        except httpx.InvalidURL as exc:
            msg = f"Invalid endpoint: {endpoint!r}"
            raise ConfigError(msg) from exc
        if not base.scheme or not base.host:
            msg = f"Endpoint must include scheme and host: {endpoint!r}"
            raise ConfigError(msg)

        if isinstance(path, str):
            joined = path
        elif all(isinstance(segment, str) for segment in path):
            joined = "/".join(path)
        else:
            msg = f"Path segments must be strings: {path!r}"
            raise ConfigError(msg)

        try:
            url = base.copy_with(path=base.path.rstrip("/") + "/" + joined.lstrip("/"))
            if query:
                url = url.copy_with(params=dict(query))
        except (httpx.InvalidURL, TypeError) as exc:
            msg = f"Unable to build URL for path {joined!r}: {exc}"
            raise ConfigError(msg) from exc
        return url

    def build_headers(self, headers: Headers | None = None) -> dict[str, str]:
        """Merge caller headers with the session defaults.

        Caller headers are kept verbatim, including the case of their
        names. Defaults are only added for names not already present.
        """
        assembled = dict(headers or {})
        defaults = {
            "Accept": "application/json",
            "Cookie": f"{SESSION_COOKIE}={self._session_token}",
            "Content-Type": "application/json",
            "Referer": self._config.endpoint,
            CSRF_HEADER: self._csrf_token,
        }
        for name, value in defaults.items():
            assembled.setdefault(name, value)
        return assembled

    def send_raw(
        self,
        method: str,
        path: PathArg,
        query: Query | None = None,
        body: Body = None,
        headers: Headers | None = None,
    ) -> httpx.Response:
        """Send one request and return the unprocessed response.

        The caller is responsible for checking the status code and
        decoding the body.

        Raises:
            TransportError: If no HTTP client is held or the request fails.
            ConfigError: If the URL or body cannot be encoded.
        """
        if self._client is None:
            msg = "No HTTP client configured; connect first"
            raise TransportError(msg)
        if body is not None and not isinstance(body, bytes):
            msg = f"Request body must be bytes, got {type(body).__name__}"
            raise ConfigError(msg)

        url = self.build_url(path, query)
        start_time = time.time()
        logger.debug(
            "Making API request",
            method=method,
            path=url.path,
            params=dict(query or {}),
        )
        try:
            response = self._client.request(
                method,
                url,
                content=body,
                headers=self.build_headers(headers),
            )
        except httpx.InvalidURL as exc:
            msg = f"Invalid request URL: {exc}"
            raise ConfigError(msg) from exc
        except httpx.HTTPError as exc:
            logger.exception(
                "API request failed",
                method=method,
                path=url.path,
                duration_seconds=round(time.time() - start_time, 3),
            )
            msg = f"Request error: {exc}"
            raise TransportError(msg) from exc

        logger.debug(
            "API request completed",
            status_code=response.status_code,
            duration_seconds=round(time.time() - start_time, 3),
        )
        if self.metrics is not None:
            self.metrics.observe_request(method, response.status_code)
        return response

    def send(
        self,
        method: str,
        path: PathArg,
        query: Query | None = None,
        body: Body = None,
        headers: Headers | None = None,
    ) -> dict[str, Any] | None:
        """Send a request and return the merged JSON object of all pages.

        See :func:`.pagination.send` for continuation, merge and
        re-authentication rules.
        """
        return pagination.send(self, method, path, query, body, headers)


def new_session(endpoint: str = "") -> PapiSession:
    """Return a new disconnected session for ``endpoint``."""
    return PapiSession(endpoint)
