"""OneFS Platform API (PAPI) session package.

Provides a stateful session that handles login, logout and automatic
re-authentication, and combines paged JSON responses into a single
result. Typed calls for specific cluster resources live in
:mod:`onefs_papi.onefs`.

Exports:
    PapiSession: Session with connect/disconnect, send_raw and send.
    new_session: Factory returning a disconnected session.
    TransportConfig: Endpoint, credential and timeout settings.
    SessionMetrics: Optional Prometheus counters for a session.
    errors: Exception hierarchy rooted at PapiError.
"""

from . import errors
from .config import DEFAULT_TIMEOUT, TransportConfig
from .errors import (
    APIError,
    AuthError,
    ConfigError,
    ConnectError,
    DecodeError,
    PapiError,
    ReauthenticationError,
    TransportError,
)
from .metrics import SessionMetrics
from .pagination import MAX_PAGES, merge_page
from .session import (
    DEFAULT_MAX_REAUTH,
    SESSION_PATH,
    PapiSession,
    extract_cookie_token,
    new_session,
)
from .transport import build_http_client

__all__ = [
    "DEFAULT_MAX_REAUTH",
    "DEFAULT_TIMEOUT",
    "MAX_PAGES",
    "SESSION_PATH",
    "APIError",
    "AuthError",
    "ConfigError",
    "ConnectError",
    "DecodeError",
    "PapiError",
    "PapiSession",
    "ReauthenticationError",
    "SessionMetrics",
    "TransportConfig",
    "TransportError",
    "build_http_client",
    "errors",
    "extract_cookie_token",
    "merge_page",
    "new_session",
]
