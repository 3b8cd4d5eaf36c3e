"""Exception hierarchy for the PAPI session layer."""

from typing import Any


class PapiError(Exception):
    """Base class for every error raised by this library."""


class ConfigError(PapiError):
    """Raised for a malformed endpoint or an unencodable query or body."""


class TransportError(PapiError):
    """Raised when a request cannot be built or sent."""


class AuthError(PapiError):
    """Raised when the cluster does not grant or keep a session."""


class ConnectError(AuthError):
    """Raised when creating a session fails.

    Carries the HTTP status code and raw body when the cluster answered
    with a non-2xx status.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: bytes = b"",
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class APIError(PapiError):
    """Raised for a non-2xx response or an error envelope in the payload.

    Attributes:
        status_code: HTTP status of the failing response (None when the
            failure came from the payload of a 2xx response).
        body: Raw response body.
        errors: Structured ``{"code", "message"}`` entries parsed from the
            response, empty when the body carried none.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: bytes = b"",
        errors: list[dict[str, Any]] | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.errors = errors or []


class ReauthenticationError(AuthError, APIError):
    """Raised when a 401 persists after the allowed re-authentications."""


class DecodeError(PapiError):
    """Raised when a response body is not a JSON object."""
