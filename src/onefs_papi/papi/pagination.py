"""Transparent pagination for PAPI responses.

A PAPI response object may carry a ``resume`` token meaning more results
exist. :func:`send` follows the chain of tokens, strips the envelope
fields (``errors``, ``resume``, ``total``) from every page and merges the
pages into one object, concatenating list-valued fields in page order.

A 401 response triggers a bounded number of re-authentications, each
followed by a restart of the whole call with its original arguments.
"""

import json
from typing import TYPE_CHECKING, Any

import structlog

from .errors import APIError, DecodeError, ReauthenticationError

if TYPE_CHECKING:
    from .session import Body, Headers, PapiSession, PathArg, Query

logger = structlog.get_logger(__name__)

# Safety bound against malformed or endless continuation chains
MAX_PAGES = 10000

RESUME_KEY = "resume"
ERRORS_KEY = "errors"
TOTAL_KEY = "total"
ENVELOPE_KEYS = (ERRORS_KEY, RESUME_KEY, TOTAL_KEY)

UNAUTHORIZED = 401


def merge_page(accumulated: dict[str, Any], page: dict[str, Any]) -> dict[str, Any]:
    """Merge one decoded page into the accumulated result in place.

    When both the accumulated value and the page value of a key are lists
    the page's elements are appended. Otherwise the page value replaces
    (or sets) the accumulated value.

    Args:
        accumulated: Result built from earlier pages; modified in place.
        page: Decoded page with envelope fields already removed.

    Returns:
        The accumulated dictionary, for convenience.
    """
    for key, value in page.items():
        current = accumulated.get(key)
        if isinstance(current, list) and isinstance(value, list):
            current.extend(value)
        elif isinstance(value, list):
            accumulated[key] = list(value)
        else:
            accumulated[key] = value
    return accumulated


def decode_page(raw_body: bytes) -> dict[str, Any]:
    """Decode a response body that must hold a JSON object.

    Raises:
        DecodeError: If the body is not valid JSON or not an object.
    """
    try:
        data = json.loads(raw_body)
    except ValueError as exc:
        msg = f"Error decoding JSON response: {exc}"
        raise DecodeError(msg) from exc
    if not isinstance(data, dict):
        msg = f"Expected a JSON object, got {type(data).__name__}"
        raise DecodeError(msg)
    return data


def parse_errors(raw_body: bytes) -> list[dict[str, Any]]:
    """Return the structured ``errors`` entries of a body, if any."""
    try:
        data = json.loads(raw_body)
    except ValueError:
        return []
    if not isinstance(data, dict) or not isinstance(data.get(ERRORS_KEY), list):
        return []
    return [error for error in data[ERRORS_KEY] if isinstance(error, dict)]


def _resume_token(page: dict[str, Any]) -> str | None:
    token = page.get(RESUME_KEY)
    if token is None or token == "":
        return None
    if not isinstance(token, str):
        msg = f"Resume token must be a string, got {type(token).__name__}"
        raise DecodeError(msg)
    return token


def _collect_pages(
    session: "PapiSession",
    method: str,
    path: "PathArg",
    query: "Query | None",
    body: "Body",
    headers: "Headers | None",
) -> dict[str, Any] | None:
    merged: dict[str, Any] = {}
    resume: str | None = None

    for page_number in range(1, MAX_PAGES + 1):
        # Continuation requests carry only the resume token
        page_query = {RESUME_KEY: resume} if resume is not None else query
        response = session.send_raw(method, path, page_query, body, headers)
        raw_body = response.content

        if not response.is_success:
            msg = (
                f"Non 2xx response received ({response.status_code}): "
                f"{raw_body.decode(errors='replace')}"
            )
            raise APIError(msg, response.status_code, raw_body, parse_errors(raw_body))

        # Bodiless responses (e.g. DELETE) end the call without data
        if not raw_body:
            return None

        page = decode_page(raw_body)
        if session.metrics is not None:
            session.metrics.observe_page()
        resume = _resume_token(page)

        if ERRORS_KEY in merged:
            errors = merged[ERRORS_KEY]
            msg = f"Response returned errors in JSON: {errors}"
            raise APIError(
                msg,
                None,
                raw_body,
                errors if isinstance(errors, list) else [],
            )

        page_errors = page.get(ERRORS_KEY)
        for key in ENVELOPE_KEYS:
            page.pop(key, None)
        if page_errors:
            logger.warning(
                "Discarding errors field of successful response",
                page=page_number,
                errors=page_errors,
            )

        merge_page(merged, page)
        if resume is None:
            return merged

    logger.warning(
        "Page limit reached, returning partial result",
        max_pages=MAX_PAGES,
        method=method,
    )
    return merged


def send(
    session: "PapiSession",
    method: str,
    path: "PathArg",
    query: "Query | None" = None,
    body: "Body" = None,
    headers: "Headers | None" = None,
) -> dict[str, Any] | None:
    """Send a request and return the merged JSON object of all its pages.

    Args:
        session: Connected session used to send each page request.
        method: HTTP method.
        path: API path string or sequence of path segments.
        query: Query parameters of the first request. Continuation
            requests replace them entirely with ``{"resume": <token>}``.
        body: Optional raw request body.
        headers: Optional headers overriding the session defaults.

    Returns:
        The merged object, or None if a response had an empty body.

    Raises:
        APIError: On a non-2xx response other than a recoverable 401.
        ReauthenticationError: If a 401 persists after ``session.max_reauth``
            re-authentications.
        ConnectError: If re-authenticating fails.
        DecodeError: If a response body is not a JSON object.
        TransportError: If a request cannot be sent.
    """
    last_error: APIError | None = None
    for attempt in range(max(session.max_reauth, 0) + 1):
        if attempt:
            session.reauth_count += 1
            if session.metrics is not None:
                session.metrics.observe_reauthentication()
            logger.info("Session rejected, re-authenticating", attempt=attempt)
            session.reconnect()
        try:
            return _collect_pages(session, method, path, query, body, headers)
        except APIError as exc:
            if exc.status_code != UNAUTHORIZED:
                raise
            last_error = exc

    logger.error(
        "Automatic re-authentication failed",
        method=method,
        attempts=session.max_reauth,
    )
    msg = f"Request still unauthorized after {session.max_reauth} re-authentication(s)"
    raise ReauthenticationError(
        msg,
        last_error.status_code,
        last_error.body,
        last_error.errors,
    ) from last_error
