"""Typed OneFS API calls.

Thin wrapper over :class:`onefs_papi.papi.PapiSession` that maps access
zone, user, group and S3 key calls onto Pydantic models.

Exports:
    OnefsConnection: Connection exposing the typed calls.
    types: Module containing Pydantic models for API responses.
    DEFAULT_PLATFORM_PATH: Platform API prefix used before version discovery.
    DEFAULT_ZONE: Access zone used when none is given.
"""

from . import types
from .connection import (
    CONFLICT_CODE,
    DEFAULT_PLATFORM_PATH,
    DEFAULT_ZONE,
    OnefsConnection,
    api_errors,
)

__all__ = [
    "CONFLICT_CODE",
    "DEFAULT_PLATFORM_PATH",
    "DEFAULT_ZONE",
    "OnefsConnection",
    "api_errors",
    "types",
]
