"""OneFS connection with typed wrapper calls.

Maps a handful of Platform API calls (access zones, local users, group
membership, S3 keys) onto Pydantic models. Every call goes through
:meth:`PapiSession.send`, so sessions, re-authentication and pagination
are handled by the session layer.
"""

import json
import threading
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

import structlog

from .. import papi
from ..papi.session import PathArg
from .types import OnefsAccessZone, OnefsError, OnefsID, OnefsS3Key, OnefsUser

if TYPE_CHECKING:
    from ..config import OnefsConfig

logger = structlog.get_logger(__name__)

LATEST_PATH = "platform/latest"
DEFAULT_PLATFORM_PATH = "platform/10"
DEFAULT_ZONE = "System"

# Error code returned when a persona is already a group member
CONFLICT_CODE = "AEC_CONFLICT"


def api_errors(exc: papi.APIError) -> list[OnefsError]:
    """Return the structured error entries of an APIError as models."""
    return [OnefsError.model_validate(error) for error in exc.errors]


def _zone_query(zone: str, **extra: str) -> dict[str, str]:
    return {**extra, "zone": zone or DEFAULT_ZONE}


class OnefsConnection:
    """Connection to a OneFS cluster exposing typed API calls.

    Owns one :class:`PapiSession` and serializes access to it with a
    lock, so a connection may be shared between threads. Can be used as
    a context manager; exiting disconnects.
    """

    def __init__(
        self,
        session: papi.PapiSession | None = None,
        platform_path: str = DEFAULT_PLATFORM_PATH,
    ):
        """Initialize the connection.

        Args:
            session: Session to use; a new disconnected one by default.
            platform_path: Versioned platform API prefix used until the
                cluster's latest version has been discovered.
        """
        self.papi = session or papi.PapiSession()
        self.platform_path = platform_path
        self._lock = threading.Lock()

    def __enter__(self):
        """Enter context manager."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit context manager and disconnect."""
        self.disconnect()

    def _send(
        self,
        method: str,
        path: PathArg,
        query: dict[str, str] | None = None,
        body: bytes | None = None,
    ) -> dict[str, Any] | None:
        with self._lock:
            return self.papi.send(method, path, query, body)

    def _path(self, *segments: str) -> list[str]:
        return [self.platform_path, *segments]

    def connect(self, cfg: "OnefsConfig") -> None:
        """Connect to the cluster described by ``cfg``.

        After logging in, the latest platform API version of the cluster
        is discovered and used for all further calls. If discovery fails
        the configured platform path is kept.

        Raises:
            ConnectError: If the session cannot be created.
        """
        with self._lock:
            try:
                self.papi.disconnect()
            except papi.PapiError as exc:
                logger.warning("Failed to close previous session", error=str(exc))
            self.papi.set_endpoint(cfg.endpoint)
            self.papi.set_user(cfg.user)
            self.papi.set_password(cfg.password)
            self.papi.set_ignore_cert(cfg.bypass_cert)
            self.papi.set_timeout(cfg.timeout)
            self.platform_path = cfg.platform_path
            try:
                self.papi.connect()
            except papi.ConnectError:
                logger.exception("Unable to connect to API endpoint", endpoint=cfg.endpoint)
                raise

        try:
            version = self.get_platform_latest()
        except papi.PapiError as exc:
            logger.warning(
                "Unable to get latest platform API version",
                error=str(exc),
                platform_path=self.platform_path,
            )
        else:
            self.platform_path = f"platform/{version}"
            logger.info("Using platform API", platform_path=self.platform_path)

    def disconnect(self) -> None:
        """End the session. Safe to call repeatedly or before connect."""
        with self._lock:
            self.papi.disconnect()

    def get_platform_latest(self) -> str:
        """Return the latest platform API version supported by the cluster.

        Raises:
            DecodeError: If the response carries no version string.
        """
        data = self._send("GET", LATEST_PATH) or {}
        latest = data.get("latest")
        if not isinstance(latest, str) or not latest:
            msg = f"No platform API version in response: {data}"
            raise papi.DecodeError(msg)
        return latest

    def get_access_zone_list(self) -> list[OnefsAccessZone]:
        """Fetch all access zones of the cluster."""
        data = self._send("GET", self._path("zones")) or {}
        return [OnefsAccessZone.model_validate(zone) for zone in data.get("zones", [])]

    def create_user(
        self,
        name: str,
        home_directory: str,
        primary_group: str,
        zone: str = DEFAULT_ZONE,
    ) -> dict[str, Any] | None:
        """Create an enabled local user.

        Args:
            name: User name.
            home_directory: Home directory path of the user.
            primary_group: Name of the user's primary group.
            zone: Access zone (default: System).

        Returns:
            The API response, normally ``{"id": "<sid>"}``.
        """
        user = OnefsUser(
            name=name,
            enabled=True,
            home_directory=home_directory,
            primary_group=OnefsID(id=f"GROUP:{primary_group}"),
        )
        return self._send(
            "POST",
            self._path("auth", "users"),
            _zone_query(zone, force="True"),
            user.model_dump_json(exclude_defaults=True).encode(),
        )

    def get_user_list(self, zone: str = DEFAULT_ZONE) -> list[OnefsUser]:
        """Fetch all users of an access zone."""
        data = self._send("GET", self._path("auth", "users"), _zone_query(zone)) or {}
        return [OnefsUser.model_validate(user) for user in data.get("users", [])]

    def get_user(self, name: str, zone: str = DEFAULT_ZONE) -> OnefsUser:
        """Fetch a single user, including its group memberships.

        Raises:
            PapiError: If the cluster returned no user.
        """
        data = (
            self._send(
                "GET",
                self._path("auth", "users", name),
                _zone_query(zone, query_member_of="True"),
            )
            or {}
        )
        users = data.get("users", [])
        if not users:
            msg = f"User list for {name!r} was empty, expected at least 1 user"
            raise papi.PapiError(msg)
        return OnefsUser.model_validate(users[0])

    def add_user_to_group(
        self,
        name: str,
        group: str,
        zone: str = DEFAULT_ZONE,
    ) -> dict[str, Any] | None:
        """Add a user to a supplementary group.

        A user that already is a member is not an error; the call then
        returns None.
        """
        member = OnefsID(name=name, type="user")
        try:
            return self._send(
                "POST",
                self._path("auth", "groups", group, "members"),
                _zone_query(zone),
                member.model_dump_json(exclude_defaults=True).encode(),
            )
        except papi.APIError as exc:
            if any(error.code == CONFLICT_CODE for error in api_errors(exc)):
                logger.info("User already a group member", user=name, group=group)
                return None
            logger.error("Request error", user=name, group=group, error=str(exc))
            raise

    def set_user_supplemental_groups(
        self,
        name: str,
        groups: Sequence[str],
        zone: str = DEFAULT_ZONE,
    ) -> None:
        """Add a user to each of ``groups``.

        Every group is attempted even if an earlier one fails.

        Raises:
            PapiError: If adding the user to any group failed.
        """
        failed = []
        for group in groups:
            try:
                self.add_user_to_group(name, group, zone)
            except papi.PapiError:
                logger.warning(
                    "Unable to add user to group",
                    user=name,
                    group=group,
                    zone=zone,
                )
                failed.append(group)
        if failed:
            msg = f"{len(failed)} error(s) encountered adding user {name} to groups: {failed}"
            raise papi.PapiError(msg)

    def delete_user(self, name: str, zone: str = DEFAULT_ZONE) -> dict[str, Any] | None:
        """Delete a user from an access zone."""
        try:
            return self._send(
                "DELETE",
                self._path("auth", "users", name),
                _zone_query(zone),
            )
        except papi.PapiError as exc:
            logger.error("Delete user failed", user=name, error=str(exc))
            raise

    def get_s3_token(
        self,
        name: str,
        zone: str = DEFAULT_ZONE,
        ttl: int = 0,
    ) -> OnefsS3Key:
        """Generate a new S3 access key for a user.

        A new key is always forced. The previous key stays valid for
        ``ttl`` minutes, or is invalidated immediately when ttl is 0.

        Args:
            name: User name.
            zone: Access zone (default: System).
            ttl: Minutes before the previous key expires.

        Raises:
            DecodeError: If the response carries no key.
        """
        body = None
        if ttl > 0:
            body = json.dumps({"existing_key_expiry_time": ttl}).encode()
        data = (
            self._send(
                "POST",
                self._path("protocols", "s3", "keys", name),
                _zone_query(zone, force="true"),
                body,
            )
            or {}
        )
        keys = data.get("keys")
        if keys is None:
            msg = f"No S3 key in response for user {name!r}"
            raise papi.DecodeError(msg)
        return OnefsS3Key.model_validate(keys)
