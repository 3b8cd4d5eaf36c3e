"""Response types for the OneFS Platform API wrapper calls.

Pydantic models for the handful of PAPI resources the wrapper maps. Only
the fields the wrapper uses are declared; unknown fields returned by the
cluster are ignored.
"""

from pydantic import BaseModel, Field


class OnefsError(BaseModel):
    """One entry of the ``errors`` array in a PAPI error response."""

    code: str = ""
    message: str = ""


class OnefsID(BaseModel):
    """Generic persona reference (user, group, wellknown)."""

    id: str = ""
    name: str = ""
    type: str = ""


class OnefsUser(BaseModel):
    """Local or directory user as returned by ``auth/users``."""

    name: str
    email: str | None = None
    enabled: bool = False
    expiry: int | None = None
    home_directory: str | None = None
    member_of: list[OnefsID] | None = None
    primary_group: OnefsID | None = None
    shell: str | None = None


class OnefsAccessZone(BaseModel):
    """Access zone as returned by ``zones``."""

    # Identification
    id: str = ""
    name: str = ""
    zone_id: int = 0
    system: bool = False

    # Namespace
    path: str = ""
    groupnet: str = ""
    netbios_name: str | None = None
    skeleton_directory: str | None = None
    home_directory_umask: int = 0

    # Authentication
    auth_providers: list[str] = Field(default_factory=list)
    system_provider: str = ""
    alternate_system_provider: str | None = None
    map_untrusted: str | None = None
    user_mapping_rules: list[str] = Field(default_factory=list)
    ifs_restricted: list[OnefsID] = Field(default_factory=list)

    # Cache expiry (seconds)
    cache_entry_expiry: int = 0
    negative_cache_entry_expiry: int = 0


class OnefsS3Key(BaseModel):
    """S3 access key pair returned when a key is (re)generated."""

    access_id: str = ""
    secret_key: str = ""
    secret_key_timestamp: int = 0
    old_key_expiry: int = 0
    old_key_timestamp: int = 0
