"""Connection settings held by a PAPI session."""

import pydantic

DEFAULT_TIMEOUT = 120.0


class TransportConfig(pydantic.BaseModel):
    """Endpoint, credentials and HTTP client settings for one session.

    Assignments are validated so a session never holds a non-positive
    timeout or a non-boolean certificate flag.
    """

    model_config = pydantic.ConfigDict(validate_assignment=True)

    endpoint: str = pydantic.Field(
        "",
        description="Cluster URL including scheme and port, e.g. https://cluster:8080",
    )
    user: str = pydantic.Field("", description="API user name")
    password: str = pydantic.Field("", description="API user password")
    ignore_cert: bool = pydantic.Field(
        False,  # noqa: FBT003
        description="Skip TLS certificate verification",
    )
    timeout: float = pydantic.Field(
        DEFAULT_TIMEOUT,
        description="Connect/read timeout in seconds",
        gt=0,
    )
