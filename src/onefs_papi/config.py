"""Configuration and logging setup for OneFS connections."""

import json
import logging
import os
import pathlib

import pydantic
import structlog

from . import papi
from .onefs import DEFAULT_PLATFORM_PATH, OnefsConnection

CONFIG_ENV_VAR = "ONEFS_PAPI_CONFIG_PATH"
logger = structlog.get_logger(__name__)


class OnefsConfig(pydantic.BaseModel):
    """Connection settings for a OneFS cluster."""

    endpoint: str = pydantic.Field(
        description="Cluster URL including scheme and port, e.g. https://cluster:8080",
    )
    user: str = pydantic.Field(description="API user name")
    password: str = pydantic.Field(description="API user password")
    bypass_cert: bool = pydantic.Field(
        False,  # noqa: FBT003
        description="Skip TLS certificate verification",
    )
    timeout: float = pydantic.Field(
        papi.DEFAULT_TIMEOUT,
        description="HTTP timeout in seconds",
        gt=0,
    )
    platform_path: str = pydantic.Field(
        DEFAULT_PLATFORM_PATH,
        description="Platform API prefix used if version discovery fails",
    )
    log_level: str = pydantic.Field("INFO", description="Logging level")


def configure_logging(log_level_name: str) -> None:
    """Configure structlog for logfmt output."""
    log_level = getattr(logging, log_level_name.upper(), logging.INFO)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.EventRenamer("msg"),
            structlog.processors.format_exc_info,
            structlog.processors.LogfmtRenderer(
                key_order=("timestamp", "level", "msg"),
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def load_config(config_path: str) -> OnefsConfig:
    """Load configuration from JSON file."""
    path = pathlib.Path(config_path)
    if not path.exists():
        msg = f"Configuration file not found: {config_path}"
        raise FileNotFoundError(msg)

    with path.open("r") as f:
        data = json.load(f)

    return OnefsConfig(**data)


def create_connection(config_path: str | None = None) -> OnefsConnection:
    """Load config, set up logging and return a connected OneFS connection.

    Args:
        config_path: Path to a JSON config file. Defaults to the path in
            the ONEFS_PAPI_CONFIG_PATH environment variable, or /config.json.

    Raises:
        FileNotFoundError: If the config file does not exist.
        pydantic.ValidationError: If the config file is invalid.
        ConnectError: If the session cannot be created.
    """
    resolved_path = config_path or os.environ.get(CONFIG_ENV_VAR, "/config.json")
    config = load_config(resolved_path)
    configure_logging(config.log_level)

    conn = OnefsConnection(platform_path=config.platform_path)
    conn.connect(config)
    logger.info("Created OneFS connection", endpoint=config.endpoint)
    return conn
