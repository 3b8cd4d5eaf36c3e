"""HTTP client factory for PAPI sessions."""

import httpx
import structlog

from .config import TransportConfig

logger = structlog.get_logger(__name__)


def build_http_client(
    config: TransportConfig,
    transport: httpx.BaseTransport | None = None,
) -> httpx.Client:
    """Create the httpx client a session sends its requests through.

    Args:
        config: Session settings; ``ignore_cert`` disables TLS verification
            and ``timeout`` bounds connect and read time.
        transport: Optional transport override (e.g. ``httpx.MockTransport``).

    Returns:
        A new httpx.Client. The caller owns it and must close it.
    """
    if config.ignore_cert:
        logger.debug("TLS certificate verification disabled", endpoint=config.endpoint)
    return httpx.Client(
        verify=not config.ignore_cert,
        timeout=config.timeout,
        transport=transport,
    )
