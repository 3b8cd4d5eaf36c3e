"""Prometheus counters for PAPI session activity.

Counters are registered in a caller-supplied registry (never the global
one) so several sessions, or several test cases, can each own a set.
"""

from prometheus_client import CollectorRegistry, Counter

DEFAULT_NAMESPACE = "onefs_papi"


class SessionMetrics:
    """Request, page and re-authentication counters for one or more sessions."""

    def __init__(
        self,
        registry: CollectorRegistry,
        namespace: str = DEFAULT_NAMESPACE,
    ):
        """Register the counters.

        Args:
            registry: Registry the counters are added to.
            namespace: Metric name prefix (default: onefs_papi).
        """
        self.requests = Counter(
            "requests",
            "HTTP requests sent to the cluster",
            ["method", "status"],
            namespace=namespace,
            registry=registry,
        )
        self.pages = Counter(
            "pages",
            "Successful response pages merged by send",
            namespace=namespace,
            registry=registry,
        )
        self.reauthentications = Counter(
            "reauthentications",
            "Automatic re-authentications triggered by a 401 response",
            namespace=namespace,
            registry=registry,
        )

    def observe_request(self, method: str, status_code: int) -> None:
        """Count one request/response exchange."""
        self.requests.labels(method=method.upper(), status=str(status_code)).inc()

    def observe_page(self) -> None:
        """Count one merged response page."""
        self.pages.inc()

    def observe_reauthentication(self) -> None:
        """Count one automatic re-authentication."""
        self.reauthentications.inc()
