"""Tests for session metrics and the HTTP client factory."""

from unittest.mock import patch

import pytest
from prometheus_client import CollectorRegistry

from onefs_papi import papi


@pytest.fixture
def registry() -> CollectorRegistry:
    """Private registry so tests never touch the global one."""
    return CollectorRegistry()


@pytest.fixture
def metered(session: papi.PapiSession, registry: CollectorRegistry) -> papi.PapiSession:
    """Session reporting into the private registry."""
    session.metrics = papi.SessionMetrics(registry)
    return session


def test_requests_counted_by_method_and_status(metered, cluster, registry):
    """Login, API calls and logout are all counted."""
    cluster.add_json("GET", "platform/latest", {"latest": "16"})
    metered.connect()
    metered.send("GET", "platform/latest")
    metered.disconnect()

    def sample(method, status):
        return registry.get_sample_value(
            "onefs_papi_requests_total",
            {"method": method, "status": status},
        )

    assert sample("POST", "201") == 1
    assert sample("GET", "200") == 1
    assert sample("DELETE", "204") == 1


def test_pages_counted(metered, cluster, registry):
    """Every merged page increments the page counter."""
    cluster.add_json("GET", "items", {"items": [1], "resume": "a"})
    cluster.add_json("GET", "items", {"items": [2], "resume": "b"})
    cluster.add_json("GET", "items", {"items": [3]})
    metered.connect()
    metered.send("GET", "items")
    assert registry.get_sample_value("onefs_papi_pages_total") == 3


def test_reauthentications_counted(metered, cluster, registry):
    """Automatic re-authentications are counted."""
    cluster.add("GET", "platform/latest", 401)
    cluster.add_json("GET", "platform/latest", {"latest": "16"})
    metered.connect()
    metered.send("GET", "platform/latest")
    assert registry.get_sample_value("onefs_papi_reauthentications_total") == 1


def test_custom_namespace(registry):
    """The metric prefix can be changed."""
    metrics = papi.SessionMetrics(registry, namespace="cluster_a")
    metrics.observe_request("get", 200)
    assert (
        registry.get_sample_value(
            "cluster_a_requests_total",
            {"method": "GET", "status": "200"},
        )
        == 1
    )


# ---------------------------------------------------------------------------
# build_http_client
# ---------------------------------------------------------------------------


@patch("onefs_papi.papi.transport.httpx.Client")
def test_build_http_client_verifies_certificates_by_default(mock_client):
    """TLS verification stays on unless ignore_cert is set."""
    config = papi.TransportConfig(endpoint="https://c:8080", timeout=12.0)
    papi.build_http_client(config)
    mock_client.assert_called_once_with(verify=True, timeout=12.0, transport=None)


@patch("onefs_papi.papi.transport.httpx.Client")
def test_build_http_client_ignore_cert(mock_client):
    """ignore_cert disables TLS verification."""
    config = papi.TransportConfig(endpoint="https://c:8080", ignore_cert=True)
    papi.build_http_client(config)
    mock_client.assert_called_once_with(
        verify=False,
        timeout=papi.DEFAULT_TIMEOUT,
        transport=None,
    )
