"""
Tests for the pNode sidecar service and its pod sync loop.

Redis and the pNode client are replaced with AsyncMocks. The TestClient is
used without a context manager so the background sync task never starts.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from pnode_analytics.protocol import PodInfo, PodInfoList, PodStats
from pnode_analytics.services.sidecar_pnode.app import SidecarPNodeService
from pnode_analytics.services.sidecar_pnode.pnode_client import PNodeRPCError
from pnode_analytics.services.sidecar_pnode.sync_pod_info import sync_pods_once

POD_LIST = PodInfoList(
    pods=[PodInfo(address="1.1.1.1:9001", last_seen_timestamp=100, version="1.0.0")],
    total_count=1,
)


@pytest.fixture
def redis():
    mock = MagicMock()
    mock.get = AsyncMock(return_value=None)
    mock.set = AsyncMock()
    mock.delete = AsyncMock()
    return mock


@pytest.fixture
def pnode_client():
    mock = MagicMock()
    mock.get_all_pods = AsyncMock(return_value=POD_LIST)
    mock.get_pod_stats = AsyncMock(return_value=PodStats(cpu_percent=3.5))
    return mock


@pytest.fixture
def http(redis, pnode_client):
    service = SidecarPNodeService(redis=redis, client=pnode_client)
    return TestClient(service.app)


class TestNodesEndpoint:
    def test_unavailable_before_first_sync(self, http):
        assert http.get("/api/nodes").status_code == 503

    def test_returns_cached_snapshot(self, http, redis):
        redis.get.return_value = POD_LIST.model_dump_json()
        response = http.get("/api/nodes")
        assert response.status_code == 200
        assert response.json()["pods"][0]["address"] == "1.1.1.1:9001"


class TestStatsEndpoint:
    @pytest.fixture(autouse=True)
    def cached_snapshot(self, redis):
        redis.get.return_value = POD_LIST.model_dump_json()

    def test_proxies_stats(self, http, pnode_client):
        response = http.get("/api/nodes/1.1.1.1:9001/stats")
        assert response.status_code == 200
        assert response.json()["cpu_percent"] == 3.5
        pnode_client.get_pod_stats.assert_awaited_once_with("1.1.1.1:9001")

    def test_rpc_failure_is_bad_gateway(self, http, pnode_client):
        pnode_client.get_pod_stats.side_effect = PNodeRPCError("timeout")
        assert http.get("/api/nodes/1.1.1.1:9001/stats").status_code == 502

    def test_address_outside_snapshot_is_not_proxied(self, http, pnode_client):
        assert http.get("/api/nodes/10.9.9.9:9001/stats").status_code == 404
        pnode_client.get_pod_stats.assert_not_awaited()

    def test_stats_unavailable_before_first_sync(self, http, redis, pnode_client):
        redis.get.return_value = None
        assert http.get("/api/nodes/1.1.1.1:9001/stats").status_code == 503
        pnode_client.get_pod_stats.assert_not_awaited()

    def test_health(self, http):
        assert http.get("/api/health").json() == {"status": "healthy"}


class TestSyncPods:
    @pytest.mark.asyncio
    async def test_caches_with_ttl(self, redis, pnode_client):
        count = await sync_pods_once(redis, pnode_client, "pnodes:pods", ttl=300)
        assert count == 1
        redis.set.assert_awaited_once_with("pnodes:pods", POD_LIST.model_dump_json(), ex=300)

    @pytest.mark.asyncio
    async def test_empty_result_keeps_previous_snapshot(self, redis, pnode_client):
        pnode_client.get_all_pods.return_value = PodInfoList(pods=[])
        assert await sync_pods_once(redis, pnode_client, "pnodes:pods", ttl=300) == 0
        redis.set.assert_not_awaited()
