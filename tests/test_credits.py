"""
Tests for pnode_analytics/core/credits.py

Covers the recency tiers, the rpc and version bonuses and the invariant that
the total is always the exact sum of its sub-scores.
"""

import pytest

from pnode_analytics.core.credits import recency_tier, score_node, uptime_points, uptime_rating
from pnode_analytics.core.schemas import NodeRecord, PodCredits

NOW = 1_750_000_000


def make_node(
    address: str = "10.0.0.1:9001",
    seconds_ago: int = 60,
    version: str = "1.0.0",
    rpc: bool = True,
    pubkey: str = None,
) -> NodeRecord:
    return NodeRecord(
        address=address,
        pubkey=pubkey,
        version=version,
        last_seen_epoch_seconds=NOW - seconds_ago,
        rpc_capable=rpc,
    )


class TestUptimeTiers:
    """Recency tiers in minutes: <5, <15, <60, <360, rest."""

    @pytest.mark.parametrize(
        "seconds_ago,points,label",
        [
            (0, 40, "Excellent"),
            (299, 40, "Excellent"),
            (300, 30, "Very Good"),
            (899, 30, "Very Good"),
            (900, 20, "Good"),
            (3599, 20, "Good"),
            (3600, 10, "Degraded"),
            (21599, 10, "Degraded"),
            (21600, 0, "Offline"),
            (10**7, 0, "Offline"),
        ],
    )
    def test_tier_edges(self, seconds_ago, points, label):
        assert uptime_points(seconds_ago) == points
        assert uptime_rating(seconds_ago) == label

    def test_negative_delta_is_top_tier(self):
        assert recency_tier(-50) == 0

    def test_tiers_differ_from_health_classes(self):
        # 10 minutes is "degraded" health but still earns 30 uptime points
        assert uptime_points(600) == 30


class TestScoreNode:
    """Pod Credits of single nodes."""

    def test_perfect_node(self):
        credits = score_node(make_node(), "1.0.0", NOW)
        assert credits == PodCredits(uptime=40, rpc=30, version=30)
        assert credits.total == 100

    def test_no_rpc(self):
        credits = score_node(make_node(seconds_ago=1000, rpc=False), "1.0.0", NOW)
        assert (credits.uptime, credits.rpc, credits.version) == (20, 0, 30)
        assert credits.total == 50

    def test_outdated_and_long_unseen(self):
        # About 167 minutes unseen still falls in the last 10-point tier
        credits = score_node(make_node(seconds_ago=10000, version="0.9.0"), "1.0.0", NOW)
        assert (credits.uptime, credits.rpc, credits.version) == (10, 30, 0)
        assert credits.total == 40

    def test_offline_and_outdated(self):
        credits = score_node(make_node(seconds_ago=360 * 60, version="0.9.0"), "1.0.0", NOW)
        assert credits.total == 30

    def test_newer_than_latest_earns_no_version_bonus(self):
        credits = score_node(make_node(version="1.1.0"), "1.0.0", NOW)
        assert credits.version == 0

    def test_semantically_equal_but_different_string_earns_nothing(self):
        credits = score_node(make_node(version="1.0"), "1.0.0", NOW)
        assert credits.version == 0

    def test_unknown_version_never_matches_unknown_latest(self):
        credits = score_node(make_node(version=None), "unknown", NOW)
        assert credits.version == 0

    def test_node_without_pubkey_is_scored(self):
        node = make_node(pubkey=None)
        assert node.identity == node.address
        assert score_node(node, "1.0.0", NOW).total == 100

    def test_pubkey_is_identity(self):
        assert make_node(pubkey="Pk1").identity == "Pk1"

    @pytest.mark.parametrize("seconds_ago", [-100, 0, 400, 2000, 5000, 50000])
    @pytest.mark.parametrize("rpc", [True, False])
    @pytest.mark.parametrize("version", ["1.0.0", "0.9.0", None])
    def test_total_is_bounded_sum(self, seconds_ago, rpc, version):
        credits = score_node(make_node(seconds_ago=seconds_ago, rpc=rpc, version=version), "1.0.0", NOW)
        assert credits.total == credits.uptime + credits.rpc + credits.version
        assert 0 <= credits.total <= 100

    def test_total_is_serialized(self):
        dumped = score_node(make_node(), "1.0.0", NOW).model_dump(by_alias=True)
        assert dumped == {"uptime": 40, "rpc": 30, "version": 30, "total": 100}
