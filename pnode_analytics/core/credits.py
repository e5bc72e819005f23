"""
Pod Credits: the 0-100 reputation score of a single pNode.

    uptime   0-40   tiered by minutes since the last heartbeat
    rpc      0/30   node exposes an RPC or gossip-RPC endpoint
    version  0/30   node runs exactly the network's latest version

The recency tiers are finer than the health classes in ``health.py`` and are
kept separate from them.
"""

from typing import List, Tuple

from pnode_analytics.core.health import seconds_since_seen
from pnode_analytics.core.schemas import NodeRecord, PodCredits
from pnode_analytics.core.versions import UNKNOWN_VERSION

# (upper bound in minutes, uptime points, rating label)
RECENCY_TIERS: List[Tuple[int, int, str]] = [
    (5, 40, "Excellent"),
    (15, 30, "Very Good"),
    (60, 20, "Good"),
    (360, 10, "Degraded"),
]
OFFLINE_RATING = "Offline"

RPC_POINTS = 30
VERSION_POINTS = 30


def recency_tier(delta_seconds: int) -> int:
    """Index into RECENCY_TIERS, or len(RECENCY_TIERS) once past the last tier."""
    minutes = max(0, delta_seconds) / 60
    for index, (limit, _, _) in enumerate(RECENCY_TIERS):
        if minutes < limit:
            return index
    return len(RECENCY_TIERS)


def uptime_points(delta_seconds: int) -> int:
    tier = recency_tier(delta_seconds)
    if tier == len(RECENCY_TIERS):
        return 0
    return RECENCY_TIERS[tier][1]


def uptime_rating(delta_seconds: int) -> str:
    tier = recency_tier(delta_seconds)
    if tier == len(RECENCY_TIERS):
        return OFFLINE_RATING
    return RECENCY_TIERS[tier][2]


def is_latest(node: NodeRecord, latest_version: str) -> bool:
    # Exact match only: a build newer than the fleet's latest earns nothing
    return latest_version != UNKNOWN_VERSION and node.version == latest_version


def score_node(node: NodeRecord, latest_version: str, now: int) -> PodCredits:
    """
    Compute the Pod Credits of one node.

    Args:
        node: Snapshot record of the node
        latest_version: Latest version observed across the same snapshot
        now: Evaluation instant as a Unix timestamp

    Returns:
        PodCredits whose total is the exact sum of its sub-scores
    """
    delta = seconds_since_seen(node.last_seen_epoch_seconds, now)
    return PodCredits(
        uptime=uptime_points(delta),
        rpc=RPC_POINTS if node.rpc_capable else 0,
        version=VERSION_POINTS if is_latest(node, latest_version) else 0,
    )
