"""
Leaderboard ranking of scored nodes.

Nodes are sorted descending on one dimension. Nodes without the underlying
stat count as 0 and stay in the output. Ties keep snapshot order because
Python's sort is stable, so the same input always yields the same
leaderboard, and ranks are dense 1-based positions.
"""

from enum import Enum
from typing import List, Mapping, Optional, Sequence, Union

from pnode_analytics.core.credits import score_node
from pnode_analytics.core.errors import ValidationError
from pnode_analytics.core.schemas import NodeRecord, NodeStats, ScoredNode


class RankDimension(str, Enum):
    CREDITS = "credits"
    UPTIME = "uptime"
    CPU = "cpu"
    STORAGE = "storage"
    OVERALL = "overall"


# Uptime and storage are scored against these full-marks targets
UPTIME_TARGET_SECONDS = 30 * 24 * 60 * 60
STORAGE_TARGET_BYTES = 100 * 1024**3

OVERALL_WEIGHTS = {
    RankDimension.UPTIME: 0.4,
    RankDimension.CPU: 0.3,
    RankDimension.STORAGE: 0.3,
}


def parse_dimension(value: Union[str, RankDimension]) -> RankDimension:
    try:
        return RankDimension(value)
    except ValueError:
        allowed = ", ".join(d.value for d in RankDimension)
        raise ValidationError(
            f"Unknown rank dimension '{value}', expected one of: {allowed}"
        ) from None


def uptime_score(stats: Optional[NodeStats]) -> float:
    if stats is None or stats.uptime_seconds is None:
        return 0.0
    return min(100.0, stats.uptime_seconds / UPTIME_TARGET_SECONDS * 100)


def cpu_score(stats: Optional[NodeStats]) -> float:
    """CPU headroom: an idle node scores 100."""
    if stats is None or stats.cpu_percent is None:
        return 0.0
    return max(0.0, 100.0 - stats.cpu_percent)


def storage_score(stats: Optional[NodeStats]) -> float:
    if stats is None or stats.total_bytes_stored is None:
        return 0.0
    return min(100.0, stats.total_bytes_stored / STORAGE_TARGET_BYTES * 100)


def overall_score(stats: Optional[NodeStats]) -> float:
    return (
        uptime_score(stats) * OVERALL_WEIGHTS[RankDimension.UPTIME]
        + cpu_score(stats) * OVERALL_WEIGHTS[RankDimension.CPU]
        + storage_score(stats) * OVERALL_WEIGHTS[RankDimension.STORAGE]
    )


def dimension_value(node: ScoredNode, dimension: Union[str, RankDimension]) -> float:
    dimension = parse_dimension(dimension)
    if dimension is RankDimension.CREDITS:
        return float(node.credits.total)
    if dimension is RankDimension.UPTIME:
        return uptime_score(node.stats)
    if dimension is RankDimension.CPU:
        return cpu_score(node.stats)
    if dimension is RankDimension.STORAGE:
        return storage_score(node.stats)
    return overall_score(node.stats)


def build_scored_nodes(
    nodes: Sequence[NodeRecord],
    latest_version: str,
    now: int,
    stats: Optional[Mapping[str, NodeStats]] = None,
) -> List[ScoredNode]:
    """Pair every node with its Pod Credits and, when known, its stats."""
    stats = stats or {}
    return [
        ScoredNode(
            node=node,
            credits=score_node(node, latest_version, now),
            stats=stats.get(node.address),
        )
        for node in nodes
    ]


def rank_nodes(
    nodes: Sequence[ScoredNode], dimension: Union[str, RankDimension]
) -> List[ScoredNode]:
    """
    Rank nodes on one dimension.

    Args:
        nodes: Scored nodes in snapshot order
        dimension: One of RankDimension, as enum or string

    Returns:
        New ScoredNode values with ``rank`` set, best first

    Raises:
        ValidationError: If the dimension is not recognized
    """
    dimension = parse_dimension(dimension)
    ordered = sorted(nodes, key=lambda n: dimension_value(n, dimension), reverse=True)
    return [
        node.model_copy(update={"rank": position})
        for position, node in enumerate(ordered, start=1)
    ]
