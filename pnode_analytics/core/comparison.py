from typing import Optional, Sequence

from pnode_analytics.core.credits import is_latest, score_node, uptime_rating
from pnode_analytics.core.errors import ValidationError
from pnode_analytics.core.health import seconds_since_seen
from pnode_analytics.core.schemas import (
    ComparisonEntry,
    ComparisonResult,
    ComparisonWinner,
    NodeRecord,
)
from pnode_analytics.core.versions import latest_version

MIN_COMPARED_NODES = 2
MAX_COMPARED_NODES = 5


def compare_nodes(
    nodes: Sequence[NodeRecord],
    now: int,
    snapshot: Optional[Sequence[NodeRecord]] = None,
) -> ComparisonResult:
    """
    Score 2 to 5 nodes side by side and pick a winner.

    The latest version is taken from ``snapshot`` (the whole fleet) when it is
    given, otherwise from the compared nodes. A shared top score is a tie and
    yields no winner.

    Raises:
        ValidationError: If fewer than 2 or more than 5 nodes are given
    """
    if not MIN_COMPARED_NODES <= len(nodes) <= MAX_COMPARED_NODES:
        raise ValidationError(
            f"Comparison needs between {MIN_COMPARED_NODES} and "
            f"{MAX_COMPARED_NODES} nodes, got {len(nodes)}"
        )

    latest = latest_version(node.version for node in (snapshot or nodes))

    entries = []
    for number, node in enumerate(nodes, start=1):
        delta = seconds_since_seen(node.last_seen_epoch_seconds, now)
        entries.append(
            ComparisonEntry(
                node_number=number,
                address=node.address,
                pubkey=node.pubkey,
                version=node.version,
                minutes_since_seen=round(delta / 60, 1),
                uptime_rating=uptime_rating(delta),
                is_latest_version=is_latest(node, latest),
                has_rpc=node.rpc_capable,
                credits=score_node(node, latest, now),
            )
        )

    totals = sorted((entry.credits.total for entry in entries), reverse=True)
    leaders = [entry for entry in entries if entry.credits.total == totals[0]]

    if len(leaders) > 1:
        return ComparisonResult(
            entries=entries,
            winner=None,
            is_tie=True,
            latest_version=latest,
            margin=0,
        )

    leader = leaders[0]
    return ComparisonResult(
        entries=entries,
        winner=ComparisonWinner(
            node_number=leader.node_number,
            address=leader.address,
            pubkey=leader.pubkey,
            credits=leader.credits.total,
        ),
        is_tie=False,
        latest_version=latest,
        margin=totals[0] - totals[1],
    )
