"""
Network-wide analytics over one pNode snapshot.

``analyze_network`` is a pure O(n) pass: it classifies every node, derives the
version picture and folds in whatever resource stats are available. Empty
snapshots and missing stats never raise; every ratio is guarded.
"""

from collections import Counter
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import List, Mapping, Optional, Sequence, Union

import numpy as np

from pnode_analytics.core.health import classify_health, seconds_since_seen
from pnode_analytics.core.schemas import (
    HealthStatus,
    HealthSummary,
    NetworkAnalytics,
    NetworkTotals,
    NodeRecord,
    NodeStats,
    PerformanceSummary,
    RiskFlags,
    StorageSummary,
    VersionSummary,
)
from pnode_analytics.core.versions import (
    UNKNOWN_VERSION,
    compare_versions,
    is_parseable,
    latest_version,
)

# Degraded nodes count half towards the health score
DEGRADED_WEIGHT = 0.5
# Share of known-version nodes above which one version dominates
DOMINANCE_THRESHOLD = 0.8
# Nodes silent for longer than a day are stale
STALE_THRESHOLD = 86400


def round_half_up(value: Union[float, Decimal], digits: int = 0) -> float:
    # Floats go through their shortest repr, so 14.45 rounds to 14.5 rather than 14.4
    number = Decimal(str(value))
    exponent = Decimal(1).scaleb(-digits)
    with localcontext() as context:
        context.prec = max(context.prec, number.adjusted() + digits + 2)
        return float(number.quantize(exponent, rounding=ROUND_HALF_UP))


def _ratio(part: float, whole: float) -> Decimal:
    return Decimal(str(part)) / Decimal(str(whole))


def _percentage(part: float, whole: float) -> float:
    if whole <= 0:
        return 0.0
    return round_half_up(_ratio(part, whole) * 100, 1)


def _mean(values: List[float]) -> float:
    if not values:
        return 0.0
    return float(np.mean(values))


def health_score(healthy: int, degraded: int, total: int) -> int:
    """0-100 gauge where healthy nodes count fully and degraded ones half."""
    if total <= 0:
        return 0
    score = int(round_half_up(_ratio(healthy + DEGRADED_WEIGHT * degraded, total) * 100))
    return min(100, max(0, score))


def _summarize_versions(nodes: Sequence[NodeRecord]) -> VersionSummary:
    distribution = Counter(node.version for node in nodes)
    latest = latest_version(distribution.keys())

    outdated = 0
    if latest != UNKNOWN_VERSION:
        outdated = sum(
            count
            for version, count in distribution.items()
            if is_parseable(version) and compare_versions(version, latest) < 0
        )

    return VersionSummary(
        latest=latest,
        distribution=dict(distribution),
        outdated_count=outdated,
        outdated_percentage=_percentage(outdated, len(nodes)),
    )


def _version_dominance(distribution: Mapping[str, int]) -> bool:
    known = {v: c for v, c in distribution.items() if v != UNKNOWN_VERSION}
    known_total = sum(known.values())
    if known_total == 0:
        return False
    return max(known.values()) / known_total > DOMINANCE_THRESHOLD


def _summarize_performance(reporting: List[NodeStats]) -> PerformanceSummary:
    cpu = [s.cpu_percent for s in reporting if s.cpu_percent is not None]
    ram = [s.ram_percent for s in reporting if s.ram_percent is not None]
    uptime = [s.uptime_seconds for s in reporting if s.uptime_seconds is not None]

    return PerformanceSummary(
        average_cpu=round_half_up(_mean(cpu), 1),
        average_ram=round_half_up(_mean(ram), 1),
        average_uptime=int(round_half_up(_mean(uptime))),
        reporting_nodes=len(reporting),
        has_data=bool(reporting),
    )


def _summarize_storage(reporting: List[NodeStats], total_nodes: int) -> StorageSummary:
    capacity = sum(s.capacity_bytes for s in reporting if s.capacity_bytes is not None)
    stored = sum(s.total_bytes_stored for s in reporting if s.total_bytes_stored is not None)

    return StorageSummary(
        total_capacity=capacity,
        total_stored=stored,
        average_per_node=round_half_up(_ratio(capacity, total_nodes), 1) if total_nodes else 0.0,
        utilization_percentage=_percentage(stored, capacity),
    )


def analyze_network(
    nodes: Sequence[NodeRecord],
    now: int,
    stats: Optional[Mapping[str, NodeStats]] = None,
) -> NetworkAnalytics:
    """
    Build the analytics view of a snapshot.

    Args:
        nodes: Snapshot of node records, unique by address
        now: Evaluation instant as a Unix timestamp
        stats: Optional resource stats keyed by node address

    Returns:
        A freshly computed NetworkAnalytics
    """
    total = len(nodes)
    statuses = Counter(classify_health(node.last_seen_epoch_seconds, now) for node in nodes)
    healthy = statuses[HealthStatus.HEALTHY]
    degraded = statuses[HealthStatus.DEGRADED]
    offline = statuses[HealthStatus.OFFLINE]

    versions = _summarize_versions(nodes)

    stale = sum(
        1
        for node in nodes
        if seconds_since_seen(node.last_seen_epoch_seconds, now) > STALE_THRESHOLD
    )

    stats = stats or {}
    reporting = [stats[node.address] for node in nodes if node.address in stats]

    return NetworkAnalytics(
        totals=NetworkTotals(
            total=total,
            healthy=healthy,
            degraded=degraded,
            offline=offline,
        ),
        health=HealthSummary(
            score=health_score(healthy, degraded, total),
            healthy_percentage=_percentage(healthy, total),
            degraded_percentage=_percentage(degraded, total),
            offline_percentage=_percentage(offline, total),
        ),
        versions=versions,
        risks=RiskFlags(
            single_version_dominance=_version_dominance(versions.distribution),
            low_health_nodes=degraded + offline,
            stale_nodes=stale,
        ),
        performance=_summarize_performance(reporting),
        storage=_summarize_storage(reporting, total),
    )
