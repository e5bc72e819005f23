"""
Tests for pnode_analytics/core/health.py
"""

from pnode_analytics.core.health import (
    DEGRADED_THRESHOLD,
    HEALTHY_THRESHOLD,
    classify_health,
    seconds_since_seen,
)
from pnode_analytics.core.schemas import HealthStatus

NOW = 1_750_000_000


class TestClassifyHealth:
    """Health classes from heartbeat age."""

    def test_recent_is_healthy(self):
        assert classify_health(NOW - 100, NOW) == HealthStatus.HEALTHY

    def test_half_hour_is_degraded(self):
        assert classify_health(NOW - 1800, NOW) == HealthStatus.DEGRADED

    def test_two_hours_is_offline(self):
        assert classify_health(NOW - 7200, NOW) == HealthStatus.OFFLINE

    def test_boundaries(self):
        assert classify_health(NOW - (HEALTHY_THRESHOLD - 1), NOW) == HealthStatus.HEALTHY
        assert classify_health(NOW - HEALTHY_THRESHOLD, NOW) == HealthStatus.DEGRADED
        assert classify_health(NOW - (DEGRADED_THRESHOLD - 1), NOW) == HealthStatus.DEGRADED
        assert classify_health(NOW - DEGRADED_THRESHOLD, NOW) == HealthStatus.OFFLINE

    def test_future_timestamp_is_healthy(self):
        assert classify_health(NOW + 500, NOW) == HealthStatus.HEALTHY

    def test_status_serializes_as_string(self):
        assert HealthStatus.DEGRADED.value == "degraded"


class TestSecondsSinceSeen:
    def test_clamped_at_zero(self):
        assert seconds_since_seen(NOW + 10, NOW) == 0

    def test_plain_delta(self):
        assert seconds_since_seen(NOW - 42, NOW) == 42
