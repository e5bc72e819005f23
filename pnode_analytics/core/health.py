from pnode_analytics.core.schemas import HealthStatus

# Seconds since the last heartbeat
HEALTHY_THRESHOLD = 300
DEGRADED_THRESHOLD = 3600


def seconds_since_seen(last_seen_epoch_seconds: int, now: int) -> int:
    """Age of a heartbeat, clamped at 0 for timestamps in the future."""
    return max(0, now - last_seen_epoch_seconds)


def classify_health(last_seen_epoch_seconds: int, now: int) -> HealthStatus:
    """Classify a node from the age of its last heartbeat relative to ``now``."""
    delta = seconds_since_seen(last_seen_epoch_seconds, now)
    if delta < HEALTHY_THRESHOLD:
        return HealthStatus.HEALTHY
    if delta < DEGRADED_THRESHOLD:
        return HealthStatus.DEGRADED
    return HealthStatus.OFFLINE
