from pnode_analytics.core.schemas import NetworkAnalytics


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'s' if count != 1 else ''}"


def summarize_network(analytics: NetworkAnalytics) -> str:
    """Short plain-text status line for dashboards and chat replies."""
    total = analytics.totals.total
    if total == 0:
        return "No pNodes are currently visible on the network."

    score = analytics.health.score
    if score >= 80:
        status = "excellent"
    elif score >= 60:
        status = "good"
    else:
        status = "concerning"

    summary = (
        f"Network health is {status} with {analytics.health.healthy_percentage:.0f}% "
        f"of {_plural(total, 'node')} healthy."
    )

    outdated = analytics.versions.outdated_count
    if outdated > 0:
        summary += (
            f" {_plural(outdated, 'node')} running versions older than "
            f"{analytics.versions.latest}."
        )

    offline = analytics.totals.offline
    if offline > 0:
        summary += f" {_plural(offline, 'node')} currently offline."

    if analytics.risks.single_version_dominance:
        summary += " A single version dominates the fleet."

    return summary
