import argparse
import asyncio
import json
import sys
import time
from typing import Optional

from loguru import logger

from pnode_analytics.core.comparison import MAX_COMPARED_NODES, MIN_COMPARED_NODES, compare_nodes
from pnode_analytics.core.enrichment import enrich_stats
from pnode_analytics.core.errors import ValidationError
from pnode_analytics.core.network import analyze_network
from pnode_analytics.core.ranking import RankDimension, build_scored_nodes, parse_dimension, rank_nodes
from pnode_analytics.core.versions import latest_version
from pnode_analytics.services.analytics.summary import summarize_network
from pnode_analytics.services.sidecar_pnode.pnode_client import PNodeClient, is_public_node
from pnode_analytics.settings import SETTINGS


def parse_arguments(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Inspect the pNode network.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("health", help="Node totals, health score and risks.")
    subparsers.add_parser("versions", help="Version distribution and outdated nodes.")
    subparsers.add_parser("summary", help="One-paragraph network summary.")

    top = subparsers.add_parser("top", help="Leaderboard of nodes.")
    top.add_argument(
        "--dimension",
        type=str,
        default=RankDimension.CREDITS.value,
        help=f"One of: {', '.join(d.value for d in RankDimension)}.",
    )
    top.add_argument(
        "--limit", type=int, default=SETTINGS.analytics.leaderboard_limit, help="Rows to show."
    )
    top.add_argument(
        "--batch-size",
        type=int,
        default=SETTINGS.analytics.stats_batch_size,
        help="Concurrent stats requests per batch.",
    )

    compare = subparsers.add_parser("compare", help="Compare 2 to 5 nodes.")
    compare.add_argument("nodes", nargs="+", help="Node addresses or pubkeys.")

    return parser.parse_args(argv)


async def run(args: argparse.Namespace, client: Optional[PNodeClient] = None) -> str:
    """Execute one command against a fresh snapshot and return its output."""
    # Fail on bad arguments before touching the network
    if args.command == "top":
        dimension = parse_dimension(args.dimension)
        if args.limit < 1:
            raise ValidationError(f"--limit must be at least 1, got {args.limit}")
    if args.command == "compare" and not MIN_COMPARED_NODES <= len(args.nodes) <= MAX_COMPARED_NODES:
        raise ValidationError(
            f"Between {MIN_COMPARED_NODES} and {MAX_COMPARED_NODES} nodes can be compared"
        )

    client = client or PNodeClient()
    snapshot = await client.get_all_pods()
    nodes = snapshot.to_node_records()
    now = int(time.time())

    if args.command == "health":
        analytics = analyze_network(nodes, now)
        return json.dumps(
            analytics.model_dump(by_alias=True, include={"totals", "health", "risks"}),
            indent=2,
        )

    if args.command == "versions":
        return analyze_network(nodes, now).versions.model_dump_json(by_alias=True, indent=2)

    if args.command == "summary":
        return summarize_network(analyze_network(nodes, now))

    if args.command == "top":
        latest = latest_version(node.version for node in nodes)
        public_nodes = [pod.to_node_record() for pod in snapshot.pods if is_public_node(pod)]
        stats = {}
        if dimension is not RankDimension.CREDITS:
            stats = await enrich_stats(
                public_nodes[: SETTINGS.analytics.stats_node_limit],
                client.get_stats,
                args.batch_size,
            )
        ranked = rank_nodes(build_scored_nodes(public_nodes, latest, now, stats), dimension)
        return json.dumps(
            [node.model_dump(by_alias=True) for node in ranked[: args.limit]],
            indent=2,
        )

    if args.command == "compare":
        selected = []
        for reference in args.nodes:
            try:
                selected.append(snapshot.find(address=reference, pubkey=reference).to_node_record())
            except ValueError:
                logger.warning(f"Node {reference} not found in snapshot")
        result = compare_nodes(selected, now, snapshot=nodes)
        return result.model_dump_json(by_alias=True, indent=2)

    raise ValidationError(f"Unknown command '{args.command}'")


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_arguments(argv)
    try:
        output = asyncio.run(run(args))
    except ValidationError as e:
        logger.error(str(e))
        return 2
    print(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
