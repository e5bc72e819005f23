"""
Bounded-concurrency stats enrichment.

Stats are fetched in fixed-size batches: every fetch in a batch runs
concurrently and the next batch starts only once the previous one has fully
joined, so at most ``batch_size`` requests are ever in flight against the
stats source. A fetch that raises or returns nothing leaves that node out of
the result ("stats unknown"); it never aborts the batch.
"""

import asyncio
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from loguru import logger

from pnode_analytics.core.errors import ValidationError
from pnode_analytics.core.schemas import NodeRecord, NodeStats

DEFAULT_BATCH_SIZE = 20

StatsFetcher = Callable[[str], Awaitable[Optional[NodeStats]]]
BatchCallback = Callable[[Dict[str, NodeStats]], None]


async def _fetch_or_none(fetch_one: StatsFetcher, address: str) -> Optional[NodeStats]:
    try:
        return await fetch_one(address)
    except Exception as e:
        logger.debug(f"Stats unavailable for {address}: {e}")
        return None


def _merge(
    results: Dict[str, NodeStats],
    addresses: List[str],
    fetched: List[Optional[NodeStats]],
) -> None:
    for address, stats in zip(addresses, fetched):
        if isinstance(stats, NodeStats):
            results[address] = stats


async def enrich_stats(
    nodes: Sequence[NodeRecord],
    fetch_one: StatsFetcher,
    batch_size: int = DEFAULT_BATCH_SIZE,
    *,
    cancel_event: Optional[asyncio.Event] = None,
    on_batch: Optional[BatchCallback] = None,
) -> Dict[str, NodeStats]:
    """
    Fetch stats for ``nodes`` in sequential batches of concurrent requests.

    Args:
        nodes: Nodes to enrich, fetched in the given order
        fetch_one: Coroutine function returning the stats of one address.
            It carries its own timeout; raising counts as "unknown".
        batch_size: Maximum number of requests in flight
        cancel_event: When set, no further batch is started
        on_batch: Called with a copy of the cumulative results after every batch

    Returns:
        Stats keyed by address, only for nodes whose fetch succeeded

    Raises:
        ValidationError: If batch_size is smaller than 1
    """
    if batch_size < 1:
        raise ValidationError(f"batch_size must be at least 1, got {batch_size}")

    addresses = [node.address for node in nodes]
    results: Dict[str, NodeStats] = {}

    for start in range(0, len(addresses), batch_size):
        if cancel_event is not None and cancel_event.is_set():
            logger.info(
                f"Stats enrichment cancelled after {start}/{len(addresses)} nodes"
            )
            break

        batch = addresses[start : start + batch_size]
        pending = asyncio.gather(*(_fetch_or_none(fetch_one, a) for a in batch))
        try:
            fetched = await asyncio.shield(pending)
        except asyncio.CancelledError:
            # Let the in-flight batch finish before propagating
            fetched = await pending
            _merge(results, batch, fetched)
            if on_batch is not None:
                on_batch(dict(results))
            raise

        _merge(results, batch, fetched)
        if on_batch is not None:
            on_batch(dict(results))

    logger.debug(f"Enriched {len(results)}/{len(addresses)} nodes with stats")
    return results
