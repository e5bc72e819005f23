"""
Tests for pnode_analytics/core/enrichment.py

Covers batching, failure tolerance, partial results and cancellation.
"""

import asyncio

import pytest

from pnode_analytics.core.enrichment import enrich_stats
from pnode_analytics.core.errors import ValidationError
from pnode_analytics.core.schemas import NodeRecord, NodeStats

NOW = 1_750_000_000


def make_nodes(count: int) -> list[NodeRecord]:
    return [
        NodeRecord(address=f"10.0.0.{i}:9001", last_seen_epoch_seconds=NOW)
        for i in range(count)
    ]


class InFlightTracker:
    """Fake stats source recording how many fetches run at once."""

    def __init__(self, delay: float = 0.01, failing: set = None):
        self.delay = delay
        self.failing = failing or set()
        self.in_flight = 0
        self.max_in_flight = 0
        self.calls = []

    async def __call__(self, address: str) -> NodeStats:
        self.calls.append(address)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if address in self.failing:
                raise ConnectionError(f"{address} unreachable")
            return NodeStats(cpu_percent=1.0)
        finally:
            self.in_flight -= 1


class TestEnrichStats:
    """Successful and failing fetches."""

    @pytest.mark.asyncio
    async def test_all_succeed(self):
        nodes = make_nodes(5)
        result = await enrich_stats(nodes, InFlightTracker(), batch_size=2)
        assert set(result) == {node.address for node in nodes}

    @pytest.mark.asyncio
    async def test_all_fail_returns_empty(self):
        async def always_fail(address):
            raise TimeoutError("too slow")

        assert await enrich_stats(make_nodes(4), always_fail) == {}

    @pytest.mark.asyncio
    async def test_failures_are_omitted(self):
        nodes = make_nodes(6)
        failing = {nodes[1].address, nodes[4].address}
        result = await enrich_stats(nodes, InFlightTracker(failing=failing), batch_size=4)
        assert set(result) == {n.address for n in nodes} - failing

    @pytest.mark.asyncio
    async def test_none_result_is_omitted(self):
        async def nothing(address):
            return None

        assert await enrich_stats(make_nodes(2), nothing) == {}

    @pytest.mark.asyncio
    async def test_empty_input(self):
        assert await enrich_stats([], InFlightTracker()) == {}

    @pytest.mark.asyncio
    async def test_invalid_batch_size(self):
        with pytest.raises(ValidationError):
            await enrich_stats(make_nodes(1), InFlightTracker(), batch_size=0)


class TestBatching:
    """Bounded concurrency and partial results."""

    @pytest.mark.asyncio
    async def test_in_flight_never_exceeds_batch_size(self):
        tracker = InFlightTracker()
        await enrich_stats(make_nodes(11), tracker, batch_size=3)
        assert tracker.max_in_flight == 3
        assert len(tracker.calls) == 11

    @pytest.mark.asyncio
    async def test_batch_results_accumulate(self):
        snapshots = []
        await enrich_stats(make_nodes(5), InFlightTracker(), batch_size=2, on_batch=snapshots.append)
        assert [len(s) for s in snapshots] == [2, 4, 5]

    @pytest.mark.asyncio
    async def test_cancel_event_stops_between_batches(self):
        cancel = asyncio.Event()
        tracker = InFlightTracker()

        def stop_after_first(results):
            cancel.set()

        result = await enrich_stats(
            make_nodes(6), tracker, batch_size=2, cancel_event=cancel, on_batch=stop_after_first
        )
        assert len(result) == 2
        assert len(tracker.calls) == 2

    @pytest.mark.asyncio
    async def test_task_cancellation_lets_batch_finish(self):
        tracker = InFlightTracker(delay=0.05)
        snapshots = []
        task = asyncio.create_task(
            enrich_stats(make_nodes(6), tracker, batch_size=3, on_batch=snapshots.append)
        )
        await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        # The first batch completed and was reported, the second never started
        assert len(tracker.calls) == 3
        assert tracker.in_flight == 0
        assert [len(s) for s in snapshots] == [3]
