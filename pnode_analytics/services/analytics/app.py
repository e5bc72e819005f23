import time
from typing import Dict, List, Optional
from urllib.parse import quote

from fastapi import FastAPI, HTTPException, Query
from httpx import AsyncClient, HTTPError
from loguru import logger

from pnode_analytics.core.comparison import MAX_COMPARED_NODES, MIN_COMPARED_NODES, compare_nodes
from pnode_analytics.core.credits import score_node
from pnode_analytics.core.enrichment import enrich_stats
from pnode_analytics.core.errors import ValidationError
from pnode_analytics.core.network import analyze_network
from pnode_analytics.core.ranking import RankDimension, build_scored_nodes, parse_dimension, rank_nodes
from pnode_analytics.core.schemas import ComparisonResult, NetworkAnalytics, NodeRecord, NodeStats
from pnode_analytics.core.versions import latest_version
from pnode_analytics.protocol import PodInfoList, PodStats
from pnode_analytics.services.analytics.schemas import (
    CompareRequest,
    CreditsEntry,
    CreditsResponse,
    LeaderboardResponse,
    SummaryResponse,
)
from pnode_analytics.services.analytics.summary import summarize_network
from pnode_analytics.services.sidecar_pnode.pnode_client import is_public_node
from pnode_analytics.settings import SETTINGS


class AnalyticsService:
    def __init__(self):
        self.app = FastAPI(title="pNode Analytics Service")
        self._snapshot_cache: Optional[PodInfoList] = None
        self._snapshot_timestamp = 0
        self._cache_ttl = SETTINGS.analytics.snapshot_cache_ttl
        self.setup_routes()

    def setup_routes(self):
        self.app.add_api_route(
            "/api/analytics",
            self.get_analytics,
            methods=["GET"],
            response_model=NetworkAnalytics,
            status_code=200,
            tags=["analytics"],
            description="Network health, version and performance analytics",
        )
        self.app.add_api_route(
            "/api/credits",
            self.get_credits,
            methods=["GET"],
            response_model=CreditsResponse,
            status_code=200,
            tags=["credits"],
            description="Pod Credits for every node in the snapshot",
        )
        self.app.add_api_route(
            "/api/credits/{key}",
            self.get_node_credits,
            methods=["GET"],
            response_model=CreditsEntry,
            status_code=200,
            tags=["credits"],
            description="Pod Credits for one node, by address or pubkey",
        )
        self.app.add_api_route(
            "/api/leaderboard",
            self.get_leaderboard,
            methods=["GET"],
            response_model=LeaderboardResponse,
            status_code=200,
            tags=["ranking"],
            description="Nodes ranked by credits, uptime, cpu, storage or overall",
        )
        self.app.add_api_route(
            "/api/compare",
            self.compare,
            methods=["POST"],
            response_model=ComparisonResult,
            status_code=200,
            tags=["ranking"],
            description="Compare 2 to 5 nodes side by side",
        )
        self.app.add_api_route(
            "/api/summary",
            self.get_summary,
            methods=["GET"],
            response_model=SummaryResponse,
            status_code=200,
            tags=["analytics"],
            description="Plain-text network summary with the underlying analytics",
        )
        self.app.add_api_route(
            "/api/health",
            self.health_check,
            methods=["GET"],
            status_code=200,
            tags=["health"],
            description="Service health check endpoint",
        )

    async def fetch_snapshot(self) -> PodInfoList:
        """Fetch the pod list from the sidecar service with caching"""
        current_time = time.time()

        if (
            self._snapshot_cache is not None
            and (current_time - self._snapshot_timestamp) < self._cache_ttl
        ):
            logger.debug("Using cached pod snapshot")
            return self._snapshot_cache

        try:
            async with AsyncClient(
                base_url=SETTINGS.sidecar.base_url,
                timeout=SETTINGS.sidecar.request_timeout,
            ) as client:
                response = await client.get("/api/nodes")
        except HTTPError as e:
            logger.error(f"HTTP error when fetching pod snapshot: {str(e)}")
            raise HTTPException(
                status_code=502,
                detail=f"Communication error with pNode sidecar: {str(e)}",
            )

        if response.status_code == 503:
            raise HTTPException(status_code=503, detail="Pod snapshot not available yet")
        if response.status_code != 200:
            logger.error(f"Failed to fetch pod snapshot: {response.text}")
            raise HTTPException(
                status_code=502,
                detail="Failed to fetch pod snapshot from pNode sidecar",
            )

        self._snapshot_cache = PodInfoList.model_validate_json(response.text)
        self._snapshot_timestamp = current_time
        logger.debug("Pod snapshot cache updated")

        return self._snapshot_cache

    async def fetch_stats(self, address: str) -> NodeStats:
        """Fetch stats for one node through the sidecar. Raises on failure."""
        async with AsyncClient(
            base_url=SETTINGS.sidecar.base_url,
            timeout=SETTINGS.sidecar.request_timeout,
        ) as client:
            response = await client.get(f"/api/nodes/{quote(address, safe='')}/stats")
            response.raise_for_status()
            return PodStats.model_validate_json(response.text).to_node_stats()

    async def _enrich(self, nodes: List[NodeRecord]) -> Dict[str, NodeStats]:
        return await enrich_stats(
            nodes[: SETTINGS.analytics.stats_node_limit],
            self.fetch_stats,
            SETTINGS.analytics.stats_batch_size,
        )

    async def get_analytics(self, with_stats: bool = False) -> NetworkAnalytics:
        snapshot = await self.fetch_snapshot()
        nodes = snapshot.to_node_records()
        stats = await self._enrich(nodes) if with_stats else None
        return analyze_network(nodes, int(time.time()), stats)

    async def get_credits(self) -> CreditsResponse:
        snapshot = await self.fetch_snapshot()
        nodes = snapshot.to_node_records()
        now = int(time.time())
        latest = latest_version(node.version for node in nodes)
        return CreditsResponse(
            latest_version=latest,
            evaluated_at=now,
            credits=[
                CreditsEntry(
                    identity=node.identity,
                    address=node.address,
                    pubkey=node.pubkey,
                    credits=score_node(node, latest, now),
                )
                for node in nodes
            ],
        )

    async def get_node_credits(self, key: str) -> CreditsEntry:
        snapshot = await self.fetch_snapshot()
        try:
            pod = snapshot.find(address=key, pubkey=key)
        except ValueError:
            raise HTTPException(status_code=404, detail=f"Node {key} not found")

        node = pod.to_node_record()
        latest = latest_version(n.version for n in snapshot.to_node_records())
        return CreditsEntry(
            identity=node.identity,
            address=node.address,
            pubkey=node.pubkey,
            credits=score_node(node, latest, int(time.time())),
        )

    async def get_leaderboard(
        self,
        dimension: str = RankDimension.CREDITS.value,
        limit: Optional[int] = Query(default=None, ge=1),
    ) -> LeaderboardResponse:
        try:
            dimension = parse_dimension(dimension)
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=str(e))

        snapshot = await self.fetch_snapshot()
        now = int(time.time())
        latest = latest_version(pod.version for pod in snapshot.pods)
        nodes = [pod.to_node_record() for pod in snapshot.pods if is_public_node(pod)]

        stats: Dict[str, NodeStats] = {}
        if dimension is not RankDimension.CREDITS:
            stats = await self._enrich(nodes)

        ranked = rank_nodes(build_scored_nodes(nodes, latest, now, stats), dimension)
        if limit is None:
            limit = SETTINGS.analytics.leaderboard_limit
        logger.info(f"Leaderboard by {dimension.value}: {len(ranked)} nodes ranked")

        return LeaderboardResponse(
            dimension=dimension.value,
            latest_version=latest,
            enriched_nodes=len(stats),
            nodes=ranked[:limit],
        )

    async def compare(self, request: CompareRequest) -> ComparisonResult:
        if not MIN_COMPARED_NODES <= len(request.nodes) <= MAX_COMPARED_NODES:
            raise HTTPException(
                status_code=400,
                detail=f"Between {MIN_COMPARED_NODES} and {MAX_COMPARED_NODES} nodes can be compared",
            )

        snapshot = await self.fetch_snapshot()
        resolved = []
        for query in request.nodes:
            try:
                pod = snapshot.find(address=query.address, pubkey=query.pubkey)
            except ValueError:
                logger.debug(f"Comparison node not found: {query.address or query.pubkey}")
                continue
            resolved.append(pod.to_node_record())

        if len(resolved) < MIN_COMPARED_NODES:
            raise HTTPException(status_code=404, detail="Could not find enough valid nodes")

        try:
            return compare_nodes(resolved, int(time.time()), snapshot=snapshot.to_node_records())
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=str(e))

    async def get_summary(self) -> SummaryResponse:
        snapshot = await self.fetch_snapshot()
        now = int(time.time())
        analytics = analyze_network(snapshot.to_node_records(), now)
        return SummaryResponse(
            summary=summarize_network(analytics),
            analytics=analytics,
            generated_at=now,
        )

    async def health_check(self) -> Dict[str, str]:
        """Simple health check endpoint"""
        return {"status": "healthy"}


service = AnalyticsService()
app = service.app
