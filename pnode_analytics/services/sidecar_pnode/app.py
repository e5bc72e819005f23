import asyncio
from typing import Dict, Optional

from fastapi import FastAPI, HTTPException
from loguru import logger
from redis.asyncio import Redis

from pnode_analytics.protocol import PodInfoList, PodStats
from pnode_analytics.services.sidecar_pnode.pnode_client import PNodeClient, PNodeRPCError
from pnode_analytics.services.sidecar_pnode.sync_pod_info import sync_pod_info_task
from pnode_analytics.settings import SETTINGS


class SidecarPNodeService:
    def __init__(
        self,
        redis: Optional[Redis] = None,
        client: Optional[PNodeClient] = None,
    ):
        self.app = FastAPI(title="pNode Sidecar Service")
        self.redis = redis or Redis(
            host=SETTINGS.redis.host,
            port=SETTINGS.redis.port,
            db=SETTINGS.redis.db,
            decode_responses=True,
        )
        self.client = client or PNodeClient()
        self.redis_key = SETTINGS.sidecar.redis_keys["pods"]
        self._sync_task: Optional[asyncio.Task] = None
        self.setup_routes()
        self.setup_events()

    def setup_routes(self):
        self.app.add_api_route(
            "/api/nodes",
            self.get_nodes,
            methods=["GET"],
            response_model=PodInfoList,
            status_code=200,
            tags=["nodes"],
            description="Get the latest merged pod list of the network.",
        )
        self.app.add_api_route(
            "/api/nodes/{address}/stats",
            self.get_node_stats,
            methods=["GET"],
            response_model=PodStats,
            status_code=200,
            tags=["nodes"],
            description="Fetch live resource stats from a single pNode.",
        )
        self.app.add_api_route(
            "/api/health",
            self.health_check,
            methods=["GET"],
            status_code=200,
            tags=["health"],
            description="Simple health check endpoint",
        )

    def setup_events(self):
        self.app.on_event("startup")(self.startup_event)

    async def startup_event(self):
        """Initialize background tasks on service startup"""
        self._sync_task = asyncio.create_task(
            sync_pod_info_task(
                self.redis,
                self.client,
                self.redis_key,
                SETTINGS.sidecar.snapshot_ttl,
                SETTINGS.sidecar.sync_pods_interval,
            )
        )
        logger.info("Sidecar pNode service started with background pod syncing")

    async def get_nodes(self) -> PodInfoList:
        """Return the cached pod list."""
        cached_pods = await self.redis.get(self.redis_key)

        if not cached_pods:
            raise HTTPException(
                status_code=503,
                detail="Pod list not available yet. Please try again later.",
            )

        return PodInfoList.model_validate_json(cached_pods)

    async def get_node_stats(self, address: str) -> PodStats:
        """Fetch stats for one pNode of the cached snapshot straight from its RPC endpoint."""
        pods = await self.get_nodes()
        try:
            pods.find(address=address)
        except ValueError:
            raise HTTPException(status_code=404, detail=f"Node {address} is not in the snapshot")

        try:
            return await self.client.get_pod_stats(address)
        except PNodeRPCError as e:
            logger.error(f"Failed to fetch stats for {address}: {str(e)}")
            raise HTTPException(
                status_code=502,
                detail=f"Could not fetch stats from {address}",
            )

    async def health_check(self) -> Dict[str, str]:
        """Simple health check endpoint"""
        return {"status": "healthy"}


service = SidecarPNodeService()
app = service.app
