import asyncio
from typing import Optional, Type, TypeVar

import netaddr
from httpx import AsyncBaseTransport, AsyncClient, HTTPError
from loguru import logger
from pydantic import BaseModel
from pydantic import ValidationError as SchemaError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from pnode_analytics.core.schemas import NodeStats
from pnode_analytics.protocol import JsonRpcRequest, JsonRpcResponse, PodInfo, PodInfoList, PodStats
from pnode_analytics.settings import SETTINGS

ResultT = TypeVar("ResultT", bound=BaseModel)


class PNodeRPCError(Exception):
    """A pNode JSON-RPC call failed, timed out or returned an unusable result."""


def host_of(address: str) -> str:
    """Strip the port from an "ip:port" address."""
    host, sep, _ = address.rpartition(":")
    if not sep:
        host = address
    return host.strip("[]")


def is_public_node(pod: PodInfo) -> bool:
    """False for loopback hosts and test identities that pollute leaderboards."""
    if pod.pubkey and "testpubkey" in pod.pubkey:
        return False
    host = host_of(pod.address)
    try:
        return not netaddr.IPAddress(host).is_loopback()
    except (netaddr.AddrFormatError, ValueError):
        return host != "localhost"


class PNodeClient:
    def __init__(
        self,
        seed_nodes: Optional[list[str]] = None,
        rpc_port: Optional[int] = None,
        rpc_path: Optional[str] = None,
        timeout: Optional[float] = None,
        retry_attempts: Optional[int] = None,
        transport: Optional[AsyncBaseTransport] = None,
    ):
        self.seed_nodes = seed_nodes if seed_nodes is not None else SETTINGS.pnode.seed_nodes
        self.rpc_port = rpc_port or SETTINGS.pnode.rpc_port
        self.rpc_path = rpc_path or SETTINGS.pnode.rpc_path
        self.timeout = timeout or SETTINGS.pnode.request_timeout
        self.retry_attempts = retry_attempts or SETTINGS.pnode.seed_retry_attempts
        self.transport = transport

    def _endpoint(self, host: str) -> str:
        if ":" in host:
            host = f"[{host}]"
        return f"http://{host}:{self.rpc_port}{self.rpc_path}"

    async def call_rpc(self, host: str, method: str, result_model: Type[ResultT]) -> ResultT:
        """Call a JSON-RPC method on one pNode and validate its result."""
        url = self._endpoint(host)
        logger.debug(f"Calling {method} on {url}")

        try:
            async with AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    url, json=JsonRpcRequest(method=method).model_dump()
                )
        except HTTPError as e:
            raise PNodeRPCError(f"{method} on {host} failed: {e}") from e

        if response.status_code != 200:
            raise PNodeRPCError(
                f"{method} on {host} returned HTTP {response.status_code}"
            )

        try:
            rpc_response = JsonRpcResponse.model_validate_json(response.text)
        except SchemaError as e:
            raise PNodeRPCError(f"{method} on {host} returned malformed JSON-RPC") from e

        if rpc_response.error is not None:
            raise PNodeRPCError(f"{method} on {host} errored: {rpc_response.error}")
        if rpc_response.result is None:
            raise PNodeRPCError(f"{method} on {host} returned no result")

        try:
            return result_model.model_validate(rpc_response.result)
        except SchemaError as e:
            raise PNodeRPCError(f"{method} on {host} returned an invalid result") from e

    async def fetch_pods(self, seed: str) -> PodInfoList:
        """Fetch the pod list known to one seed node, retrying transient failures."""
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=4),
            retry=retry_if_exception_type(PNodeRPCError),
            reraise=True,
        ):
            with attempt:
                return await self.call_rpc(seed, "get-pods", PodInfoList)

    async def get_all_pods(self) -> PodInfoList:
        """
        Query every seed node in parallel and merge their pod lists.

        Pods are de-duplicated by address, keeping the entry with the most
        recent last_seen_timestamp.
        """
        results = await asyncio.gather(
            *(self.fetch_pods(seed) for seed in self.seed_nodes),
            return_exceptions=True,
        )

        unique_pods: dict[str, PodInfo] = {}
        for seed, result in zip(self.seed_nodes, results):
            if isinstance(result, Exception):
                logger.warning(f"No pods from seed {seed}: {result}")
                continue
            logger.debug(f"Got {len(result.pods)} pods from seed {seed}")
            for pod in result.pods:
                existing = unique_pods.get(pod.address)
                if existing is None or pod.last_seen_timestamp > existing.last_seen_timestamp:
                    unique_pods[pod.address] = pod

        logger.info(f"Total unique pods: {len(unique_pods)}")
        return PodInfoList(pods=list(unique_pods.values()), total_count=len(unique_pods))

    async def get_pod_stats(self, address: str) -> PodStats:
        return await self.call_rpc(host_of(address), "get-stats", PodStats)

    async def get_stats(self, address: str) -> NodeStats:
        """Stats of one node, shaped for enrich_stats."""
        pod_stats = await self.get_pod_stats(address)
        return pod_stats.to_node_stats()
