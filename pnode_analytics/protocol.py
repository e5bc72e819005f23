from typing import Any, Optional

from loguru import logger
from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as SchemaError

from pnode_analytics.core.schemas import NodeRecord, NodeStats


class JsonRpcRequest(BaseModel):
    jsonrpc: str = "2.0"
    method: str = Field(..., description="RPC method, e.g. get-pods or get-stats")
    id: int = 1


class JsonRpcResponse(BaseModel):
    jsonrpc: str = "2.0"
    result: Optional[Any] = None
    error: Optional[Any] = None
    id: Optional[int] = None


class PodInfo(BaseModel):
    """A pod entry as gossiped by a pNode's get-pods call."""

    address: str = Field(..., min_length=1)  # e.g. "173.212.203.145:9001"
    last_seen_timestamp: int  # Unix timestamp (seconds)
    pubkey: Optional[str] = None
    version: Optional[str] = None
    rpc: Optional[Any] = None  # RPC endpoint, when advertised
    gossip_rpc: Optional[Any] = None

    def to_node_record(self) -> NodeRecord:
        return NodeRecord(
            address=self.address,
            pubkey=self.pubkey,
            version=self.version,
            last_seen_epoch_seconds=self.last_seen_timestamp,
            rpc_capable=bool(self.rpc or self.gossip_rpc),
        )


class PodInfoList(BaseModel):
    """Collection of pods forming one snapshot of the network."""

    pods: list[PodInfo]
    total_count: Optional[int] = None

    @field_validator("pods", mode="before")
    @classmethod
    def skip_malformed_pods(cls, pods):
        """Drop pods that fail validation instead of rejecting the whole list."""
        if not isinstance(pods, list):
            return pods
        valid = []
        for raw in pods:
            try:
                valid.append(PodInfo.model_validate(raw))
            except SchemaError as e:
                logger.warning(f"Skipping malformed pod {raw!r}: {e.error_count()} validation errors")
        return valid

    def find(self, address: Optional[str] = None, pubkey: Optional[str] = None) -> PodInfo:
        """Find a pod by address or pubkey."""
        for pod in self.pods:
            if (address and pod.address == address) or (pubkey and pod.pubkey == pubkey):
                return pod
        raise ValueError(f"Pod {address or pubkey} not found in snapshot")

    def to_node_records(self) -> list[NodeRecord]:
        records = []
        for pod in self.pods:
            try:
                records.append(pod.to_node_record())
            except SchemaError as e:
                logger.warning(f"Skipping pod {pod.address!r}: {e.error_count()} validation errors")
        return records


class PodStats(BaseModel):
    """Raw result of a pNode's get-stats call."""

    active_streams: Optional[int] = None
    cpu_percent: Optional[float] = None
    current_index: Optional[int] = None
    file_size: Optional[int] = None
    last_updated: Optional[int] = None
    packets_received: Optional[int] = None
    packets_sent: Optional[int] = None
    ram_total: Optional[int] = None
    ram_used: Optional[int] = None
    total_bytes: Optional[int] = None
    total_pages: Optional[int] = None
    uptime: Optional[int] = None

    def to_node_stats(self) -> NodeStats:
        return NodeStats(
            cpu_percent=self.cpu_percent,
            ram_used_bytes=self.ram_used,
            ram_total_bytes=self.ram_total,
            uptime_seconds=self.uptime,
            total_bytes_stored=self.total_bytes,
            capacity_bytes=self.file_size,
            active_streams=self.active_streams,
            packets_received=self.packets_received,
            packets_sent=self.packets_sent,
        )
