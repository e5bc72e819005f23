from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel

from pnode_analytics.core.versions import UNKNOWN_VERSION, normalize_version


class CoreModel(BaseModel):
    """Immutable base for every value the core produces.

    Attributes are snake_case in Python and camelCase on the wire.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    OFFLINE = "offline"


class NodeRecord(CoreModel):
    """Identity and liveness facts about one pNode."""

    address: str = Field(..., min_length=1, description="Network endpoint, unique per snapshot")
    pubkey: Optional[str] = Field(default=None, description="Cryptographic identity")
    version: str = Field(default=UNKNOWN_VERSION, description="Reported software version")
    last_seen_epoch_seconds: int = Field(..., description="Unix timestamp of the last heartbeat")
    rpc_capable: bool = Field(default=False, description="Exposes an RPC or gossip-RPC endpoint")

    @field_validator("version", mode="before")
    @classmethod
    def unknown_when_blank(cls, v):
        return normalize_version(v)

    @field_validator("pubkey", mode="before")
    @classmethod
    def blank_pubkey_is_missing(cls, v):
        if v is None or not str(v).strip():
            return None
        return str(v).strip()

    @property
    def identity(self) -> str:
        """Preferred join key: the pubkey when known, otherwise the address."""
        return self.pubkey or self.address


class NodeStats(CoreModel):
    """Resource and throughput facts for one node. ``None`` means unknown."""

    cpu_percent: Optional[float] = None
    ram_used_bytes: Optional[int] = None
    ram_total_bytes: Optional[int] = None
    uptime_seconds: Optional[int] = None
    total_bytes_stored: Optional[int] = None
    capacity_bytes: Optional[int] = None
    active_streams: Optional[int] = None
    packets_received: Optional[int] = None
    packets_sent: Optional[int] = None

    @property
    def ram_percent(self) -> Optional[float]:
        if self.ram_used_bytes is None or not self.ram_total_bytes:
            return None
        return self.ram_used_bytes / self.ram_total_bytes * 100


class PodCredits(CoreModel):
    """0-100 composite node score split into its three named sub-scores."""

    uptime: int = Field(..., ge=0, le=40)
    rpc: int = Field(..., ge=0, le=30)
    version: int = Field(..., ge=0, le=30)

    @computed_field
    @property
    def total(self) -> int:
        return self.uptime + self.rpc + self.version


class NetworkTotals(CoreModel):
    total: int
    healthy: int
    degraded: int
    offline: int


class HealthSummary(CoreModel):
    score: int = Field(..., ge=0, le=100)
    healthy_percentage: float
    degraded_percentage: float
    offline_percentage: float


class VersionSummary(CoreModel):
    latest: str
    distribution: Dict[str, int]
    outdated_count: int
    outdated_percentage: float


class RiskFlags(CoreModel):
    single_version_dominance: bool
    low_health_nodes: int
    stale_nodes: int


class PerformanceSummary(CoreModel):
    average_cpu: float
    average_ram: float
    average_uptime: int
    reporting_nodes: int
    has_data: bool


class StorageSummary(CoreModel):
    total_capacity: int
    total_stored: int
    average_per_node: float
    utilization_percentage: float


class NetworkAnalytics(CoreModel):
    """Read-only, freshly computed view over one snapshot."""

    totals: NetworkTotals
    health: HealthSummary
    versions: VersionSummary
    risks: RiskFlags
    performance: PerformanceSummary
    storage: StorageSummary


class ScoredNode(CoreModel):
    node: NodeRecord
    credits: PodCredits
    stats: Optional[NodeStats] = None
    rank: Optional[int] = None


class ComparisonEntry(CoreModel):
    node_number: int
    address: str
    pubkey: Optional[str]
    version: str
    minutes_since_seen: float
    uptime_rating: str
    is_latest_version: bool
    has_rpc: bool
    credits: PodCredits


class ComparisonWinner(CoreModel):
    node_number: int
    address: str
    pubkey: Optional[str]
    credits: int


class ComparisonResult(CoreModel):
    """Side-by-side breakdown, detailed enough to narrate without recomputing."""

    entries: List[ComparisonEntry]
    winner: Optional[ComparisonWinner]
    is_tie: bool
    latest_version: str
    margin: int
