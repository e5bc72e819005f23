from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from pnode_analytics.core.schemas import CoreModel, NetworkAnalytics, PodCredits, ScoredNode


class CompareNodeQuery(BaseModel):
    """Reference to one node to compare, by address or pubkey"""

    address: Optional[str] = Field(default=None, description="Node address, e.g. 1.2.3.4:9001")
    pubkey: Optional[str] = Field(default=None, description="Node public key")

    @model_validator(mode="after")
    def require_reference(self):
        if not self.address and not self.pubkey:
            raise ValueError("Either address or pubkey is required")
        return self


class CompareRequest(BaseModel):
    """Request model for comparing nodes side by side"""

    nodes: List[CompareNodeQuery] = Field(..., description="Nodes to compare (2 to 5)")


class CreditsEntry(CoreModel):
    identity: str = Field(..., description="Pubkey when known, otherwise the address")
    address: str
    pubkey: Optional[str]
    credits: PodCredits


class CreditsResponse(CoreModel):
    """Pod Credits of every node in the snapshot"""

    latest_version: str
    evaluated_at: int = Field(..., description="Unix timestamp the scores refer to")
    credits: List[CreditsEntry]


class LeaderboardResponse(CoreModel):
    dimension: str
    latest_version: str
    enriched_nodes: int = Field(..., description="Nodes for which stats were fetched")
    nodes: List[ScoredNode]


class SummaryResponse(CoreModel):
    summary: str
    analytics: NetworkAnalytics
    generated_at: int
