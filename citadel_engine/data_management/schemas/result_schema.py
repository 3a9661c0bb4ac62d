"""Read-side result shapes returned by the store, engines and query interface."""

from typing import Literal, Optional

from pydantic import BaseModel, Field

from citadel_engine.data_management.schemas.edge_schema import Edge, Relation
from citadel_engine.data_management.schemas.identity_schema import Identity
from citadel_engine.data_management.schemas.node_schema import ControversyLevel, Node


class NodePage(BaseModel):
    """One page of nodes of a single kind."""

    items: list[Node] = Field(default_factory=list)
    page: int = Field(1, ge=1)
    page_size: int = Field(20, ge=1)
    total: int = Field(0, ge=0)

    @property
    def has_next(self) -> bool:
        return self.page * self.page_size < self.total


class NeighborLink(BaseModel):
    """One hop from a node: the edge, its direction, and the node at the other end."""

    edge: Edge
    direction: Literal["outgoing", "incoming"]
    node: Node


class NodeNeighborhood(BaseModel):
    node: Node
    links: list[NeighborLink] = Field(default_factory=list)


class SearchHit(BaseModel):
    """A node matched by text search.

    tier: 3 exact phrase, 2 all tokens present, 1 any token present.
    """

    node: Node
    tier: int = Field(..., ge=1, le=3)
    title_hits: int = 0
    token_hits: int = 0


class SearchResults(BaseModel):
    """Search split into claims and everything that can serve as evidence."""

    query: str
    claims: list[SearchHit] = Field(default_factory=list)
    evidence_nodes: list[SearchHit] = Field(default_factory=list)


class TraversalResult(BaseModel):
    """Nodes and edges reached from a root within a depth bound.

    depths maps node id -> hop distance from the root.
    total_weight is the sum of effective weights of returned edges.
    """

    root_id: str
    nodes: list[Node] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)
    depths: dict[str, int] = Field(default_factory=dict)
    total_weight: float = 0.0


class GraphPath(BaseModel):
    """A path of nodes joined by edges. len(edges) == len(nodes) - 1."""

    nodes: list[Node] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)
    total_weight: float = 0.0

    @property
    def hops(self) -> int:
        return len(self.edges)


class EdgeContribution(BaseModel):
    """How one edge fed into a Citadel Score. Kept for audit and debugging."""

    edge_id: str
    relation: Relation
    created_by: str
    raw_weight: float
    trust_factor: float
    verification_multiplier: float
    duplicate_discount: float
    effective_weight: float


class ScoreBreakdown(BaseModel):
    """Citadel Score for one node.

    Attributes:
        verified_count: Incoming supports edges.
        disputed_count: Incoming disputes edges.
        pending_count: Supports/disputes edges without community consensus yet.
        context_count: Incoming context/related edges (informational only).
        supporting_weight: Sum of effective weight over supports edges.
        disputing_weight: Sum of effective weight over disputes edges.
        trust_weighted_score: supporting_weight - 0.5 x disputing_weight.
        controversy: Derived low/medium/high classification.
    """

    node_id: str
    verified_count: int = 0
    disputed_count: int = 0
    pending_count: int = 0
    context_count: int = 0
    supporting_weight: float = 0.0
    disputing_weight: float = 0.0
    trust_weighted_score: float = 0.0
    controversy: ControversyLevel = ControversyLevel.LOW
    contributions: list[EdgeContribution] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return self.verified_count + self.disputed_count

    @property
    def disputed_share(self) -> float:
        total_weight = self.supporting_weight + self.disputing_weight
        if total_weight <= 0:
            return 0.0
        return self.disputing_weight / total_weight


class AttachResult(BaseModel):
    node_id: str
    edge_id: str
    archive_hash: Optional[str] = None


class QueueItem(BaseModel):
    """An evidence edge awaiting (or past) community verification.

    submitter is None when the edge creator is no longer a known identity.
    """

    edge: Edge
    evidence: Node
    claim: Node
    submitter: Optional[Identity] = None


class IdentityProfile(BaseModel):
    """An identity with its live contributions, oldest first."""

    identity: Identity
    claims: list[Node] = Field(default_factory=list)
    evidence: list[Node] = Field(default_factory=list)
