"""Schema package for the knowledge graph, identities and read results.

All models are Pydantic v2. Node payloads form a tagged union keyed by
`kind`; controversy and effective weights are derived, never stored.

Primary exports:
- Node, NodeDraft, NodeKind and the per-kind payload models
- Edge, Relation, Vote, VerificationTally, EdgeStatus
- Identity, IdentityFlags
- Result shapes: ScoreBreakdown, TraversalResult, GraphPath, SearchHit, ...

Usage:
    from citadel_engine.data_management.schemas import Node, NodeKind, ClaimPayload
    node = Node(kind=NodeKind.CLAIM, title="Bots outnumber humans online",
                payload=ClaimPayload(caption="Dead internet"))
"""

from citadel_engine.data_management.schemas.node_schema import (
    PAYLOAD_TYPES,
    AxiomPayload,
    ClaimPayload,
    ConceptPayload,
    ControversyLevel,
    EventPayload,
    Node,
    NodeDraft,
    NodeKind,
    NodePayload,
    PersonPayload,
    SourceProvenance,
    StatisticPayload,
    TextPayload,
)
from citadel_engine.data_management.schemas.edge_schema import (
    Edge,
    EdgeStatus,
    Relation,
    VerificationTally,
    Vote,
)
from citadel_engine.data_management.schemas.identity_schema import (
    DeviceSignature,
    Identity,
    IdentityFlags,
)
from citadel_engine.data_management.schemas.result_schema import (
    AttachResult,
    EdgeContribution,
    GraphPath,
    IdentityProfile,
    NeighborLink,
    NodeNeighborhood,
    NodePage,
    QueueItem,
    ScoreBreakdown,
    SearchHit,
    SearchResults,
    TraversalResult,
)

__all__ = [
    # Nodes
    "PAYLOAD_TYPES",
    "AxiomPayload",
    "ClaimPayload",
    "ConceptPayload",
    "ControversyLevel",
    "EventPayload",
    "Node",
    "NodeDraft",
    "NodeKind",
    "NodePayload",
    "PersonPayload",
    "SourceProvenance",
    "StatisticPayload",
    "TextPayload",
    # Edges
    "Edge",
    "EdgeStatus",
    "Relation",
    "VerificationTally",
    "Vote",
    # Identities
    "DeviceSignature",
    "Identity",
    "IdentityFlags",
    # Results
    "AttachResult",
    "EdgeContribution",
    "GraphPath",
    "IdentityProfile",
    "NeighborLink",
    "NodeNeighborhood",
    "NodePage",
    "QueueItem",
    "ScoreBreakdown",
    "SearchHit",
    "SearchResults",
    "TraversalResult",
]
