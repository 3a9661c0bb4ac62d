"""Edge schema - typed, weighted, directed relationships between nodes.

Raw weight is the creator's initial confidence (set from their trust tier)
and is never mutated after creation. Community verification only changes
the tally; effective weight is derived by the scorer on read.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from citadel_engine.config.scoring_policy import (
    CONSENSUS_DISPUTED_RATIO,
    CONSENSUS_MIN_VOTES,
    CONSENSUS_VERIFIED_RATIO,
)


class Relation(str, Enum):
    """Relationship types between nodes."""

    SUPPORTS = "supports"
    DISPUTES = "disputes"
    DERIVES_FROM = "derives_from"
    CITES = "cites"
    CONTEXT = "context"
    RELATED = "related"
    CHALLENGES = "challenges"
    ADDRESSES = "addresses"
    PARALLELS = "parallels"
    INFLUENCED = "influenced"
    EXPANDS = "expands"


class Vote(str, Enum):
    AGREE = "agree"
    DISAGREE = "disagree"


class EdgeStatus(str, Enum):
    """Community consensus on an edge.

    PENDING: fewer than CONSENSUS_MIN_VOTES votes, or no clear majority.
    VERIFIED: agree ratio at or above CONSENSUS_VERIFIED_RATIO.
    DISPUTED: agree ratio at or below CONSENSUS_DISPUTED_RATIO.
    """

    PENDING = "pending"
    VERIFIED = "verified"
    DISPUTED = "disputed"


class VerificationTally(BaseModel):
    """Vote counts and trust-weighted vote mass for one edge."""

    agree: int = Field(0, ge=0)
    disagree: int = Field(0, ge=0)
    agree_weight: float = Field(0.0, ge=0.0)
    disagree_weight: float = Field(0.0, ge=0.0)

    @property
    def total(self) -> int:
        return self.agree + self.disagree

    def status(
        self,
        min_votes: int = CONSENSUS_MIN_VOTES,
        verified_ratio: float = CONSENSUS_VERIFIED_RATIO,
        disputed_ratio: float = CONSENSUS_DISPUTED_RATIO,
    ) -> EdgeStatus:
        if self.total < min_votes:
            return EdgeStatus.PENDING
        ratio = self.agree / self.total
        if ratio >= verified_ratio:
            return EdgeStatus.VERIFIED
        if ratio <= disputed_ratio:
            return EdgeStatus.DISPUTED
        return EdgeStatus.PENDING


class Edge(BaseModel):
    """A directed relationship source -> target.

    Attributes:
        relation: Relationship type.
        weight: Initial confidence in [0, 1], immutable after creation.
        created_by: Identity public id of the creator.
        votes: voter public id -> vote. One vote per identity.
        tally: Aggregated votes, mutated only through the store's vote path.
        consensus: First non-pending status the tally reached, fixed once set.
        consensus_at_votes: Vote count at which consensus was first reached.
        retracted: Soft-delete flag.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    source_id: str
    target_id: str
    relation: Relation
    weight: float = Field(..., ge=0.0, le=1.0)
    created_by: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    explanation: Optional[str] = None
    votes: dict[str, Vote] = Field(default_factory=dict)
    tally: VerificationTally = Field(default_factory=VerificationTally)
    consensus: Optional[EdgeStatus] = None
    consensus_at_votes: Optional[int] = None
    retracted: bool = False
    retracted_at: Optional[datetime] = None
    retracted_by: Optional[str] = None

    @property
    def verifier_ids(self) -> set[str]:
        return set(self.votes)

    @property
    def status(self) -> EdgeStatus:
        return self.tally.status()

    def other_end(self, node_id: str) -> str:
        """Return the endpoint opposite to node_id."""
        return self.target_id if node_id == self.source_id else self.source_id
