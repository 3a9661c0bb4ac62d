"""Node schema - typed knowledge graph nodes.

A node is a shared base record (id, timestamps, title, body, tags) plus a
kind-specific payload. Payloads form a tagged union discriminated on their
`kind` literal, so a Statistic always carries a value/unit/context and an
Event always carries a time range.

Invariants:
- id is immutable and globally unique (uuid4)
- kind is immutable after creation and always equals payload.kind
- nodes are never hard-deleted; retraction is a soft flag kept for audit
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, model_validator


class NodeKind(str, Enum):
    """Node types in the knowledge graph."""

    CLAIM = "claim"
    AXIOM = "axiom"
    EVENT = "event"
    STATISTIC = "statistic"
    TEXT = "text"
    PERSON = "person"
    CONCEPT = "concept"


class ControversyLevel(str, Enum):
    """Derived classification of how contested a node's evidence is.

    Computed by the scorer on read. Never stored on the node.
    """

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SourceProvenance(BaseModel):
    """Where a piece of evidence comes from.

    archive_hash and archive_locator are filled in when the evidence content
    has been handed to the archival store.
    """

    author: Optional[str] = None
    title: Optional[str] = None
    publication_year: Optional[int] = None
    publisher: Optional[str] = None
    url: Optional[str] = None
    doi: Optional[str] = None
    isbn: Optional[str] = None
    archive_hash: Optional[str] = None
    archive_locator: Optional[str] = None

    def searchable_text(self) -> list[str]:
        return [t for t in (self.author, self.title, self.publisher) if t]


class ClaimPayload(BaseModel):
    """A claim as submitted: an image reference with caption."""

    kind: Literal[NodeKind.CLAIM] = NodeKind.CLAIM
    image_url: Optional[str] = None
    image_hash: Optional[str] = None
    caption: Optional[str] = None
    alt_text: Optional[str] = None

    def searchable_text(self) -> list[str]:
        return [t for t in (self.caption, self.alt_text) if t]


class AxiomPayload(BaseModel):
    kind: Literal[NodeKind.AXIOM] = NodeKind.AXIOM
    statement: str = ""
    formal_logic: Optional[str] = None
    tradition: Optional[str] = None

    def searchable_text(self) -> list[str]:
        return [t for t in (self.statement, self.tradition) if t]


class EventPayload(BaseModel):
    """An event with a time range and the granularity it is known at."""

    kind: Literal[NodeKind.EVENT] = NodeKind.EVENT
    description: str = ""
    location: Optional[str] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    precision: Literal["year", "month", "day", "approximate"] = "day"

    @model_validator(mode="after")
    def check_range(self) -> "EventPayload":
        if self.start and self.end and self.end < self.start:
            raise ValueError("Event end precedes start")
        return self

    def searchable_text(self) -> list[str]:
        return [t for t in (self.description, self.location) if t]


class StatisticPayload(BaseModel):
    """A measured number with its unit and measurement context."""

    kind: Literal[NodeKind.STATISTIC] = NodeKind.STATISTIC
    value: Optional[float] = None
    metric: str = ""
    unit: Optional[str] = None
    context: str = ""
    methodology: Optional[str] = None
    provenance: Optional[SourceProvenance] = None

    def searchable_text(self) -> list[str]:
        texts = [t for t in (self.metric, self.context, self.methodology) if t]
        if self.provenance:
            texts.extend(self.provenance.searchable_text())
        return texts


class TextPayload(BaseModel):
    kind: Literal[NodeKind.TEXT] = NodeKind.TEXT
    text: str = ""
    excerpt: Optional[str] = None
    provenance: Optional[SourceProvenance] = None

    def searchable_text(self) -> list[str]:
        texts = [t for t in (self.text, self.excerpt) if t]
        if self.provenance:
            texts.extend(self.provenance.searchable_text())
        return texts


class PersonPayload(BaseModel):
    kind: Literal[NodeKind.PERSON] = NodeKind.PERSON
    name: str = ""
    biography: str = ""
    notable_works: list[str] = Field(default_factory=list)
    born: Optional[datetime] = None
    died: Optional[datetime] = None

    def searchable_text(self) -> list[str]:
        return [t for t in (self.name, self.biography, *self.notable_works) if t]


class ConceptPayload(BaseModel):
    kind: Literal[NodeKind.CONCEPT] = NodeKind.CONCEPT
    definition: str = ""
    etymology: Optional[str] = None
    related_concepts: list[str] = Field(default_factory=list)

    def searchable_text(self) -> list[str]:
        return [
            t for t in (self.definition, self.etymology, *self.related_concepts) if t
        ]


NodePayload = Annotated[
    Union[
        ClaimPayload,
        AxiomPayload,
        EventPayload,
        StatisticPayload,
        TextPayload,
        PersonPayload,
        ConceptPayload,
    ],
    Field(discriminator="kind"),
]

PAYLOAD_TYPES: dict[NodeKind, type[BaseModel]] = {
    NodeKind.CLAIM: ClaimPayload,
    NodeKind.AXIOM: AxiomPayload,
    NodeKind.EVENT: EventPayload,
    NodeKind.STATISTIC: StatisticPayload,
    NodeKind.TEXT: TextPayload,
    NodeKind.PERSON: PersonPayload,
    NodeKind.CONCEPT: ConceptPayload,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NodeDraft(BaseModel):
    """Caller-supplied content for a new node.

    The store assigns id and timestamps. Used by the query interface so that
    callers never construct ids themselves.
    """

    kind: NodeKind
    title: str = Field(..., min_length=1)
    body: str = ""
    tags: set[str] = Field(default_factory=set)
    payload: Optional[NodePayload] = None


class Node(BaseModel):
    """A typed node in the knowledge graph.

    Attributes:
        id: Opaque unique key, immutable.
        kind: Node type, immutable after creation.
        title: Short human-readable label.
        body: Free text.
        tags: Free-form tags.
        payload: Kind-specific content (tagged union on kind).
        created_by: Identity public id of the creator, if known.
        retracted: Soft-delete flag. Retracted nodes stay addressable by id.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    kind: NodeKind
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    created_by: Optional[str] = None
    title: str = Field(..., min_length=1)
    body: str = ""
    tags: set[str] = Field(default_factory=set)
    payload: Optional[NodePayload] = None
    retracted: bool = False
    retracted_at: Optional[datetime] = None
    retracted_by: Optional[str] = None

    @model_validator(mode="after")
    def align_payload(self) -> "Node":
        """Default the payload for its kind and reject mismatched variants."""
        if self.payload is None:
            self.payload = PAYLOAD_TYPES[self.kind]()
        elif self.payload.kind != self.kind:
            raise ValueError(
                f"Payload kind {self.payload.kind.value} does not match node kind {self.kind.value}"
            )
        return self

    @classmethod
    def from_draft(cls, draft: NodeDraft, created_by: Optional[str] = None) -> "Node":
        return cls(
            kind=draft.kind,
            title=draft.title,
            body=draft.body,
            tags=set(draft.tags),
            payload=draft.payload,
            created_by=created_by,
        )

    def searchable_fields(self) -> tuple[str, list[str]]:
        """Return (title, other text fields) for text search."""
        others = [self.body, *sorted(self.tags)]
        if self.payload is not None:
            others.extend(self.payload.searchable_text())
        return self.title, [t for t in others if t]
