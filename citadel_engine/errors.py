"""Error taxonomy for the Citadel knowledge graph engine.

Creation and vote operations surface these verbatim to callers. Read
operations only raise for a nonexistent root; empty results are values.
"""

from typing import Optional


class CitadelError(Exception):
    """Base class for all engine errors."""


class NodeNotFound(CitadelError):
    """Raised when a node id does not exist in the store."""

    def __init__(self, node_id: str) -> None:
        super().__init__(f"Node not found: {node_id}")
        self.node_id = node_id


class EdgeNotFound(CitadelError):
    """Raised when an edge id does not exist in the store."""

    def __init__(self, edge_id: str) -> None:
        super().__init__(f"Edge not found: {edge_id}")
        self.edge_id = edge_id


class NodeRetracted(CitadelError):
    """Raised when a command targets a node that has been soft-deleted."""

    def __init__(self, node_id: str) -> None:
        super().__init__(f"Node has been retracted: {node_id}")
        self.node_id = node_id


class EdgeRetracted(CitadelError):
    """Raised when a vote targets an edge that has been soft-deleted."""

    def __init__(self, edge_id: str) -> None:
        super().__init__(f"Edge has been retracted: {edge_id}")
        self.edge_id = edge_id


class IdentityNotFound(CitadelError):
    """Raised when an identity public id is unknown."""

    def __init__(self, public_id: str) -> None:
        super().__init__(f"Identity not found: {public_id}")
        self.public_id = public_id


class DanglingReference(CitadelError):
    """Raised when an edge endpoint does not reference an existing node."""

    def __init__(self, edge_id: str, missing_ids: list[str]) -> None:
        super().__init__(
            f"Edge {edge_id} references missing node(s): {', '.join(missing_ids)}"
        )
        self.edge_id = edge_id
        self.missing_ids = missing_ids


class SignatureIncomplete(CitadelError):
    """Raised when a device signature lacks enough distinguishing attributes."""

    def __init__(self, present: int, required: int) -> None:
        super().__init__(
            f"Signature has {present} distinguishing attributes, {required} required"
        )
        self.present = present
        self.required = required


class AlreadyVoted(CitadelError):
    """Raised when an identity votes a second time on the same edge."""

    def __init__(self, edge_id: str, voter_id: str) -> None:
        super().__init__(f"Identity {voter_id} already voted on edge {edge_id}")
        self.edge_id = edge_id
        self.voter_id = voter_id


class Timeout(CitadelError, TimeoutError):
    """Raised when a store operation cannot complete within its time budget."""

    def __init__(self, operation: str, seconds: float) -> None:
        super().__init__(f"{operation} timed out after {seconds}s")
        self.operation = operation
        self.seconds = seconds


class RateLimitExceeded(CitadelError):
    """Raised by the query interface when an identity exceeds its tier limits."""

    def __init__(
        self,
        public_id: str,
        window: str,
        limit: int,
        retry_after_secs: Optional[float] = None,
    ) -> None:
        super().__init__(
            f"Identity {public_id} exceeded {limit} submissions per {window}"
        )
        self.public_id = public_id
        self.window = window
        self.limit = limit
        self.retry_after_secs = retry_after_secs


class ImmutableFieldError(CitadelError, ValueError):
    """Raised when an update tries to change an immutable field (id, kind)."""


class TransientStoreError(CitadelError):
    """Recoverable backend failure. Read paths retry these with backoff."""


__all__ = [
    "CitadelError",
    "NodeNotFound",
    "EdgeNotFound",
    "NodeRetracted",
    "EdgeRetracted",
    "IdentityNotFound",
    "DanglingReference",
    "SignatureIncomplete",
    "AlreadyVoted",
    "Timeout",
    "RateLimitExceeded",
    "ImmutableFieldError",
    "TransientStoreError",
]
