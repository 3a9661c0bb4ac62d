"""Storage layer: graph store, identity store, archival contract and text search."""

from citadel_engine.data_management.archive_store import (
    ArchiveReceipt,
    ArchiveStore,
    InMemoryArchiveStore,
)
from citadel_engine.data_management.graph_store import GraphStore, InMemoryGraphStore
from citadel_engine.data_management.identity_store import IdentityStore, InMemoryIdentityStore

__all__ = [
    "ArchiveReceipt",
    "ArchiveStore",
    "InMemoryArchiveStore",
    "GraphStore",
    "InMemoryGraphStore",
    "IdentityStore",
    "InMemoryIdentityStore",
]
