"""Graph storage adapter for typed nodes and typed, weighted, directed edges.

Features:
- GraphStore abstract contract, injected into the engines (no global store)
- InMemoryGraphStore reference backend with optional JSON snapshot persistence
- O(1) lookup by node id and edge id
- Adjacency indexes (outgoing/incoming) and a kind index
- Soft retraction: nothing is hard-deleted, retracted entities stay addressable by id
- Per-edge vote locks so concurrent votes never lose a tally update
- Every lock acquisition is bounded and raises Timeout instead of hanging

Reads return deep copies, so callers always hold a point-in-time view of
each entity and can never mutate store internals.
"""

import asyncio
import json
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Iterable, List, Literal, Optional

import structlog

from citadel_engine.config.settings import settings
from citadel_engine.data_management.schemas import (
    Edge,
    EdgeStatus,
    Node,
    NodeKind,
    NodeNeighborhood,
    NodePage,
    NeighborLink,
    NodePayload,
    Relation,
    SearchHit,
    VerificationTally,
    Vote,
)
from citadel_engine.data_management.text_search import rank_nodes
from citadel_engine.errors import (
    AlreadyVoted,
    DanglingReference,
    EdgeNotFound,
    EdgeRetracted,
    ImmutableFieldError,
    NodeNotFound,
    Timeout,
)

Direction = Literal["outgoing", "incoming", "both"]


class GraphStore(ABC):
    """Contract every graph persistence backend must satisfy.

    In-memory, relational and native graph backends all implement this
    interface. Engines depend only on it.
    """

    @abstractmethod
    async def create_node(self, node: Node) -> Node:
        """Insert a node. Returns the stored copy."""

    @abstractmethod
    async def get_node(self, node_id: str) -> Node:
        """Fetch a node by id, retracted or not. Raises NodeNotFound."""

    @abstractmethod
    async def update_node(
        self,
        node_id: str,
        *,
        title: Optional[str] = None,
        body: Optional[str] = None,
        tags: Optional[set[str]] = None,
        payload: Optional[NodePayload] = None,
    ) -> Node:
        """Update mutable node fields. id and kind never change."""

    @abstractmethod
    async def retract_node(self, node_id: str, retracted_by: Optional[str] = None) -> Node:
        """Soft-delete a node."""

    @abstractmethod
    async def create_edge(self, edge: Edge) -> Edge:
        """Insert an edge. Raises DanglingReference if an endpoint is missing."""

    @abstractmethod
    async def get_edge(self, edge_id: str) -> Edge:
        """Fetch an edge by id. Raises EdgeNotFound."""

    @abstractmethod
    async def retract_edge(self, edge_id: str, retracted_by: Optional[str] = None) -> Edge:
        """Soft-delete an edge."""

    @abstractmethod
    async def edges_of(
        self,
        node_id: str,
        direction: Direction = "both",
        relations: Optional[Iterable[Relation]] = None,
        include_retracted: bool = False,
    ) -> List[Edge]:
        """Edges touching a node, in creation order.

        By default an edge is hidden once it or either endpoint is retracted.
        """

    @abstractmethod
    async def list_edges(
        self,
        relations: Optional[Iterable[Relation]] = None,
        include_retracted: bool = False,
    ) -> List[Edge]:
        """All edges in creation order, optionally restricted to relations."""

    @abstractmethod
    async def get_node_with_neighbors(
        self, node_id: str, include_retracted: bool = False
    ) -> NodeNeighborhood:
        """The node plus one hop of edges annotated with direction."""

    @abstractmethod
    async def get_nodes_by_kind(
        self, kind: NodeKind, page: int = 1, page_size: int = 20
    ) -> NodePage:
        """Non-retracted nodes of one kind, oldest first, paginated."""

    @abstractmethod
    async def list_nodes(
        self,
        kinds: Optional[Iterable[NodeKind]] = None,
        include_retracted: bool = False,
    ) -> List[Node]:
        """All nodes, optionally restricted to kinds."""

    @abstractmethod
    async def search_text(
        self,
        query: str,
        limit: int = 20,
        kinds: Optional[Iterable[NodeKind]] = None,
    ) -> List[SearchHit]:
        """Ranked case-insensitive text search over non-retracted nodes."""

    @abstractmethod
    async def record_vote(
        self, edge_id: str, voter_id: str, vote: Vote, weight: float
    ) -> VerificationTally:
        """Atomically add one vote to an edge tally. Raises AlreadyVoted, EdgeRetracted."""

    @abstractmethod
    async def stats(self) -> Dict[str, Any]:
        """Storage statistics."""


class InMemoryGraphStore(GraphStore):
    """
    In-memory graph store with optional JSON snapshot persistence.

    For tests and single-process deployments. A production backend would
    implement GraphStore against a database.

    Indexes:
    - _nodes: node_id -> Node
    - _edges: edge_id -> Edge
    - _outgoing / _incoming: node_id -> list[edge_id] in creation order
    - _kind_index: kind -> list[node_id] in creation order

    Locking:
    - _lock serializes structural writes (create, update, retract)
    - _edge_locks serialize votes per edge; votes on different edges never contend
    - reads take no lock
    """

    def __init__(
        self,
        persistence_path: Optional[str] = None,
        timeout_secs: Optional[float] = None,
    ) -> None:
        """
        Initialize graph store.

        Args:
            persistence_path: Optional path to JSON file for persistence.
                            If None, storage is memory-only.
            timeout_secs: Lock acquisition budget. Defaults to settings.store_timeout_secs.
        """
        self._nodes: Dict[str, Node] = {}
        self._edges: Dict[str, Edge] = {}
        self._outgoing: Dict[str, List[str]] = {}
        self._incoming: Dict[str, List[str]] = {}
        self._kind_index: Dict[NodeKind, List[str]] = {}

        self._lock = asyncio.Lock()
        self._edge_locks: Dict[str, asyncio.Lock] = {}
        self.timeout_secs = timeout_secs or settings.store_timeout_secs
        self.persistence_path = Path(persistence_path) if persistence_path else None
        self._logger = structlog.get_logger().bind(component="GraphStore")

        if self.persistence_path and self.persistence_path.exists():
            self._load_from_file()

        self._logger.info(
            "graph_store_initialized",
            persistence_enabled=self.persistence_path is not None,
            nodes=len(self._nodes),
            edges=len(self._edges),
        )

    @asynccontextmanager
    async def _guard(self, lock: asyncio.Lock, operation: str) -> AsyncIterator[None]:
        """Hold a lock, giving up with Timeout after timeout_secs."""
        try:
            await asyncio.wait_for(lock.acquire(), timeout=self.timeout_secs)
        except asyncio.TimeoutError as e:
            self._logger.warning("lock_timeout", operation=operation, seconds=self.timeout_secs)
            raise Timeout(operation, self.timeout_secs) from e
        try:
            yield
        finally:
            lock.release()

    # ── Nodes ──────────────────────────────────────────────────────────────

    async def create_node(self, node: Node) -> Node:
        async with self._guard(self._lock, "create_node"):
            if node.id in self._nodes:
                raise ImmutableFieldError(f"Node id already exists: {node.id}")

            stored = node.model_copy(deep=True)
            self._nodes[stored.id] = stored
            self._outgoing.setdefault(stored.id, [])
            self._incoming.setdefault(stored.id, [])
            self._kind_index.setdefault(stored.kind, []).append(stored.id)

            self._persist()
            self._logger.debug("node_created", node_id=stored.id, kind=stored.kind.value)
            return stored.model_copy(deep=True)

    async def get_node(self, node_id: str) -> Node:
        node = self._nodes.get(node_id)
        if node is None:
            raise NodeNotFound(node_id)
        return node.model_copy(deep=True)

    async def update_node(
        self,
        node_id: str,
        *,
        title: Optional[str] = None,
        body: Optional[str] = None,
        tags: Optional[set[str]] = None,
        payload: Optional[NodePayload] = None,
    ) -> Node:
        async with self._guard(self._lock, "update_node"):
            current = self._nodes.get(node_id)
            if current is None:
                raise NodeNotFound(node_id)
            if payload is not None and payload.kind != current.kind:
                raise ImmutableFieldError(
                    f"Node {node_id} is {current.kind.value}; cannot take a {payload.kind.value} payload"
                )

            changes: Dict[str, Any] = {"updated_at": datetime.now(timezone.utc)}
            if title is not None:
                changes["title"] = title
            if body is not None:
                changes["body"] = body
            if tags is not None:
                changes["tags"] = set(tags)
            if payload is not None:
                changes["payload"] = payload

            updated = Node.model_validate({**current.model_dump(), **changes})
            self._nodes[node_id] = updated

            self._persist()
            self._logger.debug("node_updated", node_id=node_id, fields=sorted(changes))
            return updated.model_copy(deep=True)

    async def retract_node(self, node_id: str, retracted_by: Optional[str] = None) -> Node:
        async with self._guard(self._lock, "retract_node"):
            node = self._nodes.get(node_id)
            if node is None:
                raise NodeNotFound(node_id)
            if not node.retracted:
                node.retracted = True
                node.retracted_at = datetime.now(timezone.utc)
                node.retracted_by = retracted_by
                node.updated_at = node.retracted_at
                self._persist()
                self._logger.info("node_retracted", node_id=node_id, retracted_by=retracted_by)
            return node.model_copy(deep=True)

    async def get_nodes_by_kind(
        self, kind: NodeKind, page: int = 1, page_size: int = 20
    ) -> NodePage:
        page = max(1, page)
        page_size = max(1, page_size)
        ids = [
            node_id
            for node_id in self._kind_index.get(kind, [])
            if not self._nodes[node_id].retracted
        ]
        start = (page - 1) * page_size
        selected = ids[start:start + page_size]
        return NodePage(
            items=[self._nodes[node_id].model_copy(deep=True) for node_id in selected],
            page=page,
            page_size=page_size,
            total=len(ids),
        )

    async def list_nodes(
        self,
        kinds: Optional[Iterable[NodeKind]] = None,
        include_retracted: bool = False,
    ) -> List[Node]:
        wanted = set(kinds) if kinds else None
        return [
            node.model_copy(deep=True)
            for node in self._nodes.values()
            if (include_retracted or not node.retracted)
            and (wanted is None or node.kind in wanted)
        ]

    async def search_text(
        self,
        query: str,
        limit: int = 20,
        kinds: Optional[Iterable[NodeKind]] = None,
    ) -> List[SearchHit]:
        candidates = await self.list_nodes(kinds=kinds)
        hits = rank_nodes(candidates, query, limit)
        self._logger.debug("search_completed", query=query, hits=len(hits))
        return hits

    # ── Edges ──────────────────────────────────────────────────────────────

    async def create_edge(self, edge: Edge) -> Edge:
        async with self._guard(self._lock, "create_edge"):
            missing = [
                node_id
                for node_id in (edge.source_id, edge.target_id)
                if node_id not in self._nodes
            ]
            if missing:
                raise DanglingReference(edge.id, missing)
            if edge.id in self._edges:
                raise ImmutableFieldError(f"Edge id already exists: {edge.id}")

            stored = edge.model_copy(deep=True)
            self._edges[stored.id] = stored
            self._outgoing[stored.source_id].append(stored.id)
            self._incoming[stored.target_id].append(stored.id)
            self._edge_locks[stored.id] = asyncio.Lock()

            self._persist()
            self._logger.debug(
                "edge_created",
                edge_id=stored.id,
                source_id=stored.source_id,
                target_id=stored.target_id,
                relation=stored.relation.value,
            )
            return stored.model_copy(deep=True)

    async def get_edge(self, edge_id: str) -> Edge:
        edge = self._edges.get(edge_id)
        if edge is None:
            raise EdgeNotFound(edge_id)
        return edge.model_copy(deep=True)

    async def retract_edge(self, edge_id: str, retracted_by: Optional[str] = None) -> Edge:
        if edge_id not in self._edges:
            raise EdgeNotFound(edge_id)
        async with self._guard(self._edge_lock(edge_id), "retract_edge"):
            edge = self._edges[edge_id]
            if not edge.retracted:
                edge.retracted = True
                edge.retracted_at = datetime.now(timezone.utc)
                edge.retracted_by = retracted_by
                self._persist()
                self._logger.info("edge_retracted", edge_id=edge_id, retracted_by=retracted_by)
            return edge.model_copy(deep=True)

    async def edges_of(
        self,
        node_id: str,
        direction: Direction = "both",
        relations: Optional[Iterable[Relation]] = None,
        include_retracted: bool = False,
    ) -> List[Edge]:
        if node_id not in self._nodes:
            raise NodeNotFound(node_id)

        edge_ids: List[str] = []
        if direction in ("outgoing", "both"):
            edge_ids.extend(self._outgoing.get(node_id, []))
        if direction in ("incoming", "both"):
            # Self-loops appear in both lists
            edge_ids.extend(
                eid for eid in self._incoming.get(node_id, []) if eid not in edge_ids
            )

        wanted = set(relations) if relations else None
        return [
            self._edges[eid].model_copy(deep=True)
            for eid in edge_ids
            if (include_retracted or self._is_live(self._edges[eid]))
            and (wanted is None or self._edges[eid].relation in wanted)
        ]

    async def list_edges(
        self,
        relations: Optional[Iterable[Relation]] = None,
        include_retracted: bool = False,
    ) -> List[Edge]:
        wanted = set(relations) if relations else None
        return [
            edge.model_copy(deep=True)
            for edge in self._edges.values()
            if (include_retracted or self._is_live(edge))
            and (wanted is None or edge.relation in wanted)
        ]

    def _is_live(self, edge: Edge) -> bool:
        """An edge is live while it and both of its endpoints are unretracted."""
        return not (
            edge.retracted
            or self._nodes[edge.source_id].retracted
            or self._nodes[edge.target_id].retracted
        )

    async def get_node_with_neighbors(
        self, node_id: str, include_retracted: bool = False
    ) -> NodeNeighborhood:
        node = await self.get_node(node_id)
        links: List[NeighborLink] = []
        for edge in await self.edges_of(node_id, "both", include_retracted=include_retracted):
            other = self._nodes[edge.other_end(node_id)]
            if other.retracted and not include_retracted:
                continue
            links.append(
                NeighborLink(
                    edge=edge,
                    direction="outgoing" if edge.source_id == node_id else "incoming",
                    node=other.model_copy(deep=True),
                )
            )
        return NodeNeighborhood(node=node, links=links)

    async def record_vote(
        self, edge_id: str, voter_id: str, vote: Vote, weight: float
    ) -> VerificationTally:
        """
        Add one vote to an edge tally.

        Serialized per edge: the read-check-write of the tally happens under
        the edge's lock, so concurrent votes never lose an update.

        Args:
            edge_id: Edge being verified
            voter_id: Voting identity public id
            vote: agree or disagree
            weight: Trust weight of this vote

        Returns:
            Copy of the updated tally

        Raises:
            EdgeNotFound: Unknown edge
            EdgeRetracted: Edge or one of its endpoints has been retracted (tally unchanged)
            AlreadyVoted: voter_id has already voted on this edge (tally unchanged)
        """
        if edge_id not in self._edges:
            raise EdgeNotFound(edge_id)

        async with self._guard(self._edge_lock(edge_id), "record_vote"):
            edge = self._edges[edge_id]
            if not self._is_live(edge):
                raise EdgeRetracted(edge_id)
            if voter_id in edge.votes:
                raise AlreadyVoted(edge_id, voter_id)

            tally = edge.tally.model_copy()
            if vote == Vote.AGREE:
                tally.agree += 1
                tally.agree_weight += weight
            else:
                tally.disagree += 1
                tally.disagree_weight += weight

            edge.votes[voter_id] = vote
            edge.tally = tally
            if edge.consensus is None and tally.status() != EdgeStatus.PENDING:
                edge.consensus = tally.status()
                edge.consensus_at_votes = tally.total

            self._persist()
            self._logger.debug(
                "vote_recorded",
                edge_id=edge_id,
                voter_id=voter_id,
                vote=vote.value,
                agree=tally.agree,
                disagree=tally.disagree,
            )
            return tally.model_copy()

    def _edge_lock(self, edge_id: str) -> asyncio.Lock:
        return self._edge_locks.setdefault(edge_id, asyncio.Lock())

    # ── Stats & persistence ────────────────────────────────────────────────

    async def stats(self) -> Dict[str, Any]:
        kind_counts = {
            kind.value: len(ids) for kind, ids in self._kind_index.items()
        }
        relation_counts: Dict[str, int] = {}
        for edge in self._edges.values():
            relation_counts[edge.relation.value] = relation_counts.get(edge.relation.value, 0) + 1

        return {
            "total_nodes": len(self._nodes),
            "total_edges": len(self._edges),
            "retracted_nodes": sum(1 for n in self._nodes.values() if n.retracted),
            "retracted_edges": sum(1 for e in self._edges.values() if e.retracted),
            "nodes_by_kind": kind_counts,
            "edges_by_relation": relation_counts,
            "persistence_enabled": self.persistence_path is not None,
            "persistence_path": str(self.persistence_path) if self.persistence_path else None,
        }

    def _persist(self) -> None:
        if self.persistence_path:
            self._save_to_file()

    def _save_to_file(self) -> None:
        """Save current storage to JSON file (synchronous)."""
        if not self.persistence_path:
            return

        try:
            self.persistence_path.parent.mkdir(parents=True, exist_ok=True)
            data = {
                "nodes": {nid: n.model_dump(mode="json") for nid, n in self._nodes.items()},
                "edges": {eid: e.model_dump(mode="json") for eid, e in self._edges.items()},
            }
            with open(self.persistence_path, "w") as f:
                json.dump(data, f, indent=2, default=str)
        except Exception as e:
            self._logger.error("persistence_failed", path=str(self.persistence_path), error=str(e))

    def _load_from_file(self) -> None:
        """Load storage from JSON file and rebuild indexes (synchronous)."""
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            with open(self.persistence_path, "r") as f:
                data = json.load(f)

            self._nodes = {
                nid: Node.model_validate(raw) for nid, raw in data.get("nodes", {}).items()
            }
            self._edges = {
                eid: Edge.model_validate(raw) for eid, raw in data.get("edges", {}).items()
            }
            self._rebuild_indexes()

            self._logger.info(
                "graph_store_loaded",
                path=str(self.persistence_path),
                nodes=len(self._nodes),
                edges=len(self._edges),
            )
        except Exception as e:
            self._logger.error("load_failed", path=str(self.persistence_path), error=str(e))
            self._nodes = {}
            self._edges = {}
            self._rebuild_indexes()

    def _rebuild_indexes(self) -> None:
        """Rebuild adjacency and kind indexes from storage."""
        self._outgoing = {nid: [] for nid in self._nodes}
        self._incoming = {nid: [] for nid in self._nodes}
        self._kind_index = {}
        self._edge_locks = {}

        for node in sorted(self._nodes.values(), key=lambda n: n.created_at):
            self._kind_index.setdefault(node.kind, []).append(node.id)

        for edge in sorted(self._edges.values(), key=lambda e: e.created_at):
            self._outgoing.setdefault(edge.source_id, []).append(edge.id)
            self._incoming.setdefault(edge.target_id, []).append(edge.id)
            self._edge_locks[edge.id] = asyncio.Lock()
