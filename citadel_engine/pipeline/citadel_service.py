"""Query and command interface over the Citadel knowledge graph.

The only surface presentation code talks to. Wires the graph store, the
identity subsystem, the scorer and the traversal engine together, and owns
the cross-cutting rules:

- Create endpoints resolve the acting identity and enforce trust-tier
  submission limits
- New edges get their initial weight from the creator's trust tier
- Votes are weighted by voter trust; voters are credited for accuracy once
  the edge reaches consensus
- Read endpoints retry transient store failures with exponential backoff

Usage:
    from citadel_engine.pipeline import CitadelService

    service = CitadelService()
    identity = await service.derive_identity(signature)
    claim_id = await service.create_claim(draft, identity.public_id)
    breakdown = await service.score(claim_id)
"""

from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from citadel_engine.config.settings import settings
from citadel_engine.data_management.archive_store import ArchiveStore, Content, InMemoryArchiveStore
from citadel_engine.data_management.graph_store import GraphStore, InMemoryGraphStore
from citadel_engine.data_management.identity_store import IdentityStore, InMemoryIdentityStore
from citadel_engine.data_management.schemas import (
    AttachResult,
    DeviceSignature,
    Edge,
    EdgeStatus,
    GraphPath,
    Identity,
    IdentityProfile,
    Node,
    NodeDraft,
    NodeKind,
    NodeNeighborhood,
    NodePage,
    QueueItem,
    Relation,
    ScoreBreakdown,
    SearchResults,
    SourceProvenance,
    TraversalResult,
    VerificationTally,
    Vote,
)
from citadel_engine.errors import NodeRetracted, TransientStoreError
from citadel_engine.graph.traversal import TraversalEngine
from citadel_engine.identity.identity_service import IdentityService
from citadel_engine.identity.rate_limits import SubmissionLedger
from citadel_engine.identity.trust_scorer import RateLimit, rate_limit_for, tier_edge_weight
from citadel_engine.scoring.citadel_scorer import CitadelScorer
from citadel_engine.utils.logging import get_structured_logger, request_context

T = TypeVar("T")

EVIDENCE_KINDS = [kind for kind in NodeKind if kind != NodeKind.CLAIM]


class CitadelService:
    """Orchestrates graph, identity, scoring and traversal operations."""

    def __init__(
        self,
        graph_store: Optional[GraphStore] = None,
        identity_store: Optional[IdentityStore] = None,
        archive_store: Optional[ArchiveStore] = None,
        identity_service: Optional[IdentityService] = None,
        scorer: Optional[CitadelScorer] = None,
        traversal: Optional[TraversalEngine] = None,
        ledger: Optional[SubmissionLedger] = None,
        enforce_rate_limits: Optional[bool] = None,
        retry_attempts: Optional[int] = None,
        retry_wait_secs: float = 0.5,
    ) -> None:
        """Initialize CitadelService.

        Args:
            graph_store: Graph backend. In-memory, persisted per settings, if None.
            identity_store: Identity backend. In-memory, persisted per settings, if None.
            archive_store: Archival collaborator for evidence content.
            identity_service: Pre-configured identity service.
            scorer: Pre-configured scorer (e.g. custom controversy thresholds).
            traversal: Pre-configured traversal engine.
            ledger: Submission ledger for rate limiting.
            enforce_rate_limits: Defaults to settings.enforce_rate_limits.
            retry_attempts: Read attempts on TransientStoreError. Defaults to settings.
            retry_wait_secs: Backoff multiplier for read retries.
        """
        self.graph_store = graph_store or InMemoryGraphStore(settings.graph_persistence_path)
        self.identity_store = identity_store or InMemoryIdentityStore(
            settings.identity_persistence_path
        )
        self.archive_store = archive_store or InMemoryArchiveStore()
        self.identity_service = identity_service or IdentityService(self.identity_store)
        self.scorer = scorer or CitadelScorer(
            self.graph_store, self.identity_store, trust_scorer=self.identity_service.trust_scorer
        )
        self.traversal = traversal or TraversalEngine(self.graph_store, self.scorer)
        self.ledger = ledger or SubmissionLedger()
        self.enforce_rate_limits = (
            settings.enforce_rate_limits if enforce_rate_limits is None else enforce_rate_limits
        )
        self.retry_attempts = (
            settings.read_retry_attempts if retry_attempts is None else retry_attempts
        )
        if self.retry_attempts < 1:
            raise ValueError(f"retry_attempts must be at least 1, got {self.retry_attempts}")
        self.retry_wait_secs = retry_wait_secs
        self._logger = get_structured_logger("citadel.service", component="CitadelService")

    async def _read(self, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Run a read with exponential backoff on transient store failures."""
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential(multiplier=self.retry_wait_secs, max=self.retry_wait_secs * 8),
            retry=retry_if_exception_type(TransientStoreError),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    self._logger.warning(
                        "read_retry",
                        operation=getattr(fn, "__name__", "read"),
                        attempt=attempt.retry_state.attempt_number,
                    )
                result = await fn(*args, **kwargs)
        return result

    def _current(self, identity: Identity) -> Identity:
        """Copy of the identity with trust recomputed as of now."""
        return identity.model_copy(
            update={"trust_score": self.scorer.trust_scorer.recompute(identity)}
        )

    async def _submitter(self, identity_id: str) -> Identity:
        """Resolve the acting identity and charge one submission against its tier."""
        identity = self._current(await self.identity_store.get(identity_id))
        if self.enforce_rate_limits:
            self.ledger.acquire(identity.public_id, rate_limit_for(identity.trust_score))
        return identity

    # ── Identity ───────────────────────────────────────────────────────────

    async def derive_identity(self, signature: DeviceSignature) -> Identity:
        return await self.identity_service.derive_identity(signature)

    async def rate_limit(self, identity_id: str) -> RateLimit:
        identity = await self._read(self.identity_store.get, identity_id)
        return rate_limit_for(self._current(identity).trust_score)

    # ── Commands ───────────────────────────────────────────────────────────

    async def create_claim(self, draft: NodeDraft, identity_id: str) -> str:
        """
        Create a claim node on behalf of an identity.

        Returns:
            The new node id

        Raises:
            IdentityNotFound: Unknown identity
            RateLimitExceeded: Identity is over its tier limits
            ValueError: Draft is not a claim
        """
        if draft.kind != NodeKind.CLAIM:
            raise ValueError(f"create_claim expects a claim draft, got {draft.kind.value}")

        identity = await self._submitter(identity_id)
        with request_context(identity.public_id):
            node = await self.graph_store.create_node(Node.from_draft(draft, identity.public_id))
            await self.identity_service.record_contribution(identity.public_id, "claim")
            self._logger.info("claim_created", node_id=node.id)
        return node.id

    async def attach_evidence(
        self,
        claim_id: str,
        draft: NodeDraft,
        relation: Relation,
        identity_id: str,
        weight: Optional[float] = None,
        archive_content: Optional[Content] = None,
        explanation: Optional[str] = None,
    ) -> AttachResult:
        """
        Create an evidence node and link it to a claim.

        The edge points evidence -> claim. Its weight is the creator's tier
        weight, or the caller's weight when that is lower.

        Args:
            claim_id: Node the evidence is about
            draft: Evidence node content
            relation: How the evidence relates to the claim
            identity_id: Acting identity
            weight: Optional cap on the tier weight
            archive_content: Evidence content to hand to the archival store
            explanation: Free-text justification for the edge

        Returns:
            AttachResult with node id, edge id and archive hash (if archived)

        Raises:
            NodeNotFound: Unknown claim
            NodeRetracted: Claim has been retracted
            IdentityNotFound: Unknown identity
            RateLimitExceeded: Identity is over its tier limits
        """
        claim = await self.graph_store.get_node(claim_id)
        if claim.retracted:
            raise NodeRetracted(claim_id)
        identity = await self._submitter(identity_id)

        edge_weight = tier_edge_weight(identity.trust_score)
        if weight is not None:
            edge_weight = min(edge_weight, max(0.0, weight))

        with request_context(identity.public_id):
            archive_hash = None
            if archive_content is not None:
                receipt = await self.archive_store.store(archive_content)
                archive_hash = receipt.hash
                draft = self._with_archive(draft, receipt.hash, receipt.locator)

            node = await self.graph_store.create_node(Node.from_draft(draft, identity.public_id))
            edge = await self.graph_store.create_edge(
                Edge(
                    source_id=node.id,
                    target_id=claim_id,
                    relation=relation,
                    weight=edge_weight,
                    created_by=identity.public_id,
                    explanation=explanation,
                )
            )
            await self.identity_service.record_contribution(identity.public_id, "evidence")

            self._logger.info(
                "evidence_attached",
                claim_id=claim_id,
                node_id=node.id,
                edge_id=edge.id,
                relation=relation.value,
                weight=edge_weight,
                archived=archive_hash is not None,
            )
        return AttachResult(node_id=node.id, edge_id=edge.id, archive_hash=archive_hash)

    @staticmethod
    def _with_archive(draft: NodeDraft, archive_hash: str, locator: str) -> NodeDraft:
        """Record the archive receipt on payloads that carry provenance."""
        payload = draft.payload
        if payload is None or not hasattr(payload, "provenance"):
            return draft
        provenance = payload.provenance or SourceProvenance()
        provenance = provenance.model_copy(
            update={"archive_hash": archive_hash, "archive_locator": locator}
        )
        return draft.model_copy(
            update={"payload": payload.model_copy(update={"provenance": provenance})}
        )

    async def cast_verification(self, edge_id: str, vote: Vote, identity_id: str) -> VerificationTally:
        """
        Record a trust-weighted verification vote on an edge.

        Raises:
            EdgeNotFound: Unknown edge
            EdgeRetracted: Edge or one of its endpoints has been retracted
            IdentityNotFound: Unknown identity
            AlreadyVoted: Identity has already voted on this edge
        """
        identity = await self.identity_store.get(identity_id)
        weight = self.scorer.vote_weight(identity)
        tally = await self.graph_store.record_vote(edge_id, identity.public_id, vote, weight)
        await self.identity_service.record_vote_cast(identity.public_id)
        await self._credit_consensus(edge_id, identity.public_id, tally)

        self._logger.info(
            "verification_cast",
            edge_id=edge_id,
            identity_id=identity.public_id,
            vote=vote.value,
            weight=round(weight, 4),
            agree=tally.agree,
            disagree=tally.disagree,
        )
        return tally

    async def _credit_consensus(self, edge_id: str, voter_id: str, tally: VerificationTally) -> None:
        """Credit vote accuracy once per voter against the edge's first consensus.

        The vote that brings the edge to consensus credits every voter up to
        that point. Later voters are credited as their own vote lands.
        """
        edge = await self.graph_store.get_edge(edge_id)
        if edge.consensus is None or edge.consensus_at_votes is None:
            return

        if tally.total == edge.consensus_at_votes:
            voters = list(edge.votes.items())[: edge.consensus_at_votes]
        elif tally.total > edge.consensus_at_votes:
            voters = [(voter_id, edge.votes[voter_id])]
        else:
            return

        for public_id, cast in voters:
            accurate = (cast == Vote.AGREE and edge.consensus == EdgeStatus.VERIFIED) or (
                cast == Vote.DISAGREE and edge.consensus == EdgeStatus.DISPUTED
            )
            await self.identity_service.record_resolved_vote(public_id, accurate)

        self._logger.info(
            "consensus_credited",
            edge_id=edge_id,
            consensus=edge.consensus.value,
            voters=len(voters),
        )

    async def retract_node(self, node_id: str, identity_id: str) -> Node:
        identity = await self.identity_store.get(identity_id)
        return await self.graph_store.retract_node(node_id, identity.public_id)

    async def retract_edge(self, edge_id: str, identity_id: str) -> Edge:
        identity = await self.identity_store.get(identity_id)
        return await self.graph_store.retract_edge(edge_id, identity.public_id)

    # ── Reads ──────────────────────────────────────────────────────────────

    async def get_node(self, node_id: str) -> Node:
        return await self._read(self.graph_store.get_node, node_id)

    async def neighbors(self, node_id: str) -> NodeNeighborhood:
        return await self._read(self.graph_store.get_node_with_neighbors, node_id)

    async def nodes_by_kind(self, kind: NodeKind, page: int = 1, page_size: int = 20) -> NodePage:
        return await self._read(self.graph_store.get_nodes_by_kind, kind, page, page_size)

    async def score(self, node_id: str) -> ScoreBreakdown:
        return await self._read(self.scorer.calculate_score, node_id)

    async def traverse(
        self,
        node_id: str,
        depth: Optional[int] = None,
        relations: Optional[Iterable[Relation]] = None,
        min_weight: Optional[float] = None,
    ) -> TraversalResult:
        """Bounded exploration; depth is capped at settings.max_traversal_depth."""
        depth = settings.default_traversal_depth if depth is None else depth
        depth = min(depth, settings.max_traversal_depth)
        return await self._read(
            self.traversal.traverse, node_id, depth, relations=relations, min_weight=min_weight
        )

    async def shortest_path(
        self,
        source_id: str,
        target_id: str,
        max_hops: Optional[int] = None,
        relations: Optional[Iterable[Relation]] = None,
    ) -> Optional[GraphPath]:
        return await self._read(
            self.traversal.shortest_path, source_id, target_id, max_hops, relations=relations
        )

    async def search(self, query: str, limit: int = 20) -> SearchResults:
        """Text search split into claims and candidate evidence nodes."""
        claims = await self._read(self.graph_store.search_text, query, limit, [NodeKind.CLAIM])
        evidence = await self._read(self.graph_store.search_text, query, limit, EVIDENCE_KINDS)
        return SearchResults(query=query, claims=claims, evidence_nodes=evidence)

    async def controversial(self, limit: int = 10) -> List[ScoreBreakdown]:
        return await self._read(self.scorer.rank_controversial, limit)

    async def verification_queue(
        self, status: Optional[EdgeStatus] = EdgeStatus.PENDING, limit: int = 50
    ) -> List[QueueItem]:
        """Evidence edges by verification status, oldest first, with their submitter.

        status=None lists every live supports/disputes edge.
        """
        edges = await self._read(
            self.graph_store.list_edges, [Relation.SUPPORTS, Relation.DISPUTES]
        )
        if status is not None:
            edges = [edge for edge in edges if edge.status == status]
        edges.sort(key=lambda e: e.created_at)

        items: List[QueueItem] = []
        for edge in edges[: max(0, limit)]:
            submitter = await self._read(self.identity_store.find, edge.created_by)
            items.append(
                QueueItem(
                    edge=edge,
                    evidence=await self._read(self.graph_store.get_node, edge.source_id),
                    claim=await self._read(self.graph_store.get_node, edge.target_id),
                    submitter=self._current(submitter) if submitter else None,
                )
            )
        return items

    async def leaderboard(self, limit: int = 10) -> List[Identity]:
        """Identities by reputation, highest first, with trust as of now."""
        identities = await self._read(self.identity_store.list_identities)
        identities.sort(key=lambda i: (-i.reputation, i.created_at, i.public_id))
        return [self._current(identity) for identity in identities[: max(0, limit)]]

    async def identity_profile(self, public_id: str) -> IdentityProfile:
        """An identity with the live claims and evidence it created.

        Raises:
            IdentityNotFound: Unknown identity
        """
        identity = await self._read(self.identity_store.get, public_id)
        authored = [
            node
            for node in await self._read(self.graph_store.list_nodes)
            if node.created_by == identity.public_id
        ]
        return IdentityProfile(
            identity=self._current(identity),
            claims=[node for node in authored if node.kind == NodeKind.CLAIM],
            evidence=[node for node in authored if node.kind != NodeKind.CLAIM],
        )

    async def verify_evidence(self, node_id: str, content: Content) -> bool:
        """Check content against the archive hash recorded on an evidence node.

        False when the node carries no archive receipt.
        """
        node = await self._read(self.graph_store.get_node, node_id)
        provenance = getattr(node.payload, "provenance", None)
        if provenance is None or provenance.archive_hash is None:
            return False
        return await self.archive_store.verify(provenance.archive_hash, content)

    async def stats(self) -> Dict[str, Any]:
        graph_stats = await self._read(self.graph_store.stats)
        identity_stats = await self._read(self.identity_store.get_stats)
        return {
            **graph_stats,
            "total_identities": identity_stats["total"],
            "flagged_duplicates": identity_stats["possible_duplicates"],
            "anonymized_identities": identity_stats["anonymized"],
        }
