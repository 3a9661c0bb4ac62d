"""Citadel Score: trust-weighted support minus disputes for a node.

Core formula:
    effective = min(weight, weight x TrustFactor(creator) x Verification x Duplicate)
    score     = Sum(effective over supports) - 0.5 x Sum(effective over disputes)

Components:
- TrustFactor: 0.2 + 0.8 x trust/100 of the edge creator, with trust recomputed
  at read time (unknown creator = trust 0)
- Verification: 1.5 when trust-weighted agreement beats disagreement 2:1,
  0.5 for the reverse, 1.0 otherwise
- Duplicate: 0.5 when the creator is flagged as a possible duplicate

Scores are recomputed from the store on every call. Nothing is cached
between calls, so two calls with no intervening write agree exactly.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from loguru import logger

from citadel_engine.config.scoring_policy import (
    CONTROVERSY_HIGH_MIN_EDGES,
    CONTROVERSY_HIGH_SHARE,
    CONTROVERSY_MEDIUM_SHARE,
    DISPUTE_COEFFICIENT,
    DUPLICATE_DISCOUNT,
    VERIFICATION_BOOST,
    VERIFICATION_MARGIN,
    VERIFICATION_PENALTY,
)
from citadel_engine.data_management.graph_store import GraphStore
from citadel_engine.data_management.identity_store import IdentityStore
from citadel_engine.data_management.schemas import (
    ControversyLevel,
    Edge,
    EdgeContribution,
    EdgeStatus,
    Identity,
    NodeKind,
    Relation,
    ScoreBreakdown,
    VerificationTally,
)
from citadel_engine.identity.trust_scorer import TrustScorer, trust_factor

CONTEXT_RELATIONS = (Relation.CONTEXT, Relation.RELATED)


@dataclass
class CreatorView:
    """What the scorer needs to know about an edge creator."""

    trust: float = 0.0
    possible_duplicate: bool = False


class CreatorCache:
    """Memoized identity lookups for the duration of one read."""

    def __init__(self, identity_store: IdentityStore, trust_scorer: Optional[TrustScorer] = None):
        self.identity_store = identity_store
        self.trust_scorer = trust_scorer or TrustScorer()
        self._views: Dict[str, CreatorView] = {}

    async def view(self, public_id: str) -> CreatorView:
        if public_id not in self._views:
            identity = await self.identity_store.find(public_id)
            self._views[public_id] = (
                CreatorView(
                    self.trust_scorer.recompute(identity), identity.flags.possible_duplicate
                )
                if identity
                else CreatorView()
            )
        return self._views[public_id]


class CitadelScorer:
    """
    Computes Citadel Scores and controversy for graph nodes.

    Usage:
        scorer = CitadelScorer(graph_store, identity_store)
        breakdown = await scorer.calculate_score(claim_id)

    Attributes:
        high_share: Disputed share above which a node may be high controversy
        high_min_edges: Minimum supports+disputes edges for high controversy
        medium_share: Disputed share above which a node is medium controversy
    """

    def __init__(
        self,
        graph_store: GraphStore,
        identity_store: IdentityStore,
        high_share: float = CONTROVERSY_HIGH_SHARE,
        high_min_edges: int = CONTROVERSY_HIGH_MIN_EDGES,
        medium_share: float = CONTROVERSY_MEDIUM_SHARE,
        dispute_coefficient: float = DISPUTE_COEFFICIENT,
        duplicate_discount: float = DUPLICATE_DISCOUNT,
        trust_scorer: Optional[TrustScorer] = None,
    ):
        self.graph_store = graph_store
        self.identity_store = identity_store
        self.trust_scorer = trust_scorer or TrustScorer()
        self.high_share = high_share
        self.high_min_edges = high_min_edges
        self.medium_share = medium_share
        self.dispute_coefficient = dispute_coefficient
        self.duplicate_discount = duplicate_discount
        self.logger = logger.bind(component="CitadelScorer")

    # ── Edge weighting ─────────────────────────────────────────────────────

    def verification_multiplier(self, tally: VerificationTally) -> float:
        if tally.agree_weight > 0 and tally.agree_weight >= VERIFICATION_MARGIN * tally.disagree_weight:
            return VERIFICATION_BOOST
        if tally.disagree_weight > 0 and tally.disagree_weight >= VERIFICATION_MARGIN * tally.agree_weight:
            return VERIFICATION_PENALTY
        return 1.0

    def contribution(self, edge: Edge, creator: CreatorView) -> EdgeContribution:
        """Effective weight of one edge with every factor that produced it."""
        factor = trust_factor(creator.trust)
        multiplier = self.verification_multiplier(edge.tally)
        discount = self.duplicate_discount if creator.possible_duplicate else 1.0
        effective = min(edge.weight, edge.weight * factor * multiplier * discount)
        return EdgeContribution(
            edge_id=edge.id,
            relation=edge.relation,
            created_by=edge.created_by,
            raw_weight=edge.weight,
            trust_factor=factor,
            verification_multiplier=multiplier,
            duplicate_discount=discount,
            effective_weight=effective,
        )

    async def effective_weight(self, edge: Edge, cache: Optional[CreatorCache] = None) -> float:
        cache = cache or self.new_cache()
        return self.contribution(edge, await cache.view(edge.created_by)).effective_weight

    def vote_weight(self, identity: Identity) -> float:
        """Weight of one verification vote by this identity, at its current trust."""
        discount = self.duplicate_discount if identity.flags.possible_duplicate else 1.0
        return trust_factor(self.trust_scorer.recompute(identity)) * discount

    def new_cache(self) -> CreatorCache:
        return CreatorCache(self.identity_store, self.trust_scorer)

    # ── Scores ─────────────────────────────────────────────────────────────

    def classify_controversy(
        self, supporting_weight: float, disputing_weight: float, edge_count: int
    ) -> ControversyLevel:
        total = supporting_weight + disputing_weight
        if total <= 0:
            return ControversyLevel.LOW
        share = disputing_weight / total
        if share > self.high_share and edge_count >= self.high_min_edges:
            return ControversyLevel.HIGH
        if share > self.medium_share:
            return ControversyLevel.MEDIUM
        return ControversyLevel.LOW

    async def calculate_score(
        self, node_id: str, cache: Optional[CreatorCache] = None
    ) -> ScoreBreakdown:
        """
        Citadel Score over a node's incoming supports and disputes edges.

        Args:
            node_id: Node to score (usually a claim)
            cache: Creator lookups to share across several scores in one read

        Returns:
            ScoreBreakdown; all zeros and low controversy with no evidence

        Raises:
            NodeNotFound: Unknown node id
        """
        cache = cache or self.new_cache()
        incoming = await self.graph_store.edges_of(node_id, "incoming")

        breakdown = ScoreBreakdown(node_id=node_id)
        for edge in incoming:
            if edge.relation in CONTEXT_RELATIONS:
                breakdown.context_count += 1
                continue
            if edge.relation not in (Relation.SUPPORTS, Relation.DISPUTES):
                continue

            contribution = self.contribution(edge, await cache.view(edge.created_by))
            breakdown.contributions.append(contribution)
            if edge.status == EdgeStatus.PENDING:
                breakdown.pending_count += 1

            if edge.relation == Relation.SUPPORTS:
                breakdown.verified_count += 1
                breakdown.supporting_weight += contribution.effective_weight
            else:
                breakdown.disputed_count += 1
                breakdown.disputing_weight += contribution.effective_weight

        breakdown.trust_weighted_score = (
            breakdown.supporting_weight - self.dispute_coefficient * breakdown.disputing_weight
        )
        breakdown.controversy = self.classify_controversy(
            breakdown.supporting_weight, breakdown.disputing_weight, breakdown.total
        )

        self.logger.debug(
            f"Score computed: {breakdown.trust_weighted_score:.3f}",
            node_id=node_id,
            supports=breakdown.verified_count,
            disputes=breakdown.disputed_count,
            controversy=breakdown.controversy.value,
        )
        return breakdown

    async def rank_controversial(
        self,
        limit: int = 10,
        kinds: Optional[Iterable[NodeKind]] = None,
    ) -> List[ScoreBreakdown]:
        """Nodes with at least one dispute, most contested first."""
        if limit <= 0:
            return []
        cache = self.new_cache()
        level_rank = {ControversyLevel.HIGH: 2, ControversyLevel.MEDIUM: 1, ControversyLevel.LOW: 0}

        scored: List[ScoreBreakdown] = []
        for node in await self.graph_store.list_nodes(kinds=kinds):
            breakdown = await self.calculate_score(node.id, cache)
            if breakdown.disputed_count > 0:
                scored.append(breakdown)

        scored.sort(
            key=lambda b: (
                -level_rank[b.controversy],
                -b.disputed_share,
                -b.disputed_count,
                b.node_id,
            )
        )
        return scored[:limit]
