"""Identity derivation and contribution bookkeeping.

derive_identity() is the only way identities come into existence. Every
later touch (a revisit, a contribution, a resolved vote) recomputes and
stores trust, so readers never need to recompute it themselves.
"""

from datetime import datetime, timezone
from typing import Optional

from loguru import logger

from citadel_engine.config.scoring_policy import REPUTATION_POINTS
from citadel_engine.config.trust_policy import MIN_DISTINGUISHING_FIELDS
from citadel_engine.data_management.identity_store import IdentityStore
from citadel_engine.data_management.schemas import DeviceSignature, Identity, IdentityFlags
from citadel_engine.errors import SignatureIncomplete
from citadel_engine.identity.anonymity import AnonymityClassifier, PatternAnonymityClassifier
from citadel_engine.identity.signature import (
    distinguishing_count,
    hash_signature,
    public_id_from_hash,
    rtt_bucket,
    signature_geohash,
)
from citadel_engine.identity.sybil_detector import best_match, is_duplicate
from citadel_engine.identity.trust_scorer import TrustScorer


class IdentityService:
    """
    Derives pseudonymous identities and keeps their trust current.

    Usage:
        service = IdentityService(InMemoryIdentityStore())
        identity = await service.derive_identity(signature)
        await service.record_contribution(identity.public_id, "claim")
    """

    def __init__(
        self,
        store: IdentityStore,
        classifier: Optional[AnonymityClassifier] = None,
        trust_scorer: Optional[TrustScorer] = None,
        min_distinguishing_fields: int = MIN_DISTINGUISHING_FIELDS,
    ):
        self.store = store
        self.classifier = classifier or PatternAnonymityClassifier()
        self.trust_scorer = trust_scorer or TrustScorer()
        self.min_distinguishing_fields = min_distinguishing_fields
        self.logger = logger.bind(component="IdentityService")

    async def derive_identity(
        self, signature: DeviceSignature, now: Optional[datetime] = None
    ) -> Identity:
        """
        Resolve a signature to its identity, creating it on first sight.

        Args:
            signature: Device signature from the collection layer
            now: Clock override for tests

        Returns:
            The existing identity (touched) or a newly created one

        Raises:
            SignatureIncomplete: Too few distinguishing attributes to identify a device
        """
        present = distinguishing_count(signature)
        if present < self.min_distinguishing_fields:
            raise SignatureIncomplete(present, self.min_distinguishing_fields)

        now = now or datetime.now(timezone.utc)
        internal_hash = hash_signature(signature)
        public_id = public_id_from_hash(internal_hash)

        existing = await self.store.find(public_id)
        if existing is not None:
            def touch(identity: Identity) -> None:
                identity.last_seen_at = now
                identity.visit_count += 1
                identity.trust_score = self.trust_scorer.recompute(identity, now)

            return await self.store.update(public_id, touch)

        signals = self.classifier.classify(signature)
        base_trust = self.trust_scorer.initial_trust(signature, signals)
        flags = IdentityFlags(
            vpn_suspected=signals.vpn,
            tor_suspected=signals.tor,
            proxy_suspected=signals.proxy,
        )

        duplicate_of = None
        match = best_match(signature, await self.store.signatures())
        if match is not None and is_duplicate(match[1]):
            flags.possible_duplicate = True
            duplicate_of = match[0]
            self.logger.warning(
                f"Possible duplicate of {match[0]}",
                public_id=public_id,
                similarity=round(match[1], 3),
            )

        identity = Identity(
            public_id=public_id,
            internal_hash=internal_hash,
            trust_score=base_trust,
            base_trust=base_trust,
            flags=flags,
            duplicate_of=duplicate_of,
            created_at=now,
            last_seen_at=now,
            geohash=signature_geohash(signature),
            rtt_bucket=rtt_bucket(signature.rtt_ms),
        )
        self.logger.info(f"Identity created: {public_id}", trust=base_trust)
        return await self.store.save(identity, signature)

    async def get_identity(self, public_id: str) -> Identity:
        return await self.store.get(public_id)

    async def record_contribution(self, public_id: str, kind: str) -> Identity:
        """Credit a claim or evidence submission and refresh trust."""
        points = REPUTATION_POINTS.get(kind, 0)

        def credit(identity: Identity) -> None:
            identity.contribution_count += 1
            identity.reputation += points
            identity.trust_score = self.trust_scorer.recompute(identity)

        return await self.store.update(public_id, credit)

    async def record_vote_cast(self, public_id: str) -> Identity:
        points = REPUTATION_POINTS.get("vote", 0)

        def credit(identity: Identity) -> None:
            identity.votes_cast += 1
            identity.reputation += points
            identity.trust_score = self.trust_scorer.recompute(identity)

        return await self.store.update(public_id, credit)

    async def record_resolved_vote(self, public_id: str, accurate: bool) -> Identity:
        """Count a vote whose edge reached consensus; accurate votes earn extra reputation."""
        points = REPUTATION_POINTS.get("accurate_vote", 0) if accurate else 0

        def credit(identity: Identity) -> None:
            identity.resolved_votes += 1
            if accurate:
                identity.accurate_votes += 1
            identity.reputation += points
            identity.trust_score = self.trust_scorer.recompute(identity)

        return await self.store.update(public_id, credit)
