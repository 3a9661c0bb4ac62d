"""Identity and trust: pseudonymous identities, anonymity detection, Sybil
resistance and trust-tier rate limits."""

from citadel_engine.identity.anonymity import (
    AnonymityClassifier,
    AnonymitySignals,
    PatternAnonymityClassifier,
)
from citadel_engine.identity.identity_service import IdentityService
from citadel_engine.identity.rate_limits import SubmissionLedger
from citadel_engine.identity.signature import (
    canonical_components,
    encode_geohash,
    hash_signature,
    rtt_bucket,
)
from citadel_engine.identity.sybil_detector import compare_signatures, is_duplicate
from citadel_engine.identity.trust_scorer import (
    RateLimit,
    TrustScorer,
    rate_limit_for,
    tier_edge_weight,
    trust_factor,
)

__all__ = [
    "AnonymityClassifier",
    "AnonymitySignals",
    "PatternAnonymityClassifier",
    "IdentityService",
    "SubmissionLedger",
    "canonical_components",
    "encode_geohash",
    "hash_signature",
    "rtt_bucket",
    "compare_signatures",
    "is_duplicate",
    "RateLimit",
    "TrustScorer",
    "rate_limit_for",
    "tier_edge_weight",
    "trust_factor",
]
