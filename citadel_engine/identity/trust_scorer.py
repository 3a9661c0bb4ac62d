"""Identity trust scoring.

Trust = base - anonymization penalties + age, contribution and accuracy
bonuses, clamped to [0, 100]. Bonuses saturate and never decay, so trust
only grows for an identity that keeps contributing accurately.

The trust tier derived from the score sets submission rate limits and the
initial weight of edges the identity creates.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from loguru import logger

from citadel_engine.config.scoring_policy import TRUST_FACTOR_CEILING, TRUST_FACTOR_FLOOR
from citadel_engine.config.trust_policy import (
    ACCURACY_BONUSES,
    AGE_BONUS_CAP,
    AGE_BONUS_DAYS_PER_POINT,
    CONTRIBUTION_BONUS_CAP,
    CONTRIBUTIONS_PER_POINT,
    TRUST_BASELINE,
    TRUST_MAX,
    TRUST_MIN,
    TRUST_PENALTIES,
    TRUST_TIERS,
)
from citadel_engine.data_management.schemas import DeviceSignature, Identity
from citadel_engine.identity.anonymity import AnonymitySignals


@dataclass(frozen=True)
class RateLimit:
    """Submission limits for one trust tier."""

    tier: str
    per_hour: int
    per_day: int


def clamp_trust(value: float) -> float:
    return max(TRUST_MIN, min(TRUST_MAX, value))


def trust_factor(trust: float) -> float:
    """Linear map of trust [0, 100] onto [0.2, 1.0]."""
    trust = clamp_trust(trust)
    return TRUST_FACTOR_FLOOR + (TRUST_FACTOR_CEILING - TRUST_FACTOR_FLOOR) * trust / 100.0


def _tier_for(trust: float) -> Tuple[float, str, int, int, float]:
    for tier in TRUST_TIERS:
        if trust >= tier[0]:
            return tier
    return TRUST_TIERS[-1]


def rate_limit_for(trust: float) -> RateLimit:
    """Submission limits by trust tier. Pure function of the score."""
    _, name, per_hour, per_day, _ = _tier_for(trust)
    return RateLimit(tier=name, per_hour=per_hour, per_day=per_day)


def tier_edge_weight(trust: float) -> float:
    """Initial edge weight for edges created at this trust level."""
    return _tier_for(trust)[4]


class TrustScorer:
    """
    Computes base and current trust for identities.

    Usage:
        scorer = TrustScorer()
        base = scorer.initial_trust(signature, signals)
        current = scorer.recompute(identity)

    Attributes:
        penalties: Indicator name -> points deducted from the baseline
        accuracy_bonuses: (accuracy strictly above, bonus) pairs, cumulative
    """

    def __init__(
        self,
        baseline: float = TRUST_BASELINE,
        penalties: Optional[Dict[str, float]] = None,
        accuracy_bonuses: Optional[List[Tuple[float, float]]] = None,
    ):
        self.baseline = baseline
        self.penalties = penalties or TRUST_PENALTIES
        self.accuracy_bonuses = accuracy_bonuses or ACCURACY_BONUSES
        self.logger = logger.bind(component="TrustScorer")

    def initial_trust(self, signature: DeviceSignature, signals: AnonymitySignals) -> float:
        """
        Starting trust for a new identity.

        Args:
            signature: Device signature as submitted
            signals: Anonymization indicators from the classifier

        Returns:
            Baseline minus every applicable penalty, clamped to [0, 100]
        """
        applied: Dict[str, float] = {}
        if signals.vpn:
            applied["vpn"] = self.penalties.get("vpn", 0.0)
        if signals.tor:
            applied["tor"] = self.penalties.get("tor", 0.0)
        if signals.proxy:
            applied["proxy"] = self.penalties.get("proxy", 0.0)
        if signature.do_not_track in ("1", "yes", "true"):
            applied["do_not_track"] = self.penalties.get("do_not_track", 0.0)
        if not signature.cookie_enabled:
            applied["cookies_disabled"] = self.penalties.get("cookies_disabled", 0.0)
        if (
            signature.ip_region
            and signature.geo_region
            and signature.ip_region.strip().lower() != signature.geo_region.strip().lower()
        ):
            applied["region_mismatch"] = self.penalties.get("region_mismatch", 0.0)

        trust = clamp_trust(self.baseline - sum(applied.values()))
        if applied:
            self.logger.debug(f"Initial trust {trust:.1f}", penalties=applied)
        return trust

    def age_bonus(self, identity: Identity, now: Optional[datetime] = None) -> float:
        now = now or datetime.now(timezone.utc)
        age_days = max(0.0, (now - identity.created_at).total_seconds() / 86400.0)
        return min(AGE_BONUS_CAP, age_days / AGE_BONUS_DAYS_PER_POINT)

    def contribution_bonus(self, identity: Identity) -> float:
        return min(CONTRIBUTION_BONUS_CAP, identity.contribution_count / CONTRIBUTIONS_PER_POINT)

    def accuracy_bonus(self, identity: Identity) -> float:
        accuracy = identity.verification_accuracy
        return sum(bonus for threshold, bonus in self.accuracy_bonuses if accuracy > threshold)

    def recompute(self, identity: Identity, now: Optional[datetime] = None) -> float:
        """Current trust: base trust plus saturating bonuses, clamped."""
        trust = (
            identity.base_trust
            + self.age_bonus(identity, now)
            + self.contribution_bonus(identity)
            + self.accuracy_bonus(identity)
        )
        return clamp_trust(trust)

    def trust_factor(self, trust: float) -> float:
        return trust_factor(trust)
