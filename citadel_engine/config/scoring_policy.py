"""Citadel Score configuration.

Effective edge weight:
    effective = min(weight, weight x trust_factor x verification_multiplier x duplicate_discount)

Trust factor scales linearly from TRUST_FACTOR_FLOOR (trust 0) to
TRUST_FACTOR_CEILING (trust 100).

Controversy thresholds are product constants, not invariants. Scorers accept
overrides through their constructor.
"""

from typing import Dict

# Trust factor bounds (linear between trust 0 and trust 100)
TRUST_FACTOR_FLOOR: float = 0.2
TRUST_FACTOR_CEILING: float = 1.0

# Community verification outcome on an edge
VERIFICATION_MARGIN: float = 2.0  # 2:1 weighted margin
VERIFICATION_BOOST: float = 1.5
VERIFICATION_PENALTY: float = 0.5

# Identities flagged possible_duplicate contribute at half weight
DUPLICATE_DISCOUNT: float = 0.5

# Citadel Score = supports - DISPUTE_COEFFICIENT * disputes
DISPUTE_COEFFICIENT: float = 0.5

# Controversy classification on disputed share of total effective weight
CONTROVERSY_HIGH_SHARE: float = 0.40
CONTROVERSY_HIGH_MIN_EDGES: int = 5
CONTROVERSY_MEDIUM_SHARE: float = 0.15

# Edge consensus from raw vote counts
CONSENSUS_MIN_VOTES: int = 10
CONSENSUS_VERIFIED_RATIO: float = 0.7
CONSENSUS_DISPUTED_RATIO: float = 0.3

# Reputation points per contribution (monotonic counter)
REPUTATION_POINTS: Dict[str, int] = {
    "claim": 5,
    "evidence": 3,
    "vote": 1,
    "accurate_vote": 2,
}
