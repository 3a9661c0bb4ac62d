"""Identity trust configuration for Sybil resistance.

Trust starts at TRUST_BASELINE, loses fixed penalties for anonymization
indicators, and regains bounded bonuses from account age, contribution
count and verification accuracy. Scores are clamped to [0, 100].

Trust tiers (highest first):
1. trusted (>= 90): 100/hour, 1000/day, edge weight 1.0
2. established (>= 70): 50/hour, 500/day, edge weight 0.8
3. probationary (>= 50): 20/hour, 200/day, edge weight 0.6
4. restricted (< 50): 5/hour, 50/day, edge weight 0.4
"""

from typing import Dict, List, Tuple

TRUST_BASELINE: float = 100.0
TRUST_MIN: float = 0.0
TRUST_MAX: float = 100.0

# Fixed deductions applied to the starting score
TRUST_PENALTIES: Dict[str, float] = {
    "vpn": 20.0,
    "tor": 30.0,
    "proxy": 25.0,
    "do_not_track": 5.0,
    "cookies_disabled": 10.0,
    "region_mismatch": 10.0,
}

# Saturating bonuses: min(cap, value / divisor)
AGE_BONUS_CAP: float = 20.0
AGE_BONUS_DAYS_PER_POINT: float = 10.0
CONTRIBUTION_BONUS_CAP: float = 15.0
CONTRIBUTIONS_PER_POINT: float = 5.0

# (accuracy strictly above, bonus)
ACCURACY_BONUSES: List[Tuple[float, float]] = [
    (0.8, 15.0),
    (0.9, 10.0),
]

# Anonymization patterns matched case-insensitively against the user agent
ANONYMITY_PATTERNS: Dict[str, str] = {
    "vpn": r"vpn|proxy|anonymizer",
    "tor": r"tor browser|tails|whonix",
    "proxy": r"proxy|gateway|cache",
}

# Signature fields compared for duplicate detection
SIMILARITY_FIELDS: List[str] = [
    "ip_address",
    "user_agent",
    "screen_resolution",
    "timezone",
    "language",
    "platform",
    "webgl_vendor",
    "webgl_renderer",
]
DUPLICATE_SIMILARITY_THRESHOLD: float = 0.7

# Stable attributes that distinguish a device; hashed into the public id
DISTINGUISHING_FIELDS: List[str] = [
    "user_agent",
    "screen_resolution",
    "timezone",
    "language",
    "platform",
    "webgl_vendor",
    "webgl_renderer",
    "canvas_hash",
    "hardware_concurrency",
    "device_memory",
    "color_depth",
    "pixel_ratio",
]
MIN_DISTINGUISHING_FIELDS: int = 4

GEOHASH_PRECISION: int = 5  # ~5km cells
PUBLIC_ID_LENGTH: int = 16

# (upper bound exclusive in ms, label); last bucket is open-ended
RTT_BUCKETS: List[Tuple[float, str]] = [
    (20.0, "0-20ms"),
    (50.0, "20-50ms"),
    (100.0, "50-100ms"),
    (150.0, "100-150ms"),
]
RTT_OVERFLOW_BUCKET: str = "150+ms"

# (minimum trust, tier name, per_hour, per_day, initial edge weight)
TRUST_TIERS: List[Tuple[float, str, int, int, float]] = [
    (90.0, "trusted", 100, 1000, 1.0),
    (70.0, "established", 50, 500, 0.8),
    (50.0, "probationary", 20, 200, 0.6),
    (0.0, "restricted", 5, 50, 0.4),
]
