"""Duplicate-identity detection by signature similarity.

Similarity is the share of comparison fields present on both signatures
with equal values. A field missing on either side never counts as a match.
Matches are flagged and discounted by the scorer; they are never rejected.
"""

from typing import Iterable, List, Optional, Tuple

from citadel_engine.config.trust_policy import DUPLICATE_SIMILARITY_THRESHOLD, SIMILARITY_FIELDS
from citadel_engine.data_management.schemas import DeviceSignature


def compare_signatures(
    a: DeviceSignature,
    b: DeviceSignature,
    fields: Optional[List[str]] = None,
) -> float:
    """Similarity in [0, 1] between two signatures."""
    fields = fields or SIMILARITY_FIELDS
    if not fields:
        return 0.0
    matches = 0
    for name in fields:
        left = getattr(a, name)
        right = getattr(b, name)
        if left is not None and right is not None and left == right:
            matches += 1
    return matches / len(fields)


def is_duplicate(similarity: float, threshold: float = DUPLICATE_SIMILARITY_THRESHOLD) -> bool:
    return similarity > threshold


def best_match(
    signature: DeviceSignature,
    known: Iterable[Tuple[str, DeviceSignature]],
) -> Optional[Tuple[str, float]]:
    """Most similar known signature as (public_id, similarity), or None."""
    best: Optional[Tuple[str, float]] = None
    for public_id, other in known:
        similarity = compare_signatures(signature, other)
        if best is None or similarity > best[1]:
            best = (public_id, similarity)
    return best
