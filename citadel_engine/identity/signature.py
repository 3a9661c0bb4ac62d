"""Device signature canonicalization and hashing.

A signature hash covers the stable device attributes plus coarsened network
attributes (RTT bucket and a ~5km geohash cell). The IP address is left out
so an identity survives address changes; it is still used for duplicate
comparison.
"""

import hashlib
import json
from typing import Any, Dict, Optional

from citadel_engine.config.trust_policy import (
    DISTINGUISHING_FIELDS,
    GEOHASH_PRECISION,
    PUBLIC_ID_LENGTH,
    RTT_BUCKETS,
    RTT_OVERFLOW_BUCKET,
)
from citadel_engine.data_management.schemas import DeviceSignature

_GEOHASH_ALPHABET = "0123456789bcdefghjkmnpqrstuvwxyz"


def rtt_bucket(rtt_ms: Optional[float]) -> Optional[str]:
    """Coarse round-trip-time label, e.g. 37.2 -> "20-50ms"."""
    if rtt_ms is None:
        return None
    for upper, label in RTT_BUCKETS:
        if rtt_ms < upper:
            return label
    return RTT_OVERFLOW_BUCKET


def encode_geohash(latitude: float, longitude: float, precision: int = GEOHASH_PRECISION) -> str:
    """Standard base-32 geohash of a coordinate."""
    lat_range = [-90.0, 90.0]
    lon_range = [-180.0, 180.0]
    chars = []
    bits = 0
    bit_count = 0
    even = True

    while len(chars) < precision:
        rng, value = (lon_range, longitude) if even else (lat_range, latitude)
        mid = (rng[0] + rng[1]) / 2
        if value >= mid:
            bits = (bits << 1) | 1
            rng[0] = mid
        else:
            bits <<= 1
            rng[1] = mid
        even = not even

        bit_count += 1
        if bit_count == 5:
            chars.append(_GEOHASH_ALPHABET[bits])
            bits = 0
            bit_count = 0

    return "".join(chars)


def signature_geohash(signature: DeviceSignature) -> Optional[str]:
    if signature.latitude is None or signature.longitude is None:
        return None
    return encode_geohash(signature.latitude, signature.longitude)


def distinguishing_count(signature: DeviceSignature) -> int:
    """Number of stable distinguishing attributes present on the signature."""
    return sum(
        1
        for name in DISTINGUISHING_FIELDS
        if getattr(signature, name) not in (None, "")
    )


def canonical_components(signature: DeviceSignature) -> Dict[str, Any]:
    """Hash input: stable attributes, sorted fonts, RTT bucket and geohash."""
    components: Dict[str, Any] = {
        name: getattr(signature, name) for name in DISTINGUISHING_FIELDS
    }
    components["fonts"] = sorted(signature.fonts)
    components["cookie_enabled"] = signature.cookie_enabled
    components["do_not_track"] = signature.do_not_track
    components["rtt_bucket"] = rtt_bucket(signature.rtt_ms)
    components["geohash"] = signature_geohash(signature)
    return components


def hash_signature(signature: DeviceSignature) -> str:
    """SHA-256 hex digest over the canonical JSON of the components."""
    canonical = json.dumps(canonical_components(signature), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def public_id_from_hash(internal_hash: str) -> str:
    return internal_hash[:PUBLIC_ID_LENGTH].upper()
