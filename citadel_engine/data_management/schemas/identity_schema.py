"""Identity schema - pseudonymous identities derived from device signatures.

Identities are created once per signature and persist indefinitely.
Suspected duplicates are flagged and discounted, never deleted.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IdentityFlags(BaseModel):
    """Abuse indicators attached to an identity."""

    vpn_suspected: bool = False
    tor_suspected: bool = False
    proxy_suspected: bool = False
    possible_duplicate: bool = False


class Identity(BaseModel):
    """A pseudonymous contributor.

    Attributes:
        public_id: Short non-reversible id derived from the signature hash.
        internal_hash: Full SHA-256 of the canonical signature components.
        trust_score: Current trust in [0, 100], recomputed on every touch.
        base_trust: Starting trust after anonymization penalties.
        reputation: Monotonic, contribution-weighted counter.
        contribution_count: Claims and evidence submitted.
        resolved_votes: Votes on edges that have since reached consensus.
        accurate_votes: Resolved votes that matched the consensus.
        duplicate_of: Public id of the identity this one resembles, if flagged.
    """

    public_id: str
    internal_hash: str
    trust_score: float = Field(..., ge=0.0, le=100.0)
    base_trust: float = Field(..., ge=0.0, le=100.0)
    flags: IdentityFlags = Field(default_factory=IdentityFlags)
    duplicate_of: Optional[str] = None
    reputation: int = Field(0, ge=0)
    contribution_count: int = Field(0, ge=0)
    votes_cast: int = Field(0, ge=0)
    resolved_votes: int = Field(0, ge=0)
    accurate_votes: int = Field(0, ge=0)
    created_at: datetime = Field(default_factory=_utcnow)
    last_seen_at: datetime = Field(default_factory=_utcnow)
    visit_count: int = Field(1, ge=0)
    geohash: Optional[str] = None
    rtt_bucket: Optional[str] = None

    @property
    def verification_accuracy(self) -> float:
        if self.resolved_votes == 0:
            return 0.0
        return self.accurate_votes / self.resolved_votes


class DeviceSignature(BaseModel):
    """Composite device/network signature submitted by the collection layer.

    Stable attributes identify the device; network attributes (address,
    coordinates, round-trip time, regions) are coarsened before hashing or
    only used for comparison and mismatch checks.
    """

    # Stable hardware/software attributes
    user_agent: Optional[str] = None
    screen_resolution: Optional[str] = None
    timezone: Optional[str] = None
    language: Optional[str] = None
    platform: Optional[str] = None
    webgl_vendor: Optional[str] = None
    webgl_renderer: Optional[str] = None
    canvas_hash: Optional[str] = None
    hardware_concurrency: Optional[int] = None
    device_memory: Optional[float] = None
    color_depth: Optional[int] = None
    pixel_ratio: Optional[float] = None
    fonts: list[str] = Field(default_factory=list)
    cookie_enabled: bool = True
    do_not_track: Optional[str] = None

    # Network attributes
    ip_address: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90.0, le=90.0)
    longitude: Optional[float] = Field(None, ge=-180.0, le=180.0)
    rtt_ms: Optional[float] = Field(None, ge=0.0)
    ip_region: Optional[str] = None
    geo_region: Optional[str] = None
