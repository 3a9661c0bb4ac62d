"""Tests for TrustScorer, trust factor and trust-tier limits.

Tests cover:
- Anonymization and browser-setting penalties
- Saturating age/contribution bonuses
- Strict accuracy thresholds
- Clamping to [0, 100]
- Tier rate limits and initial edge weights
"""

from datetime import datetime, timedelta, timezone

import pytest

from citadel_engine.data_management.schemas import DeviceSignature, Identity
from citadel_engine.identity.anonymity import AnonymitySignals, PatternAnonymityClassifier
from citadel_engine.identity.trust_scorer import (
    TrustScorer,
    rate_limit_for,
    tier_edge_weight,
    trust_factor,
)

NOW = datetime(2025, 6, 1, tzinfo=timezone.utc)


def identity(base: float = 50.0, age_days: float = 0.0, **kwargs) -> Identity:
    return Identity(
        public_id="AAAABBBBCCCCDDDD",
        internal_hash="x" * 64,
        trust_score=base,
        base_trust=base,
        created_at=NOW - timedelta(days=age_days),
        **kwargs,
    )


class TestAnonymityClassifier:
    @pytest.fixture
    def classifier(self) -> PatternAnonymityClassifier:
        return PatternAnonymityClassifier()

    def test_clean_user_agent(self, classifier) -> None:
        signals = classifier.classify(DeviceSignature(user_agent="Mozilla/5.0 Firefox/128.0"))
        assert not signals.any

    def test_tor_case_insensitive(self, classifier) -> None:
        signals = classifier.classify(DeviceSignature(user_agent="TOR BROWSER 13.0"))
        assert signals.tor
        assert not signals.vpn

    def test_proxy_triggers_vpn_and_proxy(self, classifier) -> None:
        signals = classifier.classify(DeviceSignature(user_agent="corp-proxy/1.0"))
        assert signals.vpn
        assert signals.proxy


class TestInitialTrust:
    @pytest.fixture
    def scorer(self) -> TrustScorer:
        return TrustScorer()

    def test_clean_signature_full_trust(self, scorer) -> None:
        assert scorer.initial_trust(DeviceSignature(), AnonymitySignals()) == 100.0

    @pytest.mark.parametrize(
        "signals,expected",
        [
            (AnonymitySignals(vpn=True), 80.0),
            (AnonymitySignals(tor=True), 70.0),
            (AnonymitySignals(proxy=True), 75.0),
            (AnonymitySignals(vpn=True, proxy=True), 55.0),
        ],
    )
    def test_anonymity_penalties(self, scorer, signals, expected) -> None:
        assert scorer.initial_trust(DeviceSignature(), signals) == expected

    def test_browser_setting_penalties(self, scorer) -> None:
        signature = DeviceSignature(do_not_track="1", cookie_enabled=False)
        assert scorer.initial_trust(signature, AnonymitySignals()) == 85.0

    def test_region_mismatch_needs_both_regions(self, scorer) -> None:
        mismatch = DeviceSignature(ip_region="US", geo_region="DE")
        one_known = DeviceSignature(ip_region="US")
        same = DeviceSignature(ip_region="de", geo_region="DE")
        assert scorer.initial_trust(mismatch, AnonymitySignals()) == 90.0
        assert scorer.initial_trust(one_known, AnonymitySignals()) == 100.0
        assert scorer.initial_trust(same, AnonymitySignals()) == 100.0

    def test_clamped_at_zero(self) -> None:
        scorer = TrustScorer(baseline=40.0)
        signals = AnonymitySignals(vpn=True, tor=True, proxy=True)
        assert scorer.initial_trust(DeviceSignature(), signals) == 0.0


class TestRecompute:
    @pytest.fixture
    def scorer(self) -> TrustScorer:
        return TrustScorer()

    def test_age_bonus_saturates(self, scorer) -> None:
        assert scorer.recompute(identity(age_days=100), NOW) == pytest.approx(60.0)
        assert scorer.recompute(identity(age_days=1000), NOW) == pytest.approx(70.0)

    def test_contribution_bonus_saturates(self, scorer) -> None:
        assert scorer.recompute(identity(contribution_count=25), NOW) == pytest.approx(55.0)
        assert scorer.recompute(identity(contribution_count=500), NOW) == pytest.approx(65.0)

    def test_accuracy_thresholds_are_strict(self, scorer) -> None:
        at_threshold = identity(resolved_votes=10, accurate_votes=8)
        above = identity(resolved_votes=20, accurate_votes=17)
        excellent = identity(resolved_votes=20, accurate_votes=19)
        assert scorer.recompute(at_threshold, NOW) == pytest.approx(50.0)
        assert scorer.recompute(above, NOW) == pytest.approx(65.0)
        assert scorer.recompute(excellent, NOW) == pytest.approx(75.0)

    def test_clamped_at_hundred(self, scorer) -> None:
        veteran = identity(
            base=90.0, age_days=500, contribution_count=200, resolved_votes=10, accurate_votes=10
        )
        assert scorer.recompute(veteran, NOW) == 100.0


class TestTrustFactor:
    @pytest.mark.parametrize(
        "trust,expected",
        [(0.0, 0.2), (20.0, 0.36), (80.0, 0.84), (100.0, 1.0), (150.0, 1.0)],
    )
    def test_linear_map(self, trust, expected) -> None:
        assert trust_factor(trust) == pytest.approx(expected)


class TestTiers:
    @pytest.mark.parametrize(
        "trust,tier,per_hour,per_day,weight",
        [
            (100.0, "trusted", 100, 1000, 1.0),
            (90.0, "trusted", 100, 1000, 1.0),
            (89.9, "established", 50, 500, 0.8),
            (70.0, "established", 50, 500, 0.8),
            (50.0, "probationary", 20, 200, 0.6),
            (49.9, "restricted", 5, 50, 0.4),
            (0.0, "restricted", 5, 50, 0.4),
        ],
    )
    def test_tier_boundaries(self, trust, tier, per_hour, per_day, weight) -> None:
        limit = rate_limit_for(trust)
        assert (limit.tier, limit.per_hour, limit.per_day) == (tier, per_hour, per_day)
        assert tier_edge_weight(trust) == weight
