"""Citadel Score computation and controversy classification."""

from citadel_engine.scoring.citadel_scorer import CitadelScorer, CreatorCache, CreatorView

__all__ = ["CitadelScorer", "CreatorCache", "CreatorView"]
