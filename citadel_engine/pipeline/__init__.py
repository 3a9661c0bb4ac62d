"""Query and command interface consumed by presentation code.

Provides:
- CitadelService: claims, evidence, verification votes, scores, traversal and search
"""

from citadel_engine.pipeline.citadel_service import CitadelService

__all__ = ["CitadelService"]
