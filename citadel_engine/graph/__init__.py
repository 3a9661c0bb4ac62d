"""Graph exploration: bounded traversal and shortest paths."""

from citadel_engine.graph.traversal import TraversalEngine

__all__ = ["TraversalEngine"]
