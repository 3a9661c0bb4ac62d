"""Bounded exploration and shortest-path discovery over the knowledge graph.

Both operations are breadth-first and read-only. Edge order at each node is
deterministic: effective weight descending, then creation time ascending,
then edge id. Adjacency is undirected by default, so a claim reaches its
evidence and the evidence reaches the claim.
"""

from collections import deque
from typing import Deque, Dict, Iterable, List, Optional, Set, Tuple

from loguru import logger

from citadel_engine.config.settings import settings
from citadel_engine.data_management.graph_store import Direction, GraphStore
from citadel_engine.data_management.schemas import Edge, GraphPath, Node, Relation, TraversalResult
from citadel_engine.scoring.citadel_scorer import CitadelScorer, CreatorCache


class TraversalEngine:
    """
    Breadth-first traversal and minimum-hop paths weighted by trust.

    Usage:
        engine = TraversalEngine(graph_store, scorer)
        result = await engine.traverse(claim_id, max_depth=2)
        path = await engine.shortest_path(claim_id, person_id)
    """

    def __init__(self, graph_store: GraphStore, scorer: CitadelScorer):
        self.graph_store = graph_store
        self.scorer = scorer
        self.logger = logger.bind(component="TraversalEngine")

    async def _ranked_edges(
        self,
        node_id: str,
        cache: CreatorCache,
        direction: Direction,
        relations: Optional[Iterable[Relation]],
        min_weight: Optional[float],
        nodes: Dict[str, Node],
    ) -> List[Tuple[Edge, float]]:
        """Qualifying edges at a node with their effective weights, in visit order."""
        ranked: List[Tuple[Edge, float]] = []
        for edge in await self.graph_store.edges_of(node_id, direction, relations):
            weight = await self.scorer.effective_weight(edge, cache)
            if min_weight is not None and weight < min_weight:
                continue
            other_id = edge.other_end(node_id)
            if other_id not in nodes:
                nodes[other_id] = await self.graph_store.get_node(other_id)
            if nodes[other_id].retracted:
                continue
            ranked.append((edge, weight))

        ranked.sort(key=lambda pair: (-pair[1], pair[0].created_at, pair[0].id))
        return ranked

    async def traverse(
        self,
        root_id: str,
        max_depth: int,
        relations: Optional[Iterable[Relation]] = None,
        min_weight: Optional[float] = None,
        direction: Direction = "both",
    ) -> TraversalResult:
        """
        Expand from a root up to max_depth hops, visiting each node once.

        Args:
            root_id: Starting node
            max_depth: Hop bound; 0 returns only the root
            relations: Restrict to these relation types
            min_weight: Skip edges whose effective weight is below this
            direction: Follow outgoing, incoming or both edge directions

        Returns:
            TraversalResult; a root with no qualifying neighbours is a valid result

        Raises:
            NodeNotFound: Unknown root
            ValueError: Negative max_depth
        """
        if max_depth < 0:
            raise ValueError(f"max_depth must be >= 0, got {max_depth}")

        root = await self.graph_store.get_node(root_id)
        relations = list(relations) if relations else None
        cache = self.scorer.new_cache()
        known: Dict[str, Node] = {root.id: root}

        result = TraversalResult(root_id=root.id, nodes=[root], depths={root.id: 0})
        seen_edges: Set[str] = set()
        queue: Deque[Tuple[str, int]] = deque([(root.id, 0)])

        while queue:
            node_id, depth = queue.popleft()
            if depth >= max_depth:
                continue

            for edge, weight in await self._ranked_edges(
                node_id, cache, direction, relations, min_weight, known
            ):
                if edge.id not in seen_edges:
                    seen_edges.add(edge.id)
                    result.edges.append(edge)
                    result.total_weight += weight

                other_id = edge.other_end(node_id)
                if other_id not in result.depths:
                    result.depths[other_id] = depth + 1
                    result.nodes.append(known[other_id])
                    queue.append((other_id, depth + 1))

        self.logger.debug(
            f"Traversal from {root_id}: {len(result.nodes)} nodes, {len(result.edges)} edges",
            max_depth=max_depth,
        )
        return result

    async def shortest_path(
        self,
        source_id: str,
        target_id: str,
        max_hops: Optional[int] = None,
        relations: Optional[Iterable[Relation]] = None,
        direction: Direction = "both",
    ) -> Optional[GraphPath]:
        """
        Minimum-hop path; among equal-length paths, the highest cumulative
        effective weight wins.

        Returns:
            GraphPath, or None when no path exists within max_hops

        Raises:
            NodeNotFound: Unknown source or target
        """
        max_hops = settings.default_max_hops if max_hops is None else max_hops
        source = await self.graph_store.get_node(source_id)
        target = await self.graph_store.get_node(target_id)
        if source.id == target.id:
            return GraphPath(nodes=[source], edges=[], total_weight=0.0)

        relations = list(relations) if relations else None
        cache = self.scorer.new_cache()
        known: Dict[str, Node] = {source.id: source, target.id: target}

        # node id -> (cumulative weight, edge into node, previous node id)
        best: Dict[str, Tuple[float, Optional[Edge], Optional[str]]] = {
            source.id: (0.0, None, None)
        }
        frontier: List[str] = [source.id]

        for _ in range(max_hops):
            layer: Dict[str, Tuple[float, Optional[Edge], Optional[str]]] = {}
            for node_id in frontier:
                base_weight = best[node_id][0]
                for edge, weight in await self._ranked_edges(
                    node_id, cache, direction, relations, None, known
                ):
                    other_id = edge.other_end(node_id)
                    if other_id in best:
                        continue
                    candidate = base_weight + weight
                    if other_id not in layer or candidate > layer[other_id][0]:
                        layer[other_id] = (candidate, edge, node_id)

            if not layer:
                break
            best.update(layer)
            if target.id in layer:
                return self._build_path(target.id, best, known)
            frontier = sorted(layer, key=lambda nid: (-layer[nid][0], nid))

        self.logger.debug(f"No path {source_id} -> {target_id} within {max_hops} hops")
        return None

    def _build_path(
        self,
        target_id: str,
        best: Dict[str, Tuple[float, Optional[Edge], Optional[str]]],
        known: Dict[str, Node],
    ) -> GraphPath:
        nodes: List[Node] = []
        edges: List[Edge] = []
        node_id: Optional[str] = target_id
        while node_id is not None:
            _, edge, previous = best[node_id]
            nodes.append(known[node_id])
            if edge is not None:
                edges.append(edge)
            node_id = previous
        nodes.reverse()
        edges.reverse()
        return GraphPath(nodes=nodes, edges=edges, total_weight=best[target_id][0])
