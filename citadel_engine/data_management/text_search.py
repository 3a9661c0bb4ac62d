"""Case-insensitive text matching and relevance ranking over nodes.

Relevance tiers:
    3 - the whole query appears as a phrase in one field
    2 - every query token appears somewhere in the node
    1 - at least one query token appears

Within a tier, nodes with more title hits rank first, then more total
token hits, then newer nodes. Node id breaks any remaining tie so the
ordering is deterministic.
"""

import re
from typing import Iterable, List, Optional

from citadel_engine.data_management.schemas import Node, SearchHit

_TOKEN_RE = re.compile(r"\w+", re.UNICODE)
_SPACE_RE = re.compile(r"\s+")


def tokenize(text: str) -> List[str]:
    """Lowercase word tokens, duplicates removed, order preserved."""
    seen: dict[str, None] = {}
    for token in _TOKEN_RE.findall(text.lower()):
        seen.setdefault(token, None)
    return list(seen)


def normalize_phrase(text: str) -> str:
    return _SPACE_RE.sub(" ", text.strip().lower())


def match_node(node: Node, phrase: str, tokens: List[str]) -> Optional[SearchHit]:
    """Score one node against a normalized phrase and its tokens.

    Returns None when no token matches.
    """
    title, others = node.searchable_fields()
    fields = [normalize_phrase(title)] + [normalize_phrase(text) for text in others]
    haystack = "\n".join(fields)

    present = [token for token in tokens if token in haystack]
    if not present:
        return None

    if any(phrase in field for field in fields):
        tier = 3
    elif len(present) == len(tokens):
        tier = 2
    else:
        tier = 1

    return SearchHit(
        node=node,
        tier=tier,
        title_hits=sum(1 for token in tokens if token in fields[0]),
        token_hits=sum(haystack.count(token) for token in present),
    )


def rank_nodes(nodes: Iterable[Node], query: str, limit: int) -> List[SearchHit]:
    """Match and rank nodes for a free-text query.

    Args:
        nodes: Candidate nodes (already filtered for retraction/kind).
        query: Raw query string.
        limit: Maximum number of hits.

    Returns:
        Hits ordered by relevance, at most `limit` long. Empty for a blank query.
    """
    phrase = normalize_phrase(query)
    tokens = tokenize(query)
    if not tokens or limit <= 0:
        return []

    hits = [hit for node in nodes if (hit := match_node(node, phrase, tokens))]
    hits.sort(
        key=lambda h: (
            -h.tier,
            -h.title_hits,
            -h.token_hits,
            -h.node.created_at.timestamp(),
            h.node.id,
        )
    )
    return hits[:limit]
