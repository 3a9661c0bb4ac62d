"""Tests for InMemoryGraphStore.

Tests cover:
- Node and edge creation, lookup and not-found errors
- Dangling edge references
- Immutable id and kind on update
- Soft retraction and default filtering
- Neighbourhoods, pagination by kind, text search
- Vote recording: duplicate votes, concurrent votes, consensus marker
- Lock timeouts
- JSON persistence round trip
"""

import asyncio

import pytest

from citadel_engine.data_management.graph_store import InMemoryGraphStore
from citadel_engine.data_management.schemas import (
    AxiomPayload,
    ClaimPayload,
    Edge,
    EdgeStatus,
    Node,
    NodeKind,
    Relation,
    TextPayload,
    Vote,
)
from citadel_engine.errors import (
    AlreadyVoted,
    DanglingReference,
    EdgeNotFound,
    EdgeRetracted,
    ImmutableFieldError,
    NodeNotFound,
    Timeout,
)


# ── Fixtures ──────────────────────────────────────────────────────────────


@pytest.fixture
def store() -> InMemoryGraphStore:
    return InMemoryGraphStore()


def claim(title: str = "The moon landing was staged") -> Node:
    return Node(kind=NodeKind.CLAIM, title=title, payload=ClaimPayload(caption=title))


def text(title: str, body: str = "") -> Node:
    return Node(kind=NodeKind.TEXT, title=title, body=body, payload=TextPayload(text=body))


def link(source: Node, target: Node, relation: Relation = Relation.SUPPORTS, weight: float = 0.8) -> Edge:
    return Edge(
        source_id=source.id,
        target_id=target.id,
        relation=relation,
        weight=weight,
        created_by="CREATOR",
    )


# ── Nodes ─────────────────────────────────────────────────────────────────


class TestNodes:
    @pytest.mark.asyncio
    async def test_create_and_get(self, store: InMemoryGraphStore) -> None:
        node = claim()
        await store.create_node(node)
        fetched = await store.get_node(node.id)
        assert fetched.id == node.id
        assert fetched.kind == NodeKind.CLAIM

    @pytest.mark.asyncio
    async def test_get_missing_raises(self, store: InMemoryGraphStore) -> None:
        with pytest.raises(NodeNotFound):
            await store.get_node("nope")

    @pytest.mark.asyncio
    async def test_duplicate_id_rejected(self, store: InMemoryGraphStore) -> None:
        node = claim()
        await store.create_node(node)
        with pytest.raises(ImmutableFieldError):
            await store.create_node(node)

    @pytest.mark.asyncio
    async def test_reads_are_copies(self, store: InMemoryGraphStore) -> None:
        node = claim()
        await store.create_node(node)
        fetched = await store.get_node(node.id)
        fetched.title = "mutated"
        assert (await store.get_node(node.id)).title == node.title

    @pytest.mark.asyncio
    async def test_update_keeps_kind(self, store: InMemoryGraphStore) -> None:
        node = claim()
        await store.create_node(node)
        updated = await store.update_node(node.id, title="New title", tags={"space"})
        assert updated.title == "New title"
        assert updated.tags == {"space"}
        assert updated.kind == NodeKind.CLAIM
        assert updated.updated_at >= node.updated_at

    @pytest.mark.asyncio
    async def test_update_rejects_other_kind_payload(self, store: InMemoryGraphStore) -> None:
        node = claim()
        await store.create_node(node)
        with pytest.raises(ImmutableFieldError):
            await store.update_node(node.id, payload=AxiomPayload(statement="A = A"))

    @pytest.mark.asyncio
    async def test_nodes_by_kind_paginates(self, store: InMemoryGraphStore) -> None:
        for i in range(5):
            await store.create_node(claim(f"Claim {i}"))
        await store.create_node(text("Not a claim"))

        first = await store.get_nodes_by_kind(NodeKind.CLAIM, page=1, page_size=2)
        last = await store.get_nodes_by_kind(NodeKind.CLAIM, page=3, page_size=2)
        assert first.total == 5
        assert [n.title for n in first.items] == ["Claim 0", "Claim 1"]
        assert first.has_next
        assert len(last.items) == 1
        assert not last.has_next


# ── Edges ─────────────────────────────────────────────────────────────────


class TestEdges:
    @pytest.mark.asyncio
    async def test_dangling_reference(self, store: InMemoryGraphStore) -> None:
        node = claim()
        await store.create_node(node)
        ghost = text("never stored")
        with pytest.raises(DanglingReference) as exc:
            await store.create_edge(link(ghost, node))
        assert exc.value.missing_ids == [ghost.id]

    @pytest.mark.asyncio
    async def test_edges_of_directions(self, store: InMemoryGraphStore) -> None:
        c, e = claim(), text("Evidence")
        await store.create_node(c)
        await store.create_node(e)
        edge = await store.create_edge(link(e, c))

        assert [x.id for x in await store.edges_of(c.id, "incoming")] == [edge.id]
        assert await store.edges_of(c.id, "outgoing") == []
        assert [x.id for x in await store.edges_of(e.id, "both")] == [edge.id]

    @pytest.mark.asyncio
    async def test_edges_of_relation_filter(self, store: InMemoryGraphStore) -> None:
        c, e = claim(), text("Evidence")
        await store.create_node(c)
        await store.create_node(e)
        await store.create_edge(link(e, c, Relation.SUPPORTS))
        cites = await store.create_edge(link(e, c, Relation.CITES))

        filtered = await store.edges_of(c.id, relations=[Relation.CITES])
        assert [x.id for x in filtered] == [cites.id]

    @pytest.mark.asyncio
    async def test_get_missing_edge(self, store: InMemoryGraphStore) -> None:
        with pytest.raises(EdgeNotFound):
            await store.get_edge("nope")

    @pytest.mark.asyncio
    async def test_neighbourhood_annotates_direction(self, store: InMemoryGraphStore) -> None:
        c, e, other = claim(), text("Evidence"), claim("Related claim")
        for n in (c, e, other):
            await store.create_node(n)
        await store.create_edge(link(e, c))
        await store.create_edge(link(c, other, Relation.RELATED))

        hood = await store.get_node_with_neighbors(c.id)
        directions = {link_.node.id: link_.direction for link_ in hood.links}
        assert directions == {e.id: "incoming", other.id: "outgoing"}


# ── Retraction ────────────────────────────────────────────────────────────


class TestRetraction:
    @pytest.mark.asyncio
    async def test_retracted_node_addressable_but_hidden(self, store: InMemoryGraphStore) -> None:
        node = claim()
        await store.create_node(node)
        await store.retract_node(node.id, "MOD")

        fetched = await store.get_node(node.id)
        assert fetched.retracted
        assert fetched.retracted_by == "MOD"
        assert await store.list_nodes() == []
        assert (await store.get_nodes_by_kind(NodeKind.CLAIM)).total == 0
        assert len(await store.list_nodes(include_retracted=True)) == 1

    @pytest.mark.asyncio
    async def test_retracted_edge_excluded(self, store: InMemoryGraphStore) -> None:
        c, e = claim(), text("Evidence")
        await store.create_node(c)
        await store.create_node(e)
        edge = await store.create_edge(link(e, c))
        await store.retract_edge(edge.id, "MOD")

        assert await store.edges_of(c.id) == []
        assert len(await store.edges_of(c.id, include_retracted=True)) == 1
        assert (await store.get_edge(edge.id)).retracted

    @pytest.mark.asyncio
    async def test_edges_to_retracted_node_hidden(self, store: InMemoryGraphStore) -> None:
        c, e = claim(), text("Evidence")
        await store.create_node(c)
        await store.create_node(e)
        edge = await store.create_edge(link(e, c))
        await store.retract_node(e.id, "MOD")

        assert await store.edges_of(c.id, "incoming") == []
        assert await store.list_edges() == []
        assert [x.id for x in await store.edges_of(c.id, include_retracted=True)] == [edge.id]
        assert [x.id for x in await store.list_edges(include_retracted=True)] == [edge.id]
        assert not (await store.get_edge(edge.id)).retracted

    @pytest.mark.asyncio
    async def test_list_edges_in_creation_order(self, store: InMemoryGraphStore) -> None:
        c, e = claim(), text("Evidence")
        await store.create_node(c)
        await store.create_node(e)
        first = await store.create_edge(link(e, c))
        second = await store.create_edge(link(e, c, Relation.CITES))

        assert [x.id for x in await store.list_edges()] == [first.id, second.id]
        cites = await store.list_edges(relations=[Relation.CITES])
        assert [x.id for x in cites] == [second.id]


# ── Search ────────────────────────────────────────────────────────────────


class TestSearch:
    @pytest.mark.asyncio
    async def test_search_excludes_retracted(self, store: InMemoryGraphStore) -> None:
        keep = text("Apollo 11 telemetry")
        gone = text("Apollo 11 hoax")
        await store.create_node(keep)
        await store.create_node(gone)
        await store.retract_node(gone.id)

        hits = await store.search_text("apollo")
        assert [h.node.id for h in hits] == [keep.id]

    @pytest.mark.asyncio
    async def test_search_kind_filter(self, store: InMemoryGraphStore) -> None:
        await store.create_node(claim("Apollo was faked"))
        await store.create_node(text("Apollo telemetry"))
        hits = await store.search_text("apollo", kinds=[NodeKind.TEXT])
        assert [h.node.kind for h in hits] == [NodeKind.TEXT]


# ── Votes ─────────────────────────────────────────────────────────────────


class TestVotes:
    @pytest.fixture
    def edge_pair(self) -> tuple[Node, Node]:
        return claim(), text("Evidence")

    async def _edge(self, store: InMemoryGraphStore, pair: tuple[Node, Node]) -> Edge:
        c, e = pair
        await store.create_node(c)
        await store.create_node(e)
        return await store.create_edge(link(e, c))

    @pytest.mark.asyncio
    async def test_record_vote_updates_tally(self, store: InMemoryGraphStore, edge_pair) -> None:
        edge = await self._edge(store, edge_pair)
        tally = await store.record_vote(edge.id, "V1", Vote.AGREE, 0.6)
        assert tally.agree == 1
        assert tally.agree_weight == pytest.approx(0.6)
        assert (await store.get_edge(edge.id)).votes == {"V1": Vote.AGREE}

    @pytest.mark.asyncio
    async def test_second_vote_rejected_tally_unchanged(self, store: InMemoryGraphStore, edge_pair) -> None:
        edge = await self._edge(store, edge_pair)
        await store.record_vote(edge.id, "V1", Vote.AGREE, 0.6)
        with pytest.raises(AlreadyVoted):
            await store.record_vote(edge.id, "V1", Vote.DISAGREE, 0.6)

        stored = await store.get_edge(edge.id)
        assert stored.tally.agree == 1
        assert stored.tally.disagree == 0

    @pytest.mark.asyncio
    async def test_concurrent_votes_not_lost(self, store: InMemoryGraphStore, edge_pair) -> None:
        edge = await self._edge(store, edge_pair)
        await asyncio.gather(
            *(store.record_vote(edge.id, f"V{i}", Vote.AGREE, 1.0) for i in range(50))
        )
        stored = await store.get_edge(edge.id)
        assert stored.tally.agree == 50
        assert stored.tally.agree_weight == pytest.approx(50.0)

    @pytest.mark.asyncio
    async def test_consensus_fixed_once_reached(self, store: InMemoryGraphStore, edge_pair) -> None:
        edge = await self._edge(store, edge_pair)
        for i in range(10):
            await store.record_vote(edge.id, f"A{i}", Vote.AGREE, 1.0)
        for i in range(10):
            await store.record_vote(edge.id, f"D{i}", Vote.DISAGREE, 1.0)

        stored = await store.get_edge(edge.id)
        assert stored.consensus == EdgeStatus.VERIFIED
        assert stored.consensus_at_votes == 10
        assert stored.status == EdgeStatus.PENDING

    @pytest.mark.asyncio
    async def test_vote_on_missing_edge(self, store: InMemoryGraphStore) -> None:
        with pytest.raises(EdgeNotFound):
            await store.record_vote("nope", "V1", Vote.AGREE, 1.0)

    @pytest.mark.asyncio
    async def test_vote_on_retracted_edge_rejected(self, store: InMemoryGraphStore, edge_pair) -> None:
        edge = await self._edge(store, edge_pair)
        await store.record_vote(edge.id, "V1", Vote.AGREE, 1.0)
        await store.retract_edge(edge.id, "MOD")
        with pytest.raises(EdgeRetracted):
            await store.record_vote(edge.id, "V2", Vote.AGREE, 1.0)

        stored = await store.get_edge(edge.id)
        assert stored.tally.agree == 1
        assert "V2" not in stored.votes

    @pytest.mark.asyncio
    async def test_vote_with_retracted_endpoint_rejected(self, store: InMemoryGraphStore, edge_pair) -> None:
        edge = await self._edge(store, edge_pair)
        await store.retract_node(edge.target_id)
        with pytest.raises(EdgeRetracted):
            await store.record_vote(edge.id, "V1", Vote.AGREE, 1.0)
        assert (await store.get_edge(edge.id)).tally.agree == 0

    @pytest.mark.asyncio
    async def test_lock_timeout(self, edge_pair) -> None:
        store = InMemoryGraphStore(timeout_secs=0.05)
        edge = await self._edge(store, edge_pair)
        lock = store._edge_lock(edge.id)
        await lock.acquire()
        try:
            with pytest.raises(Timeout):
                await store.record_vote(edge.id, "V1", Vote.AGREE, 1.0)
        finally:
            lock.release()


# ── Persistence ───────────────────────────────────────────────────────────


class TestPersistence:
    @pytest.mark.asyncio
    async def test_round_trip(self, tmp_path) -> None:
        path = tmp_path / "graph.json"
        store = InMemoryGraphStore(persistence_path=str(path))
        c, e = claim(), text("Evidence", "Telemetry logs")
        await store.create_node(c)
        await store.create_node(e)
        edge = await store.create_edge(link(e, c))
        await store.record_vote(edge.id, "V1", Vote.DISAGREE, 0.5)

        reloaded = InMemoryGraphStore(persistence_path=str(path))
        assert (await reloaded.get_node(e.id)).payload.text == "Telemetry logs"
        incoming = await reloaded.edges_of(c.id, "incoming")
        assert [x.id for x in incoming] == [edge.id]
        assert incoming[0].tally.disagree == 1

    @pytest.mark.asyncio
    async def test_stats(self, store: InMemoryGraphStore) -> None:
        c, e = claim(), text("Evidence")
        await store.create_node(c)
        await store.create_node(e)
        await store.create_edge(link(e, c))
        stats = await store.stats()
        assert stats["total_nodes"] == 2
        assert stats["total_edges"] == 1
        assert stats["nodes_by_kind"] == {"claim": 1, "text": 1}
        assert stats["persistence_enabled"] is False
