"""Tests for InMemoryIdentityStore."""

import asyncio

import pytest

from citadel_engine.data_management.identity_store import InMemoryIdentityStore
from citadel_engine.data_management.schemas import DeviceSignature, Identity, IdentityFlags
from citadel_engine.errors import IdentityNotFound


@pytest.fixture
def store() -> InMemoryIdentityStore:
    return InMemoryIdentityStore()


def make_identity(public_id: str = "AAAABBBBCCCCDDDD", trust: float = 80.0) -> Identity:
    return Identity(
        public_id=public_id,
        internal_hash=public_id.lower() * 4,
        trust_score=trust,
        base_trust=trust,
    )


class TestIdentityStore:
    @pytest.mark.asyncio
    async def test_save_and_get(self, store: InMemoryIdentityStore) -> None:
        await store.save(make_identity())
        identity = await store.get("AAAABBBBCCCCDDDD")
        assert identity.trust_score == 80.0

    @pytest.mark.asyncio
    async def test_find_missing_returns_none(self, store: InMemoryIdentityStore) -> None:
        assert await store.find("MISSING") is None

    @pytest.mark.asyncio
    async def test_get_missing_raises(self, store: InMemoryIdentityStore) -> None:
        with pytest.raises(IdentityNotFound):
            await store.get("MISSING")

    @pytest.mark.asyncio
    async def test_update_applies_mutation(self, store: InMemoryIdentityStore) -> None:
        await store.save(make_identity())

        def bump(identity: Identity) -> None:
            identity.reputation += 5

        updated = await store.update("AAAABBBBCCCCDDDD", bump)
        assert updated.reputation == 5
        assert (await store.get("AAAABBBBCCCCDDDD")).reputation == 5

    @pytest.mark.asyncio
    async def test_failed_mutation_leaves_identity_unchanged(self, store: InMemoryIdentityStore) -> None:
        await store.save(make_identity())

        def broken(identity: Identity) -> None:
            identity.reputation += 5
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await store.update("AAAABBBBCCCCDDDD", broken)
        assert (await store.get("AAAABBBBCCCCDDDD")).reputation == 0

    @pytest.mark.asyncio
    async def test_concurrent_updates_not_lost(self, store: InMemoryIdentityStore) -> None:
        await store.save(make_identity())

        def bump(identity: Identity) -> None:
            identity.contribution_count += 1

        await asyncio.gather(*(store.update("AAAABBBBCCCCDDDD", bump) for _ in range(25)))
        assert (await store.get("AAAABBBBCCCCDDDD")).contribution_count == 25

    @pytest.mark.asyncio
    async def test_update_missing_raises(self, store: InMemoryIdentityStore) -> None:
        with pytest.raises(IdentityNotFound):
            await store.update("MISSING", lambda identity: None)

    @pytest.mark.asyncio
    async def test_signatures_kept_beside_identity(self, store: InMemoryIdentityStore) -> None:
        signature = DeviceSignature(user_agent="Mozilla/5.0", timezone="UTC")
        await store.save(make_identity(), signature)
        pairs = await store.signatures()
        assert pairs == [("AAAABBBBCCCCDDDD", signature)]

    @pytest.mark.asyncio
    async def test_stats(self, store: InMemoryIdentityStore) -> None:
        flagged = make_identity("1111222233334444")
        flagged.flags = IdentityFlags(possible_duplicate=True, vpn_suspected=True)
        await store.save(make_identity())
        await store.save(flagged)
        stats = await store.get_stats()
        assert stats == {"total": 2, "possible_duplicates": 1, "anonymized": 1}

    @pytest.mark.asyncio
    async def test_persistence_round_trip(self, tmp_path) -> None:
        path = str(tmp_path / "identities.json")
        store = InMemoryIdentityStore(persistence_path=path)
        await store.save(make_identity(), DeviceSignature(platform="Linux"))

        reloaded = InMemoryIdentityStore(persistence_path=path)
        assert (await reloaded.get("AAAABBBBCCCCDDDD")).trust_score == 80.0
        assert (await reloaded.signatures())[0][1].platform == "Linux"
