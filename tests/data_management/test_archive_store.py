"""Tests for the in-memory archival store."""

import hashlib

import pytest

from citadel_engine.data_management.archive_store import InMemoryArchiveStore, content_hash


class TestArchiveStore:
    @pytest.mark.asyncio
    async def test_store_returns_sha256_receipt(self) -> None:
        store = InMemoryArchiveStore()
        receipt = await store.store("primary source text")
        assert receipt.hash == hashlib.sha256(b"primary source text").hexdigest()
        assert receipt.locator == f"mem://{receipt.hash}"
        assert receipt.size == len("primary source text")

    @pytest.mark.asyncio
    async def test_verify(self) -> None:
        store = InMemoryArchiveStore()
        receipt = await store.store(b"bytes content")
        assert await store.verify(receipt.hash, b"bytes content")
        assert await store.verify(receipt.hash, "bytes content")
        assert not await store.verify(receipt.hash, "tampered")

    @pytest.mark.asyncio
    async def test_verify_unknown_hash(self) -> None:
        store = InMemoryArchiveStore()
        assert not await store.verify(content_hash("never stored"), "never stored")
