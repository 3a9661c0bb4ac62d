"""Identity storage with per-identity atomic updates.

Follows the same patterns as the graph store:
- IdentityStore abstract contract, InMemoryIdentityStore reference backend
- O(1) lookup by public_id
- Signatures kept beside identities for duplicate comparison, never exposed
  on the Identity model itself
- Optional JSON persistence

Usage:
    from citadel_engine.data_management.identity_store import InMemoryIdentityStore

    store = InMemoryIdentityStore()
    await store.save(identity, signature)
    identity = await store.get("3FA2C0D19B7E4A11")
"""

import asyncio
import json
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Optional

import structlog

from citadel_engine.config.settings import settings
from citadel_engine.data_management.schemas import DeviceSignature, Identity
from citadel_engine.errors import IdentityNotFound, Timeout


class IdentityStore(ABC):
    """Contract for identity persistence backends."""

    @abstractmethod
    async def find(self, public_id: str) -> Optional[Identity]:
        """Identity by public id, or None."""

    @abstractmethod
    async def get(self, public_id: str) -> Identity:
        """Identity by public id. Raises IdentityNotFound."""

    @abstractmethod
    async def save(self, identity: Identity, signature: Optional[DeviceSignature] = None) -> Identity:
        """Insert or replace an identity (and its signature, when given)."""

    @abstractmethod
    async def update(self, public_id: str, mutate: Callable[[Identity], None]) -> Identity:
        """Apply mutate() to an identity atomically and store the result."""

    @abstractmethod
    async def signatures(self) -> list[tuple[str, DeviceSignature]]:
        """All (public_id, signature) pairs for duplicate comparison."""

    @abstractmethod
    async def list_identities(self) -> list[Identity]:
        """All identities."""

    @abstractmethod
    async def get_stats(self) -> dict[str, Any]:
        """Counts: total, possible_duplicates, anonymized."""


class InMemoryIdentityStore(IdentityStore):
    """In-memory identity store.

    Data structure:
    {
        public_id: Identity,
        ...
    }
    """

    def __init__(
        self,
        persistence_path: Optional[str] = None,
        timeout_secs: Optional[float] = None,
    ) -> None:
        """Initialize InMemoryIdentityStore.

        Args:
            persistence_path: Optional path to JSON file for persistence.
                            If None, storage is memory-only.
            timeout_secs: Lock acquisition budget. Defaults to settings.store_timeout_secs.
        """
        self._identities: dict[str, Identity] = {}
        self._signatures: dict[str, DeviceSignature] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock = asyncio.Lock()
        self.timeout_secs = timeout_secs or settings.store_timeout_secs
        self._persistence_path = Path(persistence_path) if persistence_path else None
        self._logger = structlog.get_logger().bind(component="IdentityStore")

        if self._persistence_path and self._persistence_path.exists():
            self._load_from_file()

    @asynccontextmanager
    async def _guard(self, lock: asyncio.Lock, operation: str) -> AsyncIterator[None]:
        try:
            await asyncio.wait_for(lock.acquire(), timeout=self.timeout_secs)
        except asyncio.TimeoutError as e:
            raise Timeout(operation, self.timeout_secs) from e
        try:
            yield
        finally:
            lock.release()

    async def find(self, public_id: str) -> Optional[Identity]:
        identity = self._identities.get(public_id)
        return identity.model_copy(deep=True) if identity else None

    async def get(self, public_id: str) -> Identity:
        identity = await self.find(public_id)
        if identity is None:
            raise IdentityNotFound(public_id)
        return identity

    async def save(self, identity: Identity, signature: Optional[DeviceSignature] = None) -> Identity:
        async with self._guard(self._lock, "save_identity"):
            stored = identity.model_copy(deep=True)
            self._identities[stored.public_id] = stored
            self._locks.setdefault(stored.public_id, asyncio.Lock())
            if signature is not None:
                self._signatures[stored.public_id] = signature.model_copy(deep=True)

            self._logger.debug(
                "identity_saved",
                public_id=stored.public_id,
                trust_score=stored.trust_score,
            )
            if self._persistence_path:
                self._save_to_file()
            return stored.model_copy(deep=True)

    async def update(self, public_id: str, mutate: Callable[[Identity], None]) -> Identity:
        """Apply a mutation under the identity's lock.

        mutate() receives a working copy. The copy replaces the stored
        identity only if mutate() returns without raising.
        """
        if public_id not in self._identities:
            raise IdentityNotFound(public_id)

        lock = self._locks.setdefault(public_id, asyncio.Lock())
        async with self._guard(lock, "update_identity"):
            working = self._identities[public_id].model_copy(deep=True)
            mutate(working)
            validated = Identity.model_validate(working.model_dump())
            self._identities[public_id] = validated

            if self._persistence_path:
                self._save_to_file()
            return validated.model_copy(deep=True)

    async def signatures(self) -> list[tuple[str, DeviceSignature]]:
        return [(pid, sig.model_copy(deep=True)) for pid, sig in self._signatures.items()]

    async def list_identities(self) -> list[Identity]:
        return [identity.model_copy(deep=True) for identity in self._identities.values()]

    async def get_stats(self) -> dict[str, Any]:
        identities = list(self._identities.values())
        return {
            "total": len(identities),
            "possible_duplicates": sum(1 for i in identities if i.flags.possible_duplicate),
            "anonymized": sum(
                1
                for i in identities
                if i.flags.vpn_suspected or i.flags.tor_suspected or i.flags.proxy_suspected
            ),
        }

    def _save_to_file(self) -> None:
        """Save to JSON file (synchronous)."""
        if not self._persistence_path:
            return
        try:
            self._persistence_path.parent.mkdir(parents=True, exist_ok=True)
            data: dict[str, Any] = {
                "identities": {
                    pid: identity.model_dump(mode="json")
                    for pid, identity in self._identities.items()
                },
                "signatures": {
                    pid: sig.model_dump(mode="json")
                    for pid, sig in self._signatures.items()
                },
            }
            with open(self._persistence_path, "w") as f:
                json.dump(data, f, indent=2, default=str)
        except Exception as e:
            self._logger.error("persistence_failed", error=str(e))

    def _load_from_file(self) -> None:
        """Load from JSON file (synchronous)."""
        try:
            with open(self._persistence_path, "r") as f:
                data = json.load(f)
            self._identities = {
                pid: Identity.model_validate(raw)
                for pid, raw in data.get("identities", {}).items()
            }
            self._signatures = {
                pid: DeviceSignature.model_validate(raw)
                for pid, raw in data.get("signatures", {}).items()
            }
            self._locks = {pid: asyncio.Lock() for pid in self._identities}
        except Exception as e:
            self._logger.error("load_failed", error=str(e))
            self._identities = {}
            self._signatures = {}
            self._locks = {}
