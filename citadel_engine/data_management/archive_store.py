"""Archival store contract for evidence permanence.

The durable archive (content-addressed, permanent object storage) is an
external collaborator. The engine only ever calls `store` and `verify`.
InMemoryArchiveStore satisfies the contract with SHA-256 content hashes and
is used in tests and local runs.
"""

import hashlib
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Union

from pydantic import BaseModel, Field

Content = Union[str, bytes]


class ArchiveReceipt(BaseModel):
    """Where archived content lives and how to check it."""

    hash: str
    locator: str
    size: int = Field(..., ge=0)
    archived_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


def content_hash(content: Content) -> str:
    """SHA-256 hex digest of content (str is UTF-8 encoded)."""
    data = content.encode("utf-8") if isinstance(content, str) else content
    return hashlib.sha256(data).hexdigest()


class ArchiveStore(ABC):
    @abstractmethod
    async def store(self, content: Content) -> ArchiveReceipt:
        """Archive content. Returns hash and locator."""

    @abstractmethod
    async def verify(self, hash: str, content: Content) -> bool:
        """True if content matches the archived hash."""


class InMemoryArchiveStore(ArchiveStore):
    """Content-addressed dict keyed by SHA-256."""

    def __init__(self, locator_prefix: str = "mem://") -> None:
        self._objects: dict[str, bytes] = {}
        self.locator_prefix = locator_prefix

    async def store(self, content: Content) -> ArchiveReceipt:
        data = content.encode("utf-8") if isinstance(content, str) else content
        digest = content_hash(data)
        self._objects[digest] = data
        return ArchiveReceipt(
            hash=digest,
            locator=f"{self.locator_prefix}{digest}",
            size=len(data),
        )

    async def verify(self, hash: str, content: Content) -> bool:
        return hash in self._objects and content_hash(content) == hash
