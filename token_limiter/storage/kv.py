"""
Key-value storage adapter.

Persists ledgers as JSON documents in any async key-value client exposing
``get``, ``set`` and ``delete``, such as ``redis.asyncio.Redis``. The
client is supplied by the caller.
"""

import json
from typing import Any, Optional, Protocol

from .base import StorageAdapter
from .models import Ledger


class KeyValueClient(Protocol):
    """Minimal client surface used by KeyValueStorage."""

    async def get(self, key: str) -> Any: ...

    async def set(self, key: str, value: str) -> Any: ...

    async def delete(self, key: str) -> Any: ...


class KeyValueStorage(StorageAdapter):
    """Ledger storage on top of an external key-value store."""

    def __init__(self, client: KeyValueClient, prefix: str = "limiter:"):
        """Initialize the adapter.

        Args:
            client: Async key-value client
            prefix: Key prefix used to namespace ledgers
        """
        self.client = client
        self.prefix = prefix

    def _key(self, identity: str) -> str:
        return self.prefix + identity

    async def load(self, identity: str) -> Optional[Ledger]:
        raw = await self.client.get(self._key(identity))
        if not raw:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return Ledger.from_dict(json.loads(raw))

    async def store(self, identity: str, ledger: Ledger) -> None:
        await self.client.set(self._key(identity), json.dumps(ledger.to_dict()))

    async def delete(self, identity: str) -> None:
        await self.client.delete(self._key(identity))
