"""
In-process storage adapter.

Data is lost when the process exits. Intended as the default backend and
for tests, not as a shared store between processes.
"""

from typing import Dict, Optional

from .base import StorageAdapter
from .models import Ledger


class MemoryStorage(StorageAdapter):
    """Dictionary-backed ledger storage."""

    def __init__(self):
        self._ledgers: Dict[str, Ledger] = {}

    async def load(self, identity: str) -> Optional[Ledger]:
        return self._ledgers.get(identity)

    async def store(self, identity: str, ledger: Ledger) -> None:
        self._ledgers[identity] = ledger

    async def delete(self, identity: str) -> None:
        self._ledgers.pop(identity, None)

    def __len__(self) -> int:
        return len(self._ledgers)
