"""
Storage port for usage ledgers.

Any backend that can load, store and delete a ledger by identity can back
the limiter. Calls for distinct identities must be safe to run concurrently;
concurrent calls for the same identity are backend-defined.
"""

from abc import ABC, abstractmethod
from typing import Optional

from .models import Ledger


class StorageAdapter(ABC):
    """Abstract backend holding one ledger per identity."""

    @abstractmethod
    async def load(self, identity: str) -> Optional[Ledger]:
        """Return the stored ledger, or None if the identity has none."""

    @abstractmethod
    async def store(self, identity: str, ledger: Ledger) -> None:
        """Replace the stored ledger for the identity."""

    @abstractmethod
    async def delete(self, identity: str) -> None:
        """Remove the ledger for the identity."""
