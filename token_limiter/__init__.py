"""
Token limiter.

Per-identity sliding-window token and cost quotas for LLM API calls.
"""

from .core.evaluator import LimitSpec, QuotaConfig, UsageStats
from .core.limiter import TokenLimiter, create_limiter
from .errors import QuotaExceededError
from .storage.base import StorageAdapter
from .storage.kv import KeyValueStorage
from .storage.memory import MemoryStorage
from .storage.repository import SQLiteStorage

__all__ = [
    "KeyValueStorage",
    "LimitSpec",
    "MemoryStorage",
    "QuotaConfig",
    "QuotaExceededError",
    "SQLiteStorage",
    "StorageAdapter",
    "TokenLimiter",
    "UsageStats",
    "create_limiter",
]
