"""
Token limiter facade.

Composes window accounting, quota evaluation and threshold notification
around a pluggable storage backend. Every mutating call performs exactly
one load and one store; the pair is not atomic across concurrent callers
for the same identity.
"""

from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional, Sequence, TypeVar

from .evaluator import (
    DEFAULT_THRESHOLDS,
    LimitSpec,
    QuotaConfig,
    ThresholdCallback,
    UsageStats,
    compute_stats,
    is_within_limits,
    remaining_for_primary,
)
from .pricing import calculate_cost
from .thresholds import apply_thresholds
from .token_counter import extract_token_usage
from .window import prune_events
from token_limiter.errors import QuotaExceededError
from token_limiter.log import get_logger
from token_limiter.storage.base import StorageAdapter
from token_limiter.storage.memory import MemoryStorage
from token_limiter.storage.models import Ledger, UsageEvent

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_LIMIT = 100_000
DEFAULT_WINDOW = timedelta(hours=1)


def _validate_identity(identity: str) -> None:
    if not isinstance(identity, str) or not identity.strip():
        raise ValueError("identity must be a non-empty string")


class TokenLimiter:
    """Per-identity token quota tracker.

    Quota status is re-derived from the stored ledger on every call; no
    counters are held in memory between calls.
    """

    def __init__(
        self,
        config: QuotaConfig,
        storage: Optional[StorageAdapter] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """Initialize the limiter.

        Args:
            config: Validated limiter configuration
            storage: Ledger backend (defaults to MemoryStorage)
            clock: Source of the current time (defaults to datetime.now)
        """
        self.config = config
        self.storage = storage if storage is not None else MemoryStorage()
        self.clock = clock or datetime.now

    async def _load(self, identity: str) -> Ledger:
        ledger = await self.storage.load(identity)
        return ledger if ledger is not None else Ledger()

    async def check(self, identity: str) -> bool:
        """Return True if the identity is within every configured limit."""
        _validate_identity(identity)
        ledger = await self._load(identity)
        return is_within_limits(ledger, self.config, self.clock())

    async def stats(self, identity: str) -> UsageStats:
        """Return usage statistics for the primary limit."""
        _validate_identity(identity)
        ledger = await self._load(identity)
        return compute_stats(ledger, self.config, self.clock())

    async def remaining_tokens(self, identity: str) -> float:
        """Return tokens left under the primary limit, without burst."""
        _validate_identity(identity)
        ledger = await self._load(identity)
        return remaining_for_primary(ledger, self.config, self.clock())

    async def _record(self, identity: str, tokens: int, cost: float) -> None:
        ledger = await self._load(identity)
        now = self.clock()

        events = prune_events(ledger.events, self.config.windows, now)
        events.append(UsageEvent(tokens=tokens, cost=cost, timestamp=now))
        ledger = apply_thresholds(identity, ledger.with_events(events), self.config, now)

        await self.storage.store(identity, ledger)

    async def add_tokens(self, identity: str, tokens: int, cost: float = 0) -> None:
        """Manually record usage for an identity.

        Useful for streaming responses or usage reported out of band.

        Args:
            identity: Identity to charge
            tokens: Number of tokens consumed
            cost: Cost in USD

        Raises:
            ValueError: If identity is blank or tokens/cost are negative
        """
        _validate_identity(identity)
        if tokens < 0:
            raise ValueError("Tokens to add must be non-negative")
        if cost < 0:
            raise ValueError("Cost to add must be non-negative")
        await self._record(identity, tokens, cost)

    async def wrap(
        self,
        identity: str,
        operation: Callable[[], Awaitable[T]],
        throw_on_limit: bool = False,
        model: Optional[str] = None
    ) -> T:
        """Run an LLM call and record the tokens it reports.

        Quota is only enforced when ``throw_on_limit`` is set; otherwise the
        call always runs and usage is tracked. Failures of the operation
        propagate unchanged and record nothing.

        Args:
            identity: Identity to charge
            operation: Zero-argument callable returning an awaitable response
            throw_on_limit: Reject before calling when over quota
            model: Model name used for cost calculation

        Returns:
            The operation's response, unchanged

        Raises:
            QuotaExceededError: If throw_on_limit is set and the identity is over quota
        """
        _validate_identity(identity)
        within_limit = await self.check(identity)

        if not within_limit:
            if throw_on_limit:
                logger.warning("Rejecting call for %s: quota exceeded", identity)
                raise QuotaExceededError(identity)
            logger.debug("Identity %s is over quota, proceeding", identity)

        response = await operation()

        usage = extract_token_usage(response)
        if usage.total_tokens > 0:
            cost = calculate_cost(model, usage) if self.config.cost_enabled else 0.0
            await self._record(identity, usage.total_tokens, cost)

        return response

    async def reset(self, identity: str) -> None:
        """Delete all usage and threshold history for an identity."""
        _validate_identity(identity)
        await self.storage.delete(identity)
        logger.info("Reset usage for %s", identity)


def create_limiter(
    limit: Optional[float] = None,
    window: Optional[timedelta] = None,
    limits: Optional[Sequence[LimitSpec]] = None,
    burst_percent: float = 0,
    track_cost: bool = False,
    cost_limit: Optional[float] = None,
    storage: Optional[StorageAdapter] = None,
    on_threshold: Optional[ThresholdCallback] = None,
    thresholds: Optional[Sequence[float]] = None,
    clock: Optional[Callable[[], datetime]] = None
) -> TokenLimiter:
    """Create a token limiter.

    Either pass ``limits`` for several windows, or the simple ``limit`` /
    ``window`` pair (100,000 tokens per hour by default).

    Raises:
        ValueError: If any configuration value is invalid
    """
    if limits is None:
        limits = [LimitSpec(
            tokens=DEFAULT_LIMIT if limit is None else limit,
            window=DEFAULT_WINDOW if window is None else window
        )]

    config = QuotaConfig(
        limits=tuple(limits),
        burst_percent=burst_percent,
        cost_limit=cost_limit,
        track_cost=track_cost,
        thresholds=tuple(DEFAULT_THRESHOLDS if thresholds is None else thresholds),
        on_threshold=on_threshold
    )
    return TokenLimiter(config, storage=storage, clock=clock)
