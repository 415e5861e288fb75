"""
Quota evaluation against configured limits.

Evaluation Policy:
1. Every token limit must pass - any single exhausted window rejects
2. Burst allowance scales every ceiling by the same multiplier
3. Cost ceiling is checked over the widest configured window
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional, Sequence, Tuple

from .window import max_window, prune_events, window_usage
from token_limiter.storage.models import Ledger

ThresholdCallback = Callable[[str, float], None]

DEFAULT_THRESHOLDS = (80, 90, 100)


@dataclass(frozen=True)
class LimitSpec:
    """Token ceiling over a trailing window."""
    tokens: float
    window: timedelta

    def __post_init__(self):
        """Validate limit values are non-negative."""
        if self.tokens < 0:
            raise ValueError("Each limit's tokens value must be non-negative")
        if self.window < timedelta(0):
            raise ValueError("Each limit's window value must be non-negative")


@dataclass(frozen=True)
class QuotaConfig:
    """Complete limiter configuration.

    The first limit is the primary one, used for stats and thresholds.
    """
    limits: Tuple[LimitSpec, ...]
    burst_percent: float = 0
    cost_limit: Optional[float] = None
    track_cost: bool = False
    thresholds: Tuple[float, ...] = DEFAULT_THRESHOLDS
    on_threshold: Optional[ThresholdCallback] = field(default=None, compare=False)

    def __post_init__(self):
        """Validate and normalize configuration values."""
        limits = tuple(self.limits or ())
        if not limits:
            raise ValueError("The limits list must be non-empty")
        if self.burst_percent < 0:
            raise ValueError("The burst percentage (burst_percent) must be non-negative")
        if self.cost_limit is not None and self.cost_limit < 0:
            raise ValueError("The maximum cost (cost_limit) must be non-negative")
        for threshold in self.thresholds:
            if threshold < 0 or threshold > 100:
                raise ValueError("Threshold percentages must be between 0 and 100")
        object.__setattr__(self, "limits", limits)
        object.__setattr__(self, "thresholds", tuple(sorted(set(self.thresholds))))

    @property
    def primary(self) -> LimitSpec:
        return self.limits[0]

    @property
    def windows(self) -> Sequence[timedelta]:
        return [limit.window for limit in self.limits]

    @property
    def burst_multiplier(self) -> float:
        return 1 + self.burst_percent / 100

    @property
    def cost_enabled(self) -> bool:
        """Whether cost is computed and reported."""
        return self.track_cost or self.cost_limit is not None


@dataclass(frozen=True)
class UsageStats:
    """Usage of the primary limit for one identity.

    ``reset_at`` is an estimate: if no further usage occurs, the sliding
    window is fully clear by then.

    ``cost_used`` and ``cost_remaining`` cover the primary window only,
    while ``cost_limit`` is enforced over the widest window. With several
    limits, ``cost_remaining`` can be positive while checks still reject
    on cost.
    """
    tokens_used: int
    remaining: float
    reset_at: datetime
    percent_used: float
    cost_used: Optional[float] = None
    cost_remaining: Optional[float] = None


def percent_used(tokens: float, ceiling: float) -> float:
    """Percentage of a ceiling consumed, clamped to 100.

    A zero ceiling is always fully used.
    """
    if ceiling == 0:
        return 100.0
    return min(100.0, tokens * 100 / ceiling)


def is_within_limits(ledger: Ledger, config: QuotaConfig, now: datetime) -> bool:
    """Check whether the ledger passes every configured limit.

    Args:
        ledger: Ledger of the identity being checked
        config: Limiter configuration
        now: Evaluation instant

    Returns:
        True if every token limit and the cost ceiling (if any) pass
    """
    events = prune_events(ledger.events, config.windows, now)
    multiplier = config.burst_multiplier

    for limit in config.limits:
        usage = window_usage(events, limit.window, now)
        if usage.tokens >= limit.tokens * multiplier:
            return False

    # Cost is not windowed per limit
    if config.cost_limit is not None:
        usage = window_usage(events, max_window(config.windows), now)
        if usage.cost >= config.cost_limit * multiplier:
            return False

    return True


def remaining_for_primary(ledger: Ledger, config: QuotaConfig, now: datetime) -> float:
    """Tokens left under the primary ceiling, ignoring burst allowance."""
    events = prune_events(ledger.events, config.windows, now)
    usage = window_usage(events, config.primary.window, now)
    return max(0, config.primary.tokens - usage.tokens)


def compute_stats(ledger: Ledger, config: QuotaConfig, now: datetime) -> UsageStats:
    """Compute primary-limit statistics for a ledger.

    Args:
        ledger: Ledger of the identity
        config: Limiter configuration
        now: Evaluation instant

    Returns:
        UsageStats; cost fields are set only when cost is enabled, and
        ``cost_remaining`` only when a cost ceiling exists
    """
    primary = config.primary
    events = prune_events(ledger.events, config.windows, now)
    usage = window_usage(events, primary.window, now)

    cost_used = None
    cost_remaining = None
    if config.cost_enabled:
        cost_used = usage.cost
        if config.cost_limit is not None:
            cost_remaining = max(0.0, config.cost_limit - usage.cost)

    return UsageStats(
        tokens_used=usage.tokens,
        remaining=max(0, primary.tokens - usage.tokens),
        reset_at=now + primary.window,
        percent_used=percent_used(usage.tokens, primary.tokens),
        cost_used=cost_used,
        cost_remaining=cost_remaining
    )
