"""
Sliding window accounting.

Pure functions aggregating ledger events over trailing time windows.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List, Sequence

from token_limiter.storage.models import UsageEvent


@dataclass(frozen=True)
class WindowUsage:
    """Token and cost totals inside one window."""
    tokens: int
    cost: float


def window_usage(
    events: Iterable[UsageEvent],
    window: timedelta,
    now: datetime
) -> WindowUsage:
    """Sum tokens and cost of events inside the trailing window.

    The boundary is inclusive: an event stamped exactly at ``now - window``
    is counted.

    Args:
        events: Ledger events in any order
        window: Length of the trailing window
        now: End of the window

    Returns:
        WindowUsage with the totals (zero for no events)
    """
    cutoff = now - window
    tokens = 0
    cost = 0.0
    for event in events:
        if event.timestamp >= cutoff:
            tokens += event.tokens
            cost += event.cost
    return WindowUsage(tokens=tokens, cost=cost)


def max_window(windows: Sequence[timedelta]) -> timedelta:
    """Widest window among the configured limits."""
    if not windows:
        raise ValueError("At least one window is required")
    return max(windows)


def prune_events(
    events: Iterable[UsageEvent],
    windows: Sequence[timedelta],
    now: datetime
) -> List[UsageEvent]:
    """Drop events older than the widest configured window.

    Pruned events are never needed by any window computation at ``now`` or
    later, so pruning does not change any result.
    """
    cutoff = now - max_window(windows)
    return [event for event in events if event.timestamp >= cutoff]
