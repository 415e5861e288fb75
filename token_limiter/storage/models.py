"""
Data models for storage layer.

Defines the usage ledger persisted per identity.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, FrozenSet, Iterable, Tuple


@dataclass(frozen=True)
class UsageEvent:
    """Immutable record of token consumption.

    Events are appended to a ledger and never modified afterwards.
    """
    tokens: int
    cost: float
    timestamp: datetime

    def __post_init__(self):
        """Validate event values are non-negative."""
        if self.tokens < 0:
            raise ValueError("tokens cannot be negative")
        if self.cost < 0:
            raise ValueError("cost cannot be negative")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tokens": self.tokens,
            "cost": self.cost,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UsageEvent":
        return cls(
            tokens=int(data["tokens"]),
            cost=float(data["cost"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )


@dataclass(frozen=True)
class Ledger:
    """Usage history and threshold memory for one identity.

    The ledger is a value: operations return a new ledger rather than
    mutating the one loaded from storage. ``fired_thresholds`` only grows
    until the whole ledger is deleted by a reset.
    """
    events: Tuple[UsageEvent, ...] = ()
    fired_thresholds: FrozenSet[float] = field(default_factory=frozenset)

    def with_events(self, events: Iterable[UsageEvent]) -> "Ledger":
        return replace(self, events=tuple(events))

    def with_fired(self, thresholds: Iterable[float]) -> "Ledger":
        return replace(self, fired_thresholds=self.fired_thresholds | frozenset(thresholds))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "events": [event.to_dict() for event in self.events],
            "fired_thresholds": sorted(self.fired_thresholds),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Ledger":
        return cls(
            events=tuple(UsageEvent.from_dict(e) for e in data.get("events") or []),
            fired_thresholds=frozenset(data.get("fired_thresholds") or []),
        )
