"""
Shared test fixtures.
"""

from datetime import datetime, timedelta

import pytest


class FakeClock:
    """Controllable replacement for datetime.now."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, 12, 0, 0)):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


@pytest.fixture
def clock():
    """Clock frozen at a fixed instant until advanced."""
    return FakeClock()
