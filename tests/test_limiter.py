"""
Unit tests for the limiter facade.

Tests recording, checking, wrapping and resetting through storage.
"""

from datetime import timedelta
from unittest.mock import AsyncMock, Mock, call

import pytest

from token_limiter.core.evaluator import LimitSpec
from token_limiter.core.limiter import TokenLimiter, create_limiter
from token_limiter.errors import QuotaExceededError
from token_limiter.storage.base import StorageAdapter
from token_limiter.storage.memory import MemoryStorage
from token_limiter.storage.models import Ledger


class FailingStoreStorage(MemoryStorage):
    """Memory storage whose writes fail."""

    async def store(self, identity, ledger):
        raise RuntimeError("storage unavailable")


def anthropic_response(input_tokens: int, output_tokens: int) -> dict:
    return {"usage": {"input_tokens": input_tokens, "output_tokens": output_tokens}}


class TestCreateLimiter:
    """Test limiter construction."""

    def test_defaults(self):
        limiter = create_limiter()
        assert limiter.config.primary == LimitSpec(tokens=100_000, window=timedelta(hours=1))
        assert limiter.config.thresholds == (80, 90, 100)
        assert isinstance(limiter.storage, MemoryStorage)

    def test_simple_config(self):
        limiter = create_limiter(limit=500, window=timedelta(minutes=5))
        assert limiter.config.primary == LimitSpec(tokens=500, window=timedelta(minutes=5))

    def test_zero_window_kept(self):
        limiter = create_limiter(limit=10, window=timedelta(0))
        assert limiter.config.primary.window == timedelta(0)

    def test_invalid_config_rejected(self):
        with pytest.raises(ValueError):
            create_limiter(limit=-1)
        with pytest.raises(ValueError):
            create_limiter(limits=[])
        with pytest.raises(ValueError):
            create_limiter(thresholds=[150])


class TestRecording:
    """Test add_tokens, stats and check."""

    @pytest.mark.asyncio
    async def test_stats_sum_all_additions(self, clock):
        limiter = create_limiter(limit=1000, clock=clock)
        for tokens in (10, 20, 30):
            await limiter.add_tokens("user-1", tokens)
            clock.advance(seconds=1)

        stats = await limiter.stats("user-1")
        assert stats.tokens_used == 60
        assert stats.remaining == 940
        assert stats.percent_used == 6.0

    @pytest.mark.asyncio
    async def test_unknown_identity_has_empty_ledger(self, clock):
        storage = MemoryStorage()
        limiter = create_limiter(limit=100, storage=storage, clock=clock)

        assert await limiter.check("nobody")
        assert (await limiter.stats("nobody")).tokens_used == 0
        assert await limiter.remaining_tokens("nobody") == 100
        assert len(storage) == 0

    @pytest.mark.asyncio
    async def test_check_at_ceiling(self, clock):
        limiter = create_limiter(limit=100, clock=clock)

        await limiter.add_tokens("user-1", 99)
        assert await limiter.check("user-1")

        await limiter.add_tokens("user-1", 1)
        assert not await limiter.check("user-1")

    @pytest.mark.asyncio
    async def test_burst_allowance(self, clock):
        limiter = create_limiter(limit=100, burst_percent=20, clock=clock)

        await limiter.add_tokens("user-1", 119)
        assert await limiter.check("user-1")
        assert await limiter.remaining_tokens("user-1") == 0

        await limiter.add_tokens("user-1", 1)
        assert not await limiter.check("user-1")

    @pytest.mark.asyncio
    async def test_sliding_window_expiry(self, clock):
        limiter = create_limiter(limit=100, window=timedelta(milliseconds=1000), clock=clock)
        await limiter.add_tokens("user-1", 40)

        clock.advance(milliseconds=999)
        assert (await limiter.stats("user-1")).tokens_used == 40

        clock.advance(milliseconds=2)
        assert (await limiter.stats("user-1")).tokens_used == 0

    @pytest.mark.asyncio
    async def test_multiple_limits(self, clock):
        limiter = create_limiter(
            limits=[
                LimitSpec(tokens=10, window=timedelta(seconds=1)),
                LimitSpec(tokens=25, window=timedelta(hours=1)),
            ],
            clock=clock
        )
        await limiter.add_tokens("user-1", 10)
        assert not await limiter.check("user-1")

        clock.advance(seconds=2)
        assert await limiter.check("user-1")

        await limiter.add_tokens("user-1", 9)
        clock.advance(seconds=2)
        await limiter.add_tokens("user-1", 6)
        clock.advance(seconds=2)
        assert not await limiter.check("user-1")

    @pytest.mark.asyncio
    async def test_record_prunes_expired_events(self, clock):
        storage = MemoryStorage()
        limiter = create_limiter(limit=100, window=timedelta(minutes=1), storage=storage, clock=clock)

        await limiter.add_tokens("user-1", 5)
        clock.advance(minutes=2)
        await limiter.add_tokens("user-1", 7)

        ledger = await storage.load("user-1")
        assert [e.tokens for e in ledger.events] == [7]

    @pytest.mark.asyncio
    async def test_check_does_not_write(self, clock):
        storage = AsyncMock(spec=StorageAdapter)
        storage.load.return_value = None
        limiter = create_limiter(storage=storage, clock=clock)

        await limiter.check("user-1")
        await limiter.stats("user-1")
        await limiter.remaining_tokens("user-1")

        storage.store.assert_not_called()
        storage.delete.assert_not_called()

    @pytest.mark.asyncio
    async def test_cost_limit(self, clock):
        limiter = create_limiter(limit=1000, cost_limit=1.0, clock=clock)

        await limiter.add_tokens("user-1", 1, cost=0.6)
        stats = await limiter.stats("user-1")
        assert stats.cost_used == pytest.approx(0.6)
        assert stats.cost_remaining == pytest.approx(0.4)
        assert await limiter.check("user-1")

        await limiter.add_tokens("user-1", 1, cost=0.4)
        assert not await limiter.check("user-1")

    @pytest.mark.asyncio
    async def test_zero_ceiling(self, clock):
        limiter = create_limiter(limit=0, clock=clock)
        stats = await limiter.stats("user-1")
        assert stats.percent_used == 100.0
        assert not await limiter.check("user-1")


class TestThresholdNotifications:
    """Test threshold firing through the facade."""

    @pytest.mark.asyncio
    async def test_threshold_fires_once(self, clock):
        callback = Mock()
        limiter = create_limiter(limit=100, on_threshold=callback, clock=clock)

        await limiter.add_tokens("user-1", 85)
        assert callback.call_args_list == [call("user-1", 80)]

        await limiter.add_tokens("user-1", 1)
        assert callback.call_count == 1

        await limiter.add_tokens("user-1", 14)
        assert callback.call_args_list == [
            call("user-1", 80), call("user-1", 90), call("user-1", 100)
        ]

    @pytest.mark.asyncio
    async def test_threshold_fires_on_exact_hit(self, clock):
        callback = Mock()
        limiter = create_limiter(limit=100, thresholds=[57], on_threshold=callback, clock=clock)

        await limiter.add_tokens("user-1", 57)

        assert callback.call_args_list == [call("user-1", 57)]
        assert (await limiter.stats("user-1")).percent_used == 57.0

    @pytest.mark.asyncio
    async def test_reset_clears_fired_thresholds(self, clock):
        callback = Mock()
        limiter = create_limiter(limit=100, on_threshold=callback, clock=clock)

        await limiter.add_tokens("user-1", 85)
        await limiter.reset("user-1")
        assert (await limiter.stats("user-1")).tokens_used == 0

        await limiter.add_tokens("user-1", 50)
        assert callback.call_count == 1

        await limiter.add_tokens("user-1", 30)
        assert callback.call_args_list == [call("user-1", 80), call("user-1", 80)]

    @pytest.mark.asyncio
    async def test_callback_failure_still_persists(self, clock):
        callback = Mock(side_effect=RuntimeError("notifier down"))
        storage = MemoryStorage()
        limiter = create_limiter(limit=100, on_threshold=callback, storage=storage, clock=clock)

        await limiter.add_tokens("user-1", 95)

        ledger = await storage.load("user-1")
        assert [e.tokens for e in ledger.events] == [95]
        assert ledger.fired_thresholds == {80, 90}

    @pytest.mark.asyncio
    async def test_thresholds_separate_per_identity(self, clock):
        callback = Mock()
        limiter = create_limiter(limit=100, on_threshold=callback, clock=clock)

        await limiter.add_tokens("user-1", 80)
        await limiter.add_tokens("user-2", 80)

        assert callback.call_args_list == [call("user-1", 80), call("user-2", 80)]


class TestWrap:
    """Test wrapping LLM calls."""

    @pytest.mark.asyncio
    async def test_wrap_records_tokens_and_returns_response(self, clock):
        limiter = create_limiter(limit=1000, clock=clock)
        response = anthropic_response(10, 20)
        operation = AsyncMock(return_value=response)

        result = await limiter.wrap("user-1", operation)

        assert result is response
        operation.assert_awaited_once()
        assert (await limiter.stats("user-1")).tokens_used == 30

    @pytest.mark.asyncio
    async def test_wrap_openai_shape(self, clock):
        limiter = create_limiter(limit=1000, clock=clock)
        response = {"usage": {"prompt_tokens": 7, "completion_tokens": 3}}

        await limiter.wrap("user-1", AsyncMock(return_value=response))

        assert (await limiter.stats("user-1")).tokens_used == 10

    @pytest.mark.asyncio
    async def test_wrap_cost_tracking(self, clock):
        limiter = create_limiter(limit=1000, track_cost=True, clock=clock)

        await limiter.wrap(
            "user-1",
            AsyncMock(return_value=anthropic_response(10, 20)),
            model="claude-3-sonnet-20240229"
        )

        stats = await limiter.stats("user-1")
        # 10/1000 * 0.003 + 20/1000 * 0.015
        assert stats.cost_used == pytest.approx(0.00033)

    @pytest.mark.asyncio
    async def test_wrap_without_cost_tracking_records_zero_cost(self, clock):
        storage = MemoryStorage()
        limiter = create_limiter(limit=1000, storage=storage, clock=clock)

        await limiter.wrap(
            "user-1",
            AsyncMock(return_value=anthropic_response(10, 20)),
            model="claude-3-sonnet"
        )

        ledger = await storage.load("user-1")
        assert ledger.events[0].cost == 0.0

    @pytest.mark.asyncio
    async def test_wrap_over_quota_still_calls_by_default(self, clock):
        limiter = create_limiter(limit=10, clock=clock)
        await limiter.add_tokens("user-1", 10)
        operation = AsyncMock(return_value=anthropic_response(1, 1))

        await limiter.wrap("user-1", operation)

        operation.assert_awaited_once()
        assert (await limiter.stats("user-1")).tokens_used == 12

    @pytest.mark.asyncio
    async def test_wrap_throw_on_limit(self, clock):
        limiter = create_limiter(limit=10, clock=clock)
        await limiter.add_tokens("user-1", 10)
        operation = AsyncMock()

        with pytest.raises(QuotaExceededError, match="user-1") as excinfo:
            await limiter.wrap("user-1", operation, throw_on_limit=True)

        assert excinfo.value.identity == "user-1"
        operation.assert_not_called()

    @pytest.mark.asyncio
    async def test_wrap_operation_failure_records_nothing(self, clock):
        storage = MemoryStorage()
        limiter = create_limiter(limit=10, storage=storage, clock=clock)
        operation = AsyncMock(side_effect=ConnectionError("API Error"))

        with pytest.raises(ConnectionError, match="API Error"):
            await limiter.wrap("user-1", operation)

        assert len(storage) == 0

    @pytest.mark.asyncio
    async def test_wrap_unrecognised_response_records_nothing(self, clock):
        storage = MemoryStorage()
        limiter = create_limiter(limit=10, storage=storage, clock=clock)

        result = await limiter.wrap("user-1", AsyncMock(return_value="plain text"))

        assert result == "plain text"
        assert len(storage) == 0


class TestErrors:
    """Test input validation and failure propagation."""

    @pytest.mark.asyncio
    async def test_invalid_input_never_touches_storage(self):
        storage = AsyncMock(spec=StorageAdapter)
        limiter = create_limiter(storage=storage)

        with pytest.raises(ValueError, match="non-negative"):
            await limiter.add_tokens("user-1", -1)
        with pytest.raises(ValueError, match="non-negative"):
            await limiter.add_tokens("user-1", 1, cost=-0.5)
        with pytest.raises(ValueError, match="identity"):
            await limiter.check("")
        with pytest.raises(ValueError, match="identity"):
            await limiter.stats("   ")
        with pytest.raises(ValueError, match="identity"):
            await limiter.reset("")
        with pytest.raises(ValueError, match="identity"):
            await limiter.wrap("", AsyncMock())

        storage.load.assert_not_called()
        storage.store.assert_not_called()
        storage.delete.assert_not_called()

    @pytest.mark.asyncio
    async def test_storage_failure_propagates(self, clock):
        storage = FailingStoreStorage()
        await MemoryStorage.store(storage, "user-1", Ledger())
        limiter = TokenLimiter(create_limiter().config, storage=storage, clock=clock)

        with pytest.raises(RuntimeError, match="storage unavailable"):
            await limiter.add_tokens("user-1", 5)

        assert await storage.load("user-1") == Ledger()

    @pytest.mark.asyncio
    async def test_storage_load_failure_propagates(self):
        storage = AsyncMock(spec=StorageAdapter)
        storage.load.side_effect = TimeoutError("timed out")
        limiter = create_limiter(storage=storage)

        with pytest.raises(TimeoutError):
            await limiter.check("user-1")
