import pytest

from src.shared.exceptions import MalformedInputError


@pytest.mark.asyncio
class TestConflictCheck:
    async def test_thirty_minute_gap_is_a_conflict(self, seed, conflict_checker):
        await seed.runner("runner-1", active_orders=1)
        await seed.order("order-1", delivery_time="12:00", status="ready", runner="runner-1")

        assert await conflict_checker.has_conflict("runner-1", "12:30") is True

    async def test_window_boundary(self, seed, conflict_checker):
        await seed.runner("runner-1", active_orders=1)
        await seed.order("order-1", delivery_time="12:00", runner="runner-1")

        assert await conflict_checker.has_conflict("runner-1", "12:59") is True
        assert await conflict_checker.has_conflict("runner-1", "11:01") is True
        assert await conflict_checker.has_conflict("runner-1", "13:00") is False
        assert await conflict_checker.has_conflict("runner-1", "11:00") is False

    async def test_only_undelivered_orders_count(self, seed, conflict_checker):
        await seed.runner("runner-1")
        for status in ("delivered", "completed", "cancelled"):
            await seed.order(f"order-{status}", delivery_time="12:00", status=status, runner="runner-1")

        assert await conflict_checker.has_conflict("runner-1", "12:00") is False

        await seed.order("order-picked", delivery_time="12:15", status="picked", runner="runner-1")
        assert await conflict_checker.has_conflict("runner-1", "12:00") is True

    async def test_other_runners_orders_are_ignored(self, seed, conflict_checker):
        await seed.runner("runner-1")
        await seed.runner("runner-2", active_orders=1)
        await seed.order("order-1", delivery_time="12:00", runner="runner-2")

        assert await conflict_checker.has_conflict("runner-1", "12:00") is False

    async def test_no_midnight_wraparound(self, seed, conflict_checker):
        await seed.runner("runner-1", active_orders=1)
        await seed.order("order-1", delivery_time="23:45", runner="runner-1")

        # Same-day arithmetic: 00:15 is 23.5 hours before 23:45
        assert await conflict_checker.has_conflict("runner-1", "00:15") is False

    async def test_malformed_candidate_fails_loudly(self, seed, conflict_checker):
        await seed.runner("runner-1")

        with pytest.raises(MalformedInputError):
            await conflict_checker.has_conflict("runner-1", "6pm")

    async def test_unreadable_commitment_blocks_runner(self, seed, conflict_checker):
        await seed.runner("runner-1", active_orders=1)
        await seed.order("order-1", delivery_time="noon", runner="runner-1")

        assert await conflict_checker.has_conflict("runner-1", "18:00") is True
