import random

import pytest

from src.api.runners.models import RunnerDocument
from src.api.runners.services.selection_service import RunnerSelectionService, rank_runners
from src.shared.exceptions import MalformedInputError


def _runner(runner_id, active, completed):
    return RunnerDocument(id=runner_id, isActive=True, activeOrders=active, completedOrders=completed)


class TestRankRunners:
    def test_fewest_active_then_fewest_completed(self):
        runners = [_runner("r1", 2, 5), _runner("r2", 1, 9), _runner("r3", 1, 3)]

        ranked = rank_runners(runners, random.Random(0))

        assert [r.id for r in ranked] == ["r3", "r2", "r1"]

    def test_exact_ties_are_broken_randomly(self):
        runners = [_runner("r1", 0, 0), _runner("r2", 0, 0)]

        winners = {rank_runners(runners, random.Random(seed))[0].id for seed in range(50)}

        assert winners == {"r1", "r2"}


@pytest.mark.asyncio
class TestRunnerSelection:
    async def test_fairness_ordering(self, seed, selector):
        await seed.runner("runner-1", active_orders=2, completed=5)
        await seed.runner("runner-2", active_orders=1, completed=9)
        await seed.runner("runner-3", active_orders=1, completed=3)

        runner = await selector.select_runner("18:00")

        assert runner.id == "runner-3"

    async def test_no_active_runners(self, seed, selector):
        await seed.runner("runner-1", active=False)

        assert await selector.select_runner("18:00") is None

    async def test_conflicting_runner_is_excluded(self, seed, selector):
        await seed.runner("runner-1", active_orders=1, completed=0)
        await seed.runner("runner-2", active_orders=1, completed=8)
        await seed.order("order-1", delivery_time="12:00", runner="runner-1")
        await seed.order("order-2", delivery_time="15:00", runner="runner-2")

        runner = await selector.select_runner("12:30")

        assert runner.id == "runner-2"

    async def test_everyone_busy_returns_none(self, seed, selector):
        await seed.runner("runner-1", active_orders=1)
        await seed.order("order-1", delivery_time="12:00", runner="runner-1")

        assert await selector.select_runner("12:30") is None

    async def test_malformed_time_is_rejected(self, seed, selector):
        await seed.runner("runner-1")

        with pytest.raises(MalformedInputError):
            await selector.select_runner("25:00")

    async def test_missing_time_falls_back_to_least_busy(self, seed, selector):
        await seed.runner("runner-1", active_orders=0, completed=4)
        await seed.runner("runner-2", active_orders=3, completed=1)
        await seed.order("order-1", delivery_time="12:00", runner="runner-2")

        runner = await selector.select_runner(None)

        # Least-busy ranks completedOrders first and ignores conflicts
        assert runner.id == "runner-2"

    async def test_least_busy_policy(self, store, seed, conflict_checker):
        await seed.runner("runner-1", active_orders=2, completed=1)
        await seed.runner("runner-2", active_orders=1, completed=1)
        await seed.runner("runner-3", active=False, active_orders=0, completed=0)
        selector = RunnerSelectionService(store, conflict_checker, policy="least_busy")

        runner = await selector.select_runner("18:00")

        assert runner.id == "runner-2"
