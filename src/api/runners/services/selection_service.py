import asyncio
import random
from typing import List, Optional

from src.api.runners.models import RunnerDocument
from src.api.runners.services.conflict_service import ConflictCheckService
from src.config.constants import Collections, SelectionPolicy
from src.config.settings import settings
from src.database.base import ASCENDING, OrderStore
from src.shared.error_handler import ErrorHandler
from src.shared.time_utils import parse_time_of_day


def rank_runners(runners: List[RunnerDocument], rng: random.Random) -> List[RunnerDocument]:
    """
    Order runners by fairness: fewest active orders first, then fewest
    completed orders today, then a random draw among exact ties.
    """
    return sorted(
        runners,
        key=lambda runner: (runner.active_orders, runner.completed_orders, rng.random()),
    )


class RunnerSelectionService:
    """
    Picks the runner for an order.

    The conflict-aware policy filters active runners through the conflict
    checker and ranks the survivors with `rank_runners`. The least-busy
    policy is a degraded path used when an order has no delivery time (or
    when configured): one sorted query, no conflict filtering.
    """

    def __init__(
        self,
        store: OrderStore,
        conflict_checker: ConflictCheckService,
        policy: Optional[str] = None,
        rng: Optional[random.Random] = None,
    ):
        self.store = store
        self.conflict_checker = conflict_checker
        self.policy = SelectionPolicy(policy or settings.SELECTION_POLICY)
        self.rng = rng or random.Random()
        self._error_handler = ErrorHandler(__name__)

    async def get_active_runners(self) -> List[RunnerDocument]:
        documents = await self.store.query(
            Collections.RUNNERS.value, filters=[("isActive", "==", True)]
        )
        return [RunnerDocument.from_document(doc) for doc in documents]

    async def filter_conflict_free(
        self, runners: List[RunnerDocument], candidate_time: str
    ) -> List[RunnerDocument]:
        conflicts = await asyncio.gather(
            *(self.conflict_checker.has_conflict(runner.id, candidate_time) for runner in runners)
        )
        return [runner for runner, conflict in zip(runners, conflicts) if not conflict]

    async def select_runner(self, candidate_time: Optional[str]) -> Optional[RunnerDocument]:
        """
        Select a runner for a delivery at candidate_time ("HH:MM").

        Returns None when no active, conflict-free runner exists.

        Raises:
            MalformedInputError: if candidate_time is present but invalid.
        """
        if candidate_time is None or self.policy == SelectionPolicy.LEAST_BUSY:
            return await self.select_least_busy()

        # Fail before touching the store if the time is unusable
        parse_time_of_day(candidate_time)

        runners = await self.get_active_runners()
        if not runners:
            self._error_handler.logger.info("No active runners")
            return None

        available = await self.filter_conflict_free(runners, candidate_time)
        if not available:
            self._error_handler.logger.info(
                f"All {len(runners)} active runners have a delivery near {candidate_time}"
            )
            return None

        return rank_runners(available, self.rng)[0]

    async def select_least_busy(self) -> Optional[RunnerDocument]:
        documents = await self.store.query(
            Collections.RUNNERS.value,
            filters=[("isActive", "==", True)],
            order_by=[("completedOrders", ASCENDING), ("activeOrders", ASCENDING)],
            limit=1,
        )
        if not documents:
            return None
        return RunnerDocument.from_document(documents[0])
