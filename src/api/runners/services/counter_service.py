from typing import List

from src.api.runners.models import CounterResetResult, RunnerDocument
from src.config.constants import Collections
from src.database.base import ArrayUnion, Increment, OrderStore, StoreTransaction
from src.shared.error_handler import ErrorHandler, handle_service_errors

RUNNERS = Collections.RUNNERS.value


class RunnerCounterService:
    """
    Owns every mutation of the runner load counters.

    The record_* methods stage writes on a transaction opened by the
    assignment coordinator, so the order marker and the counter change
    commit together. Each of them also bumps assignmentVersion, which only
    ever grows, so a claim can tell whether the runner's commitments moved
    since it was selected. The reset_* methods are the scheduled maintenance jobs.
    """

    def __init__(self, store: OrderStore):
        self.store = store
        self._error_handler = ErrorHandler(__name__)

    def record_assignment(self, transaction: StoreTransaction, runner_id: str, order_id: str) -> None:
        transaction.update(RUNNERS, runner_id, {
            "activeOrders": Increment(1),
            "assignmentVersion": Increment(1),
            "orders": ArrayUnion([order_id]),
        })

    def record_completion(self, transaction: StoreTransaction, runner: RunnerDocument) -> None:
        # runner must have been read through the same transaction
        transaction.update(RUNNERS, runner.id, {
            "activeOrders": max(0, runner.active_orders - 1),
            "completedOrders": Increment(1),
            "totalCompletedOrders": Increment(1),
            "assignmentVersion": Increment(1),
        })

    def record_cancellation(self, transaction: StoreTransaction, runner: RunnerDocument) -> None:
        transaction.update(RUNNERS, runner.id, {
            "activeOrders": max(0, runner.active_orders - 1),
            "assignmentVersion": Increment(1),
        })

    @handle_service_errors("resetting daily completed orders")
    async def reset_daily_completed(self) -> CounterResetResult:
        """Set completedOrders to 0 on every runner."""
        return await self._reset("completedOrders", ["completedOrders"])

    @handle_service_errors("resetting monthly completed orders")
    async def reset_monthly_completed(self) -> CounterResetResult:
        """
        Set totalCompletedOrders to 0 on every runner.

        The monthly job fires at the same instant as the daily one, so the
        daily counter is cleared in the same batch to keep
        completedOrders <= totalCompletedOrders whichever job lands first.
        """
        return await self._reset(
            "totalCompletedOrders", ["totalCompletedOrders", "completedOrders"]
        )

    async def _reset(self, counter: str, fields: List[str]) -> CounterResetResult:
        runners = await self.store.query(RUNNERS)
        writes = [(RUNNERS, runner["id"], {field: 0 for field in fields}) for runner in runners]
        if writes:
            await self.store.batch_update(writes)

        self._error_handler.logger.info(f"Reset {counter} for {len(writes)} runners")
        return CounterResetResult(
            counter=counter,
            runners_reset=len(writes),
            runner_ids=[runner_id for _, runner_id, _ in writes],
        )
