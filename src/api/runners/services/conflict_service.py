from typing import List, Optional

from src.config.constants import ACTIVE_ORDER_STATUSES, Collections
from src.config.settings import settings
from src.database.base import OrderStore
from src.shared.error_handler import ErrorHandler
from src.shared.exceptions import MalformedInputError
from src.shared.time_utils import minutes_apart, parse_time_of_day


def within_window(candidate_minutes: int, existing_minutes: int, window_minutes: int) -> bool:
    return minutes_apart(candidate_minutes, existing_minutes) < window_minutes


class ConflictCheckService:
    """
    Decides whether a runner already has a delivery too close to a candidate time.

    A runner's commitments are the orders that reference it and are not yet
    delivered (received, ready or picked). Times are compared as minutes
    since midnight on the same day; a gap strictly below the window is a
    conflict.
    """

    def __init__(self, store: OrderStore, window_minutes: Optional[int] = None):
        self.store = store
        self.window_minutes = (
            settings.CONFLICT_WINDOW_MINUTES if window_minutes is None else window_minutes
        )
        self._error_handler = ErrorHandler(__name__)

    async def get_commitment_times(self, runner_id: str) -> List[str]:
        """Delivery times of the runner's undelivered orders."""
        orders = await self.store.query(
            Collections.ORDERS.value,
            filters=[
                ("runner", "==", runner_id),
                ("orderStatus", "in", ACTIVE_ORDER_STATUSES),
            ],
        )
        return [order.get("deliveryTime") for order in orders]

    async def has_conflict(self, runner_id: str, candidate_time: str) -> bool:
        """
        Check a candidate "HH:MM" delivery time against the runner's commitments.

        Raises:
            MalformedInputError: if candidate_time is not a valid time.
        """
        candidate_minutes = parse_time_of_day(candidate_time)

        for existing_time in await self.get_commitment_times(runner_id):
            try:
                existing_minutes = parse_time_of_day(existing_time)
            except MalformedInputError as e:
                # Unreadable commitment counts as a conflict
                self._error_handler.logger.error(
                    f"Runner {runner_id} has an order with unreadable delivery time, "
                    f"treating as conflict: {e}"
                )
                return True

            if within_window(candidate_minutes, existing_minutes, self.window_minutes):
                return True

        return False
