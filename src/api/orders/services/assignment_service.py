"""
Runner assignment coordinator.

Drives each order through UNASSIGNED -> ASSIGNED -> released (delivered or
cancelled) in response to change events. Every transition re-reads the
documents it depends on inside a store transaction and records a marker on
the order, so redelivered events are no-ops.

Selection and claiming are separate steps: the selector ranks runners on a
plain read, then the claim transaction re-reads the chosen runner and only
commits if it is still active and its assignmentVersion has not moved since
the selection. Otherwise the order goes back through selection after a backoff.
"""

import asyncio
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable, List, Optional

from pydantic import ValidationError

from src.api.events.models import ChangeEvent
from src.api.orders.models import AssignmentOutcome, OrderDocument
from src.api.runners.models import RunnerDocument
from src.api.runners.services.counter_service import RunnerCounterService
from src.api.runners.services.selection_service import RunnerSelectionService
from src.config.constants import (
    DELIVERY_DONE_STATUSES,
    AssignmentTrigger,
    Collections,
    OrderStatus,
)
from src.config.settings import settings
from src.database.base import ASCENDING, DELETE_FIELD, OrderStore, StoreTransaction
from src.shared.error_handler import ErrorHandler
from src.shared.exceptions import (
    AssignmentContentionError,
    MalformedInputError,
    ResourceNotFoundError,
)

if TYPE_CHECKING:
    from src.api.notifications.service import NotificationService

ORDERS = Collections.ORDERS.value
RUNNERS = Collections.RUNNERS.value


class ClaimResult(str, Enum):
    CLAIMED = "claimed"
    ORDER_UNAVAILABLE = "order_unavailable"
    RUNNER_STALE = "runner_stale"


class AssignmentService:
    def __init__(
        self,
        store: OrderStore,
        selector: RunnerSelectionService,
        counters: RunnerCounterService,
        notifications: "NotificationService",
        trigger: Optional[str] = None,
        activation_batch_size: Optional[int] = None,
        max_attempts: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.store = store
        self.selector = selector
        self.counters = counters
        self.notifications = notifications
        self.trigger = AssignmentTrigger(trigger or settings.ASSIGNMENT_TRIGGER)
        self.activation_batch_size = (
            settings.ACTIVATION_BATCH_SIZE if activation_batch_size is None else activation_batch_size
        )
        self.max_attempts = max_attempts or settings.ASSIGNMENT_MAX_ATTEMPTS
        self.backoff_seconds = (
            settings.ASSIGNMENT_BACKOFF_SECONDS if backoff_seconds is None else backoff_seconds
        )
        self._sleep = sleep
        self._error_handler = ErrorHandler(__name__)

    # ===== EVENT HANDLERS =====

    async def handle_order_created(self, event: ChangeEvent) -> None:
        if event.after_value("runner"):
            # Placed with a runner already
            await self.count_external_assignment(event.document_id)
            return
        if self.trigger == AssignmentTrigger.CREATED:
            await self.assign_order(event.document_id)

    async def handle_order_updated(self, event: ChangeEvent) -> None:
        order_id = event.document_id
        before_status = event.before_value("orderStatus")
        after_status = event.after_value("orderStatus")
        has_runner = bool(event.after_value("runner"))

        if (
            self.trigger == AssignmentTrigger.READY
            and before_status != OrderStatus.READY.value
            and after_status == OrderStatus.READY.value
            and not has_runner
        ):
            await self.assign_order(order_id)

        if not event.before_value("runner") and has_runner:
            await self.count_external_assignment(order_id)

        if (
            before_status not in DELIVERY_DONE_STATUSES
            and after_status in DELIVERY_DONE_STATUSES
            and has_runner
        ):
            await self.release_runner(order_id)
        elif (
            before_status != OrderStatus.CANCELLED.value
            and after_status == OrderStatus.CANCELLED.value
            and has_runner
        ):
            await self.release_runner(order_id)

    async def handle_runner_changed(self, event: ChangeEvent) -> None:
        was_active = bool(event.before_value("isActive", False))
        is_active = bool(event.after_value("isActive", False))
        if not was_active and is_active:
            await self.activate_runner(event.document_id)
        elif was_active and not is_active:
            await self.deactivate_runner(event.document_id)

    # ===== TRANSITIONS =====

    async def assign_order(self, order_id: str) -> AssignmentOutcome:
        """Pick a runner for an unassigned order, or mark it as waiting."""
        for attempt in range(1, self.max_attempts + 1):
            order = await self._load_order(order_id)
            if order.runner:
                return AssignmentOutcome(
                    order_id=order_id, runner_id=order.runner,
                    skipped_reason="already assigned", attempts=attempt,
                )
            if order.is_terminal:
                return AssignmentOutcome(
                    order_id=order_id, skipped_reason=f"order is {order.order_status.value}",
                    attempts=attempt,
                )

            runner = await self.selector.select_runner(order.delivery_time)
            if runner is None:
                await self._mark_waiting(order)
                return AssignmentOutcome(order_id=order_id, waiting=True, attempts=attempt)

            result = await self._claim(order_id, runner)
            if result == ClaimResult.CLAIMED:
                self._error_handler.logger.info(
                    f"[{order_id}] Assigned runner {runner.id} (attempt {attempt})"
                )
                return AssignmentOutcome(order_id=order_id, runner_id=runner.id, attempts=attempt)

            if result == ClaimResult.ORDER_UNAVAILABLE:
                return AssignmentOutcome(
                    order_id=order_id, skipped_reason="order changed during claim",
                    attempts=attempt,
                )

            self._error_handler.logger.info(
                f"[{order_id}] Runner {runner.id} changed since selection (attempt {attempt})"
            )
            if attempt < self.max_attempts:
                await self._sleep(self.backoff_seconds * (2 ** (attempt - 1)))

        raise AssignmentContentionError(
            f"Could not claim a runner for order {order_id} after {self.max_attempts} attempts"
        )

    async def activate_runner(self, runner_id: str) -> List[AssignmentOutcome]:
        """
        Handle a runner going active: hand it up to activation_batch_size
        waiting orders. The runner carries an activationHandled marker until
        it goes inactive again, so a redelivered activation event is a no-op.
        """
        async def _begin(transaction: StoreTransaction) -> bool:
            document = await transaction.get(RUNNERS, runner_id)
            if document is None:
                raise ResourceNotFoundError(f"Runner {runner_id} not found")
            runner = RunnerDocument.from_document(document)
            if not runner.is_active or runner.activation_handled:
                return False
            transaction.update(RUNNERS, runner_id, {"activationHandled": True})
            return True

        if not await self.store.run_transaction(_begin):
            self._error_handler.logger.info(f"Activation of runner {runner_id} already handled")
            return []

        try:
            return await self.assign_waiting_orders(runner_id)
        except Exception:
            # Cleared so a redelivery runs the activation again
            await self.store.update(RUNNERS, runner_id, {"activationHandled": DELETE_FIELD})
            raise

    async def deactivate_runner(self, runner_id: str) -> None:
        runner = await self._load_runner(runner_id)
        if runner.activation_handled:
            await self.store.update(RUNNERS, runner_id, {"activationHandled": DELETE_FIELD})

    async def assign_waiting_orders(self, runner_id: str) -> List[AssignmentOutcome]:
        """
        Hand up to activation_batch_size waiting orders to an active runner,
        earliest delivery first, skipping orders that conflict with what the
        runner already carries.
        """
        runner = await self._load_runner(runner_id)
        if not runner.is_active or self.activation_batch_size < 1:
            return []

        waiting = await self.store.query(
            ORDERS,
            filters=[("waitingForRunner", "==", True)],
            order_by=[("deliveryTime", ASCENDING)],
        )

        outcomes: List[AssignmentOutcome] = []
        for document in waiting:
            try:
                order = OrderDocument.from_document(document)
            except ValidationError as e:
                self._error_handler.logger.error(f"Skipping malformed waiting order {document.get('id')}: {e}")
                continue
            if order.runner or order.is_terminal:
                continue

            outcome = await self._assign_waiting_order(order, runner_id)
            if outcome is not None:
                outcomes.append(outcome)
                if len(outcomes) >= self.activation_batch_size:
                    break

        return outcomes

    async def count_external_assignment(self, order_id: str) -> Optional[str]:
        """
        Count a runner that was set on the order outside the coordinator
        (for example by an operator). Orders claimed by the coordinator are
        already counted and are left alone.
        """
        async def _count(transaction: StoreTransaction) -> Optional[str]:
            document = await transaction.get(ORDERS, order_id)
            if document is None:
                raise ResourceNotFoundError(f"Order {order_id} not found")
            order = OrderDocument.from_document(document)
            if not order.runner or order.active_counted or not order.is_active:
                return None

            if await transaction.get(RUNNERS, order.runner) is None:
                raise ResourceNotFoundError(f"Runner {order.runner} for order {order_id} not found")

            transaction.update(ORDERS, order_id, {
                "activeCounted": True,
                "waitingForRunner": DELETE_FIELD,
            })
            self.counters.record_assignment(transaction, order.runner, order_id)
            return order.runner

        runner_id = await self.store.run_transaction(_count)
        if runner_id:
            self._error_handler.logger.info(f"[{order_id}] Counted external assignment to runner {runner_id}")
        return runner_id

    async def release_runner(self, order_id: str) -> Optional[str]:
        """
        Take a delivered, completed or cancelled order off its runner's load.
        Deliveries also bump the runner's completion counters.
        """
        async def _release(transaction: StoreTransaction) -> Optional[str]:
            document = await transaction.get(ORDERS, order_id)
            if document is None:
                raise ResourceNotFoundError(f"Order {order_id} not found")
            order = OrderDocument.from_document(document)
            if not order.runner or order.runner_released or not order.is_terminal:
                return None

            runner_document = await transaction.get(RUNNERS, order.runner)
            if runner_document is None:
                raise ResourceNotFoundError(f"Runner {order.runner} for order {order_id} not found")
            runner = RunnerDocument.from_document(runner_document)

            transaction.update(ORDERS, order_id, {"runnerReleased": True})
            if order.order_status.value in DELIVERY_DONE_STATUSES:
                self.counters.record_completion(transaction, runner)
            else:
                self.counters.record_cancellation(transaction, runner)
            return runner.id

        runner_id = await self.store.run_transaction(_release)
        if runner_id:
            self._error_handler.logger.info(f"[{order_id}] Released runner {runner_id}")
        return runner_id

    # ===== HELPERS =====

    async def _assign_waiting_order(
        self, order: OrderDocument, runner_id: str
    ) -> Optional[AssignmentOutcome]:
        for attempt in range(1, self.max_attempts + 1):
            runner = await self._load_runner(runner_id)
            if not runner.is_active:
                return None

            if order.delivery_time is not None:
                try:
                    if await self.selector.conflict_checker.has_conflict(runner.id, order.delivery_time):
                        return None
                except MalformedInputError as e:
                    self._error_handler.logger.error(f"Skipping waiting order {order.id}: {e}")
                    return None

            result = await self._claim(order.id, runner, require_waiting=True)
            if result == ClaimResult.CLAIMED:
                self._error_handler.logger.info(
                    f"[{order.id}] Assigned waiting order to newly active runner {runner.id}"
                )
                return AssignmentOutcome(order_id=order.id, runner_id=runner.id, attempts=attempt)
            if result == ClaimResult.ORDER_UNAVAILABLE:
                return None

            if attempt < self.max_attempts:
                await self._sleep(self.backoff_seconds * (2 ** (attempt - 1)))

        raise AssignmentContentionError(
            f"Could not claim runner {runner_id} for waiting order {order.id} "
            f"after {self.max_attempts} attempts"
        )

    async def _claim(
        self, order_id: str, runner: RunnerDocument, require_waiting: bool = False
    ) -> ClaimResult:
        async def _run(transaction: StoreTransaction) -> ClaimResult:
            order_document = await transaction.get(ORDERS, order_id)
            runner_document = await transaction.get(RUNNERS, runner.id)

            if order_document is None:
                return ClaimResult.ORDER_UNAVAILABLE
            order = OrderDocument.from_document(order_document)
            if order.runner or order.is_terminal:
                return ClaimResult.ORDER_UNAVAILABLE
            if require_waiting and not order.waiting_for_runner:
                return ClaimResult.ORDER_UNAVAILABLE

            if runner_document is None:
                return ClaimResult.RUNNER_STALE
            current = RunnerDocument.from_document(runner_document)
            if not current.is_active or current.assignment_version != runner.assignment_version:
                return ClaimResult.RUNNER_STALE

            transaction.update(ORDERS, order_id, {
                "runner": runner.id,
                "waitingForRunner": DELETE_FIELD,
                "activeCounted": True,
            })
            self.counters.record_assignment(transaction, runner.id, order_id)
            return ClaimResult.CLAIMED

        return await self.store.run_transaction(_run)

    async def _mark_waiting(self, order: OrderDocument) -> None:
        async def _run(transaction: StoreTransaction) -> bool:
            document = await transaction.get(ORDERS, order.id)
            if document is None:
                raise ResourceNotFoundError(f"Order {order.id} not found")
            current = OrderDocument.from_document(document)
            if current.runner or current.waiting_for_runner:
                return False
            transaction.update(ORDERS, order.id, {"waitingForRunner": True})
            return True

        newly_waiting = await self.store.run_transaction(_run)
        if not newly_waiting:
            self._error_handler.logger.info(f"[{order.id}] Already waiting for a runner")
            return

        self._error_handler.logger.warning(f"[{order.id}] No runner available, order is waiting")
        await self.notifications.alert_no_runner(order)

    async def _load_order(self, order_id: str) -> OrderDocument:
        document = await self.store.get(ORDERS, order_id)
        if document is None:
            raise ResourceNotFoundError(f"Order {order_id} not found")
        return OrderDocument.from_document(document)

    async def _load_runner(self, runner_id: str) -> RunnerDocument:
        document = await self.store.get(RUNNERS, runner_id)
        if document is None:
            raise ResourceNotFoundError(f"Runner {runner_id} not found")
        return RunnerDocument.from_document(document)
