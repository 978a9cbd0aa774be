"""
Customer, restaurant, runner and operator notifications.

Notifications are side effects of order events: a failure to notify is
logged and never fails the event or blocks assignment.
"""

from typing import List, Optional

from src.api.events.models import ChangeEvent
from src.api.notifications.providers.base import BasePushProvider, BaseSmsProvider
from src.api.orders.models import (
    CustomerDocument,
    OrderDocument,
    RestaurantDocument,
    RestaurantUserDocument,
)
from src.api.runners.models import RunnerDocument
from src.config.constants import Collections, OrderStatus
from src.config.settings import settings
from src.database.base import OrderStore
from src.shared.error_handler import ErrorHandler
from src.shared.exceptions import AutomationError
from src.shared.time_utils import shift_time_of_day

BRAND = "BriskIT"

STATUS_MESSAGES = {
    OrderStatus.DELIVERED.value: (
        "Your " + BRAND + " order with order#{order_num} has been delivered. "
        "Please visit the pickup point and collect your order"
    ),
    OrderStatus.COMPLETED.value: "Your " + BRAND + " order with order#{order_num} has been picked up",
    OrderStatus.CANCELLED.value: "Your " + BRAND + " order with order#{order_num} has been cancelled",
}


class NotificationService:
    def __init__(
        self,
        store: OrderStore,
        push: BasePushProvider,
        sms: BaseSmsProvider,
        admin_phone: Optional[str] = None,
        country_code: Optional[str] = None,
    ):
        self.store = store
        self.push = push
        self.sms = sms
        self.admin_phone = admin_phone or settings.ADMIN_PHONE_NUMBER
        self.country_code = country_code or settings.SMS_COUNTRY_CODE
        self._error_handler = ErrorHandler(__name__)

    # ===== EVENT HANDLERS =====

    async def handle_order_created(self, event: ChangeEvent) -> None:
        order = OrderDocument.from_document({**(event.after or {}), "id": event.document_id})
        await self.notify_restaurant_new_order(order)
        await self.notify_customer_order_received(order)

    async def handle_order_updated(self, event: ChangeEvent) -> None:
        order = OrderDocument.from_document({**(event.after or {}), "id": event.document_id})

        if not event.before_value("runner") and order.runner:
            await self.notify_runner_assigned(order)

        if event.changed("orderStatus"):
            await self.notify_customer_status(order)

    # ===== NOTIFICATIONS =====

    async def notify_restaurant_new_order(self, order: OrderDocument) -> int:
        """Push the new order to every staff device of the restaurant."""
        try:
            restaurant = await self._get(Collections.RESTAURANTS, order.restaurant, RestaurantDocument)
            customer = await self._get(Collections.CUSTOMERS, order.customer, CustomerDocument)
            if restaurant is None or customer is None:
                return 0

            users = await self.store.query(
                Collections.USERS.value,
                filters=[("restaurants", "array_contains", restaurant.id)],
            )
            tokens: List[str] = [
                user.fcm_token
                for user in (RestaurantUserDocument.model_validate(doc) for doc in users)
                if user.fcm_token
            ]
            if not tokens:
                self._error_handler.logger.info(f"[{order.id}] No FCM tokens found for restaurant {restaurant.id} users")
                return 0

            body = f"Customer: {customer.name or 'Unknown Customer'}"
            if order.delivery_time:
                deliver_by = shift_time_of_day(order.delivery_time, -settings.RESTAURANT_NOTICE_LEAD_MINUTES)
                body += f"\nDeliver by: {deliver_by}"
            sent = await self.push.send_multicast(
                tokens,
                title="New Order Received",
                body=body,
                data={"screen": "OrderListScreen", "orderId": order.id},
            )
            self._error_handler.logger.info(f"[{order.id}] New order push sent to {sent} devices")
            return sent
        except Exception as e:
            self._error_handler.log_error("notify_restaurant_new_order", e, {"order_id": order.id})
            return 0

    async def notify_runner_assigned(self, order: OrderDocument) -> bool:
        try:
            runner = await self._get(Collections.RUNNERS, order.runner, RunnerDocument)
            restaurant = await self._get(Collections.RESTAURANTS, order.restaurant, RestaurantDocument)
            if runner is None or restaurant is None:
                return False
            if not runner.fcm_token:
                self._error_handler.logger.info(f"[{order.id}] No FCM token found for runner {runner.id}")
                return False

            place = restaurant.name or ""
            if restaurant.branch:
                place = f"{place}, {restaurant.branch}"
            body = f"Restaurant: {place}"
            if order.delivery_time:
                deliver_before = shift_time_of_day(order.delivery_time, -settings.RUNNER_NOTICE_LEAD_MINUTES)
                body += f"\nDeliver before: {deliver_before}"

            return await self.push.send_to_device(
                runner.fcm_token,
                title="New Order Assigned",
                body=body,
                data={"screen": "OrderDetailScreen", "orderId": order.id},
            )
        except Exception as e:
            self._error_handler.log_error("notify_runner_assigned", e, {"order_id": order.id})
            return False

    async def notify_customer_order_received(self, order: OrderDocument) -> bool:
        message = (
            f"Your {BRAND} order with order#{order.order_num} and "
            f"Pickup Code: {order.pickup_code} has been received"
        )
        return await self._sms_customer(order, message, "notify_customer_order_received")

    async def notify_customer_status(self, order: OrderDocument) -> bool:
        template = STATUS_MESSAGES.get(order.order_status.value)
        if not template:
            return False
        message = template.format(order_num=order.order_num)
        return await self._sms_customer(order, message, "notify_customer_status")

    async def alert_no_runner(self, order: OrderDocument) -> bool:
        """Tell the operator an order is waiting for a runner."""
        if not self.admin_phone:
            self._error_handler.logger.warning(
                f"[{order.id}] No runner available and ADMIN_PHONE_NUMBER is not set"
            )
            return False
        return await self._send_sms(
            self.admin_phone, f"No runner available for order#{order.order_num}", "alert_no_runner"
        )

    # ===== HELPERS =====

    async def _sms_customer(self, order: OrderDocument, message: str, operation: str) -> bool:
        try:
            customer = await self._get(Collections.CUSTOMERS, order.customer, CustomerDocument)
        except AutomationError as e:
            self._error_handler.log_error(operation, e, {"order_id": order.id})
            return False
        if customer is None or not customer.mobile:
            self._error_handler.logger.info(f"[{order.id}] Customer has no mobile number")
            return False
        return await self._send_sms(customer.mobile, message, operation)

    async def _send_sms(self, phone: str, message: str, operation: str) -> bool:
        to = phone if phone.startswith("+") else f"{self.country_code}{phone}"
        try:
            return await self.sms.send_sms(to, message)
        except Exception as e:
            self._error_handler.log_error(operation, e, {"sms_to": to})
            return False

    async def _get(self, collection: Collections, doc_id: Optional[str], model):
        if not doc_id:
            self._error_handler.logger.info(f"No {collection.value[:-1]} reference on order")
            return None
        document = await self.store.get(collection.value, doc_id)
        if document is None:
            self._error_handler.logger.info(f"No such {collection.value[:-1]}: {doc_id}")
            return None
        return model.model_validate(document)
