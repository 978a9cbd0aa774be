import httpx
import pytest

from src.api.events.models import ChangeEvent
from src.api.notifications.providers.twilio import TwilioSmsProvider
from src.api.orders.models import OrderDocument
from tests.constants import ADMIN_SMS_NUMBER, CUSTOMER_SMS_NUMBER


def _order(**fields):
    data = {
        "id": "order-1",
        "orderStatus": "received",
        "deliveryTime": "18:00",
        "restaurant": "restaurant-1",
        "customer": "customer-1",
        "orderNum": 1001,
        "pickupCode": "4321",
    }
    data.update(fields)
    return OrderDocument.from_document(data)


@pytest.mark.asyncio
class TestNewOrderNotifications:
    async def test_restaurant_staff_get_a_push(self, seed, notifications, push):
        await seed.reference_data()

        sent = await notifications.notify_restaurant_new_order(_order())

        assert sent == 1
        assert push.sent == [{
            "tokens": ["staff-token-1"],
            "title": "New Order Received",
            "body": "Customer: Asha\nDeliver by: 17:30",
            "data": {"screen": "OrderListScreen", "orderId": "order-1"},
        }]

    async def test_customer_gets_order_received_sms(self, seed, notifications, sms):
        await seed.reference_data()

        await notifications.notify_customer_order_received(_order())

        assert sms.sent == [{
            "to": CUSTOMER_SMS_NUMBER,
            "body": "Your BriskIT order with order#1001 and Pickup Code: 4321 has been received",
        }]

    async def test_created_event_sends_both(self, seed, notifications, push, sms):
        await seed.reference_data()

        await notifications.handle_order_created(ChangeEvent(
            entity="orders", kind="created", document_id="order-1",
            after={"orderStatus": "received", "deliveryTime": "18:00", "restaurant": "restaurant-1",
                   "customer": "customer-1", "orderNum": 1001, "pickupCode": "4321"},
        ))

        assert len(push.sent) == 1
        assert len(sms.sent) == 1

    async def test_order_without_delivery_time_drops_deadline_line(self, seed, notifications, push):
        await seed.reference_data()

        assert await notifications.notify_restaurant_new_order(_order(deliveryTime=None)) == 1

        assert push.sent[0]["body"] == "Customer: Asha"

    async def test_push_failure_is_logged_not_raised(self, seed, notifications, push):
        await seed.reference_data()
        push.fail = True

        assert await notifications.notify_restaurant_new_order(_order()) == 0

    async def test_missing_restaurant_skips_push(self, notifications, push):
        assert await notifications.notify_restaurant_new_order(_order(restaurant="restaurant-9")) == 0
        assert push.sent == []


@pytest.mark.asyncio
class TestAssignmentNotifications:
    async def test_runner_push_names_restaurant_and_deadline(self, seed, notifications, push):
        await seed.reference_data()
        await seed.runner("runner-1", fcm_token="runner-token")

        assert await notifications.notify_runner_assigned(_order(runner="runner-1", deliveryTime="18:10"))

        assert push.sent[0]["tokens"] == ["runner-token"]
        assert push.sent[0]["body"] == "Restaurant: Spice Route, Adyar\nDeliver before: 17:55"

    async def test_runner_push_without_delivery_time(self, seed, notifications, push):
        await seed.reference_data()
        await seed.runner("runner-1", fcm_token="runner-token")

        assert await notifications.notify_runner_assigned(_order(runner="runner-1", deliveryTime=None))

        assert push.sent[0]["body"] == "Restaurant: Spice Route, Adyar"

    async def test_runner_without_token_is_skipped(self, seed, notifications, push):
        await seed.reference_data()
        await seed.runner("runner-1")

        assert await notifications.notify_runner_assigned(_order(runner="runner-1")) is False
        assert push.sent == []

    async def test_operator_alert(self, notifications, sms):
        await notifications.alert_no_runner(_order(orderNum=55))

        assert sms.sent == [{"to": ADMIN_SMS_NUMBER, "body": "No runner available for order#55"}]

    async def test_sms_failure_is_logged_not_raised(self, notifications, sms):
        sms.fail = True

        assert await notifications.alert_no_runner(_order()) is False


@pytest.mark.asyncio
class TestStatusNotifications:
    @pytest.mark.parametrize("status, expected", [
        ("delivered", "Your BriskIT order with order#1001 has been delivered. "
                      "Please visit the pickup point and collect your order"),
        ("completed", "Your BriskIT order with order#1001 has been picked up"),
        ("cancelled", "Your BriskIT order with order#1001 has been cancelled"),
    ])
    async def test_status_change_texts_customer(self, seed, notifications, sms, status, expected):
        await seed.reference_data()

        await notifications.handle_order_updated(ChangeEvent(
            entity="orders", kind="updated", document_id="order-1",
            before={"orderStatus": "ready", "customer": "customer-1", "orderNum": 1001},
            after={"orderStatus": status, "customer": "customer-1", "orderNum": 1001},
        ))

        assert sms.sent == [{"to": CUSTOMER_SMS_NUMBER, "body": expected}]

    async def test_unchanged_status_sends_nothing(self, seed, notifications, sms):
        await seed.reference_data()
        snapshot = {"orderStatus": "delivered", "customer": "customer-1", "orderNum": 1001}

        await notifications.handle_order_updated(ChangeEvent(
            entity="orders", kind="updated", document_id="order-1", before=snapshot, after=snapshot,
        ))

        assert sms.sent == []


@pytest.mark.asyncio
class TestTwilioProvider:
    async def test_posts_message_form(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(201, json={"sid": "SM123"})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            provider = TwilioSmsProvider("AC1", "secret", "+15550000000", client=client)
            assert await provider.send_sms("+919876543210", "hello") is True

        request = requests[0]
        assert request.url.path == "/2010-04-01/Accounts/AC1/Messages.json"
        assert b"To=%2B919876543210" in request.content
        assert request.headers["authorization"].startswith("Basic ")

    async def test_http_errors_propagate(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(400, json={"message": "bad"}))

        async with httpx.AsyncClient(transport=transport) as client:
            provider = TwilioSmsProvider("AC1", "secret", "+15550000000", client=client)
            with pytest.raises(httpx.HTTPStatusError):
                await provider.send_sms("+919876543210", "hello")
