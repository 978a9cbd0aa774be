import pytest
from google.api_core import exceptions as gcp_exceptions

from src.api.events.dispatcher import EventDispatcher
from src.api.events.models import ChangeEvent
from src.config.constants import ChangeKind, Collections
from src.shared.exceptions import ResourceNotFoundError


def _event(kind="created", document_id="order-1", before=None, after=None):
    return ChangeEvent(entity="orders", kind=kind, document_id=document_id, before=before, after=after)


@pytest.mark.asyncio
class TestEventDispatcher:
    async def test_handlers_run_in_registration_order(self):
        dispatcher = EventDispatcher()
        calls = []

        @dispatcher.register(Collections.ORDERS, ChangeKind.CREATED)
        async def first(event):
            calls.append(("first", event.document_id))

        @dispatcher.register(Collections.ORDERS, ChangeKind.CREATED)
        async def second(event):
            calls.append(("second", event.document_id))

        result = await dispatcher.dispatch(_event())

        assert calls == [("first", "order-1"), ("second", "order-1")]
        assert [outcome.status for outcome in result.outcomes] == ["ok", "ok"]
        assert not result.failed

    async def test_handlers_are_keyed_by_entity_and_kind(self):
        dispatcher = EventDispatcher()
        calls = []

        @dispatcher.register(Collections.RUNNERS, ChangeKind.UPDATED)
        async def on_runner(event):
            calls.append(event.document_id)

        result = await dispatcher.dispatch(_event(kind="updated"))

        assert calls == []
        assert result.outcomes == []

    async def test_failures_are_contained_and_classified(self):
        dispatcher = EventDispatcher()
        calls = []

        @dispatcher.register(Collections.ORDERS, ChangeKind.CREATED)
        async def missing(event):
            raise ResourceNotFoundError("Order order-1 not found")

        @dispatcher.register(Collections.ORDERS, ChangeKind.CREATED)
        async def flaky(event):
            raise gcp_exceptions.ServiceUnavailable("firestore down")

        @dispatcher.register(Collections.ORDERS, ChangeKind.CREATED)
        async def still_runs(event):
            calls.append(event.document_id)

        result = await dispatcher.dispatch(_event())

        statuses = [(outcome.status, outcome.retryable) for outcome in result.outcomes]
        assert statuses == [("failed", False), ("failed", True), ("ok", False)]
        assert calls == ["order-1"]
        assert result.failed
        assert result.should_retry

    async def test_unexpected_errors_are_not_retried(self):
        dispatcher = EventDispatcher()

        @dispatcher.register(Collections.ORDERS, ChangeKind.CREATED)
        async def broken(event):
            raise ValueError("boom")

        result = await dispatcher.dispatch(_event())

        assert result.failed
        assert not result.should_retry
        assert "boom" in result.outcomes[0].error


@pytest.mark.asyncio
class TestStoreDrivenFlow:
    async def test_order_lifecycle_through_store_events(self, store, seed, dispatcher, push, sms):
        await seed.reference_data()
        await seed.runner("runner-1", fcm_token="runner-token")
        store.subscribe(dispatcher.on_store_change)

        await store.create("orders", {
            "orderStatus": "received",
            "deliveryTime": "18:00",
            "restaurant": "restaurant-1",
            "customer": "customer-1",
            "orderNum": 1001,
            "pickupCode": "4321",
        }, doc_id="order-1")

        order = await store.get("orders", "order-1")
        runner = await store.get("runners", "runner-1")
        assert order["runner"] == "runner-1"
        assert runner["activeOrders"] == 1
        assert ["runner-token"] in [message["tokens"] for message in push.sent]
        assert ["staff-token-1"] in [message["tokens"] for message in push.sent]

        await store.update("orders", "order-1", {"orderStatus": "ready"})
        await store.update("orders", "order-1", {"orderStatus": "delivered"})
        await store.update("orders", "order-1", {"orderStatus": "completed"})

        runner = await store.get("runners", "runner-1")
        assert runner["activeOrders"] == 0
        assert runner["completedOrders"] == 1
        assert runner["totalCompletedOrders"] == 1
        assert len(sms.sent) == 3

    async def test_waiting_order_is_picked_up_on_activation(self, store, seed, dispatcher, sms):
        await seed.runner("runner-1", active=False)
        store.subscribe(dispatcher.on_store_change)

        await store.create("orders", {"orderStatus": "received", "deliveryTime": "18:00",
                                      "orderNum": 7}, doc_id="order-1")
        assert (await store.get("orders", "order-1"))["waitingForRunner"] is True

        await store.update("runners", "runner-1", {"isActive": True})

        order = await store.get("orders", "order-1")
        assert order["runner"] == "runner-1"
        assert "waitingForRunner" not in order
        assert (await store.get("runners", "runner-1"))["activeOrders"] == 1
