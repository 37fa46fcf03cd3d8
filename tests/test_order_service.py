import pytest
from unittest.mock import patch
from uuid import uuid4

from tortoise.queryset import QuerySet
from tortoise.transactions import in_transaction

from app.events.contracts import CheckoutOrder, PaymentCompleted, PaymentFailed
from app.models.order import Order, OrderItem, OrderStatus
from app.models.outbox import OutboxEvent
from app.schemas.checkout import CheckoutRequest
from app.services.checkout_service import build_checkout_event, get_cart, submit_checkout
from app.services.order_service import apply_payment_result, create_order, get_order_by_id


def checkout_order(checkout_body, card="4242424242424242") -> CheckoutOrder:
    request = CheckoutRequest.model_validate(checkout_body(card))
    return build_checkout_event(uuid4(), request, "corr-1").order


async def outbox_types(aggregate_id):
    events = await OutboxEvent.filter(aggregate_id=str(aggregate_id)).order_by("created_at")
    return [e.event_type for e in events]


class TestCheckoutService:

    def test_cart_totals(self):
        cart = get_cart()
        assert cart["subtotal"] == 5998 + 4999 + 2997
        assert cart["grand_total"] == cart["subtotal"] + cart["tax"]
        assert cart["currency"] == "USD"

    def test_checkout_event_maps_request(self, checkout_body):
        request = CheckoutRequest.model_validate(checkout_body("4000000000000000"))
        order_id = uuid4()

        event = build_checkout_event(order_id, request, "corr-1")

        assert event.order.id == order_id
        assert event.order.shipping_address.address_line1 == "123 Main Street"
        assert event.order.shipping_address.state == "CA"
        assert event.order.payment_request.amount == event.order.grand_total
        assert event.order.payment_request.card_number == "4000000000000000"
        assert event.order.metadata == {"source": "web", "correlationId": "corr-1"}

    @pytest.mark.asyncio
    async def test_submit_checkout_only_writes_outbox(self, db, checkout_body):
        request = CheckoutRequest.model_validate(checkout_body())

        response = await submit_checkout(request, correlation_id="corr-1")

        assert response.status == OrderStatus.PENDING_PAYMENT
        assert response.grand_total == get_cart()["grand_total"]
        assert await outbox_types(response.order_id) == ["CheckoutRequested"]
        event = await OutboxEvent.get(aggregate_id=str(response.order_id))
        assert event.aggregate_type == "Order"
        assert event.headers == {"correlationId": "corr-1"}
        # The order itself is created by the orders service
        assert await Order.all().count() == 0


class TestOrderService:

    @pytest.mark.asyncio
    async def test_create_order_with_items_and_events(self, db, checkout_body):
        order = checkout_order(checkout_body)

        async with in_transaction() as conn:
            created = await create_order(conn, order, correlation_id="corr-1")

        assert created.status == OrderStatus.PENDING_PAYMENT
        assert await OrderItem.filter(order_id=order.id).count() == 3
        assert await outbox_types(order.id) == ["PaymentRequested", "OrderCreated"]
        payment_requested = await OutboxEvent.get(aggregate_id=str(order.id), event_type="PaymentRequested")
        assert payment_requested.payload["paymentRequest"]["amount"] == order.grand_total
        assert payment_requested.headers == {"correlationId": "corr-1"}

    @pytest.mark.asyncio
    async def test_create_order_twice_is_noop(self, db, checkout_body):
        order = checkout_order(checkout_body)

        async with in_transaction() as conn:
            await create_order(conn, order)
        async with in_transaction() as conn:
            await create_order(conn, order)

        assert await Order.all().count() == 1
        assert len(await outbox_types(order.id)) == 2

    @pytest.mark.asyncio
    async def test_payment_completed_confirms_order(self, db, checkout_body):
        order = checkout_order(checkout_body)
        async with in_transaction() as conn:
            await create_order(conn, order)

        result = PaymentCompleted(payment_id=uuid4(), order_id=order.id, status="COMPLETED", amount=order.grand_total,
                                  currency="USD", transaction_id="txn_123")
        async with in_transaction() as conn:
            updated = await apply_payment_result(conn, result, succeeded=True, correlation_id="corr-1")

        assert updated.status == OrderStatus.CONFIRMED
        saved = await Order.get(id=order.id)
        assert saved.status == OrderStatus.CONFIRMED
        assert saved.payment_id == result.payment_id
        assert saved.payment_transaction_id == "txn_123"
        assert (await outbox_types(order.id))[-1] == "OrderConfirmed"

    @pytest.mark.asyncio
    async def test_payment_failed_records_error(self, db, checkout_body):
        order = checkout_order(checkout_body, card="4000000000000000")
        async with in_transaction() as conn:
            await create_order(conn, order)

        result = PaymentFailed(payment_id=uuid4(), order_id=order.id, status="FAILED", amount=order.grand_total,
                               currency="USD", error="Insufficient funds", error_code="INSUFFICIENT_FUNDS")
        async with in_transaction() as conn:
            await apply_payment_result(conn, result, succeeded=False)

        saved = await Order.get(id=order.id)
        assert saved.status == OrderStatus.PAYMENT_FAILED
        assert saved.metadata["paymentErrorCode"] == "INSUFFICIENT_FUNDS"
        assert saved.metadata["source"] == "web"
        failed_event = await OutboxEvent.get(aggregate_id=str(order.id), event_type="OrderPaymentFailed")
        assert failed_event.payload["errorCode"] == "INSUFFICIENT_FUNDS"

    @pytest.mark.asyncio
    async def test_final_order_ignores_later_results(self, db, checkout_body):
        order = checkout_order(checkout_body)
        async with in_transaction() as conn:
            await create_order(conn, order)
        completed = PaymentCompleted(payment_id=uuid4(), order_id=order.id, status="COMPLETED", amount=1,
                                     currency="USD", transaction_id="txn_1")
        failed = PaymentFailed(payment_id=uuid4(), order_id=order.id, status="FAILED", amount=1, currency="USD",
                               error="Invalid card", error_code="INVALID_CARD")

        async with in_transaction() as conn:
            await apply_payment_result(conn, completed, succeeded=True)
        async with in_transaction() as conn:
            await apply_payment_result(conn, failed, succeeded=False)

        assert (await Order.get(id=order.id)).status == OrderStatus.CONFIRMED
        assert await outbox_types(order.id) == ["PaymentRequested", "OrderCreated", "OrderConfirmed"]

    @pytest.mark.asyncio
    async def test_payment_result_locks_order_row(self, db, checkout_body):
        order = checkout_order(checkout_body)
        async with in_transaction() as conn:
            await create_order(conn, order)
        result = PaymentCompleted(payment_id=uuid4(), order_id=order.id, status="COMPLETED", amount=1,
                                  currency="USD", transaction_id="txn_1")

        with patch.object(QuerySet, "select_for_update", autospec=True,
                          side_effect=QuerySet.select_for_update) as mock_lock:
            async with in_transaction() as conn:
                await apply_payment_result(conn, result, succeeded=True)

        mock_lock.assert_called_once()
        assert mock_lock.call_args.args[0].model is Order
        assert (await Order.get(id=order.id)).status == OrderStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_result_for_unknown_order_is_ignored(self, db):
        result = PaymentCompleted(payment_id=uuid4(), order_id=uuid4(), status="COMPLETED", amount=1, currency="USD")

        async with in_transaction() as conn:
            assert await apply_payment_result(conn, result, succeeded=True) is None

        assert await OutboxEvent.all().count() == 0

    @pytest.mark.asyncio
    async def test_get_order_by_id_includes_items(self, db, checkout_body):
        order = checkout_order(checkout_body)
        async with in_transaction() as conn:
            await create_order(conn, order)

        fetched = await get_order_by_id(order.id)

        assert {i.product_id for i in fetched.items} == {"WIDGET-001", "GADGET-002", "CABLE-003"}
        assert await get_order_by_id(uuid4()) is None
