import pytest
from unittest.mock import AsyncMock
from uuid import uuid4

from tortoise.transactions import in_transaction

from app.events.contracts import OrderCreated, PaymentRequest
from app.models.fulfillment import FulfillmentStatus, FulfillmentTask
from app.models.outbox import OutboxEvent
from app.models.payment import PaymentStatus, PaymentTransaction
from app.services.fulfillment_service import create_task, get_task_by_order_id
from app.services.payment_service import GatewayResult, MockPaymentGateway, get_payment_by_id, process_payment


def payment_request(card_number="4242424242424242", amount=13994):
    return PaymentRequest(amount=amount, currency="USD", card_number=card_number, expiry_date="12/30", cvv="123",
                          cardholder_name="Jane Doe")


class TestMockPaymentGateway:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("card,error_code", [
        ("4000000000000000", "INSUFFICIENT_FUNDS"),
        ("4000000000001111", "INVALID_CARD"),
        ("4000000000009999", "GATEWAY_ERROR"),
    ])
    async def test_declines_by_last_four_digits(self, card, error_code):
        result = await MockPaymentGateway(latency=0).charge(payment_request(card))
        assert result.success is False
        assert result.error_code == error_code
        assert result.transaction_id is None

    @pytest.mark.asyncio
    async def test_other_cards_succeed(self):
        result = await MockPaymentGateway(latency=0).charge(payment_request())
        assert result.success is True
        assert result.transaction_id.startswith("txn_")


class TestProcessPayment:

    @pytest.mark.asyncio
    async def test_successful_charge_emits_payment_completed(self, db, instant_gateway):
        order_id = uuid4()

        async with in_transaction() as conn:
            payment = await process_payment(conn, order_id, payment_request(), correlation_id="corr-1")

        assert payment.status == PaymentStatus.COMPLETED
        assert payment.payment_method == {"type": "card", "last4": "4242"}
        event = await OutboxEvent.get(aggregate_id=str(payment.id))
        assert event.aggregate_type == "Payment"
        assert event.event_type == "PaymentCompleted"
        assert event.payload["orderId"] == str(order_id)
        assert event.payload["transactionId"] == payment.transaction_id
        assert event.headers == {"correlationId": "corr-1"}
        assert (await get_payment_by_id(payment.id)).order_id == order_id

    @pytest.mark.asyncio
    async def test_declined_card_emits_payment_failed(self, db, instant_gateway):
        async with in_transaction() as conn:
            payment = await process_payment(conn, uuid4(), payment_request("4000000000000000"))

        assert payment.status == PaymentStatus.FAILED
        assert payment.error_code == "INSUFFICIENT_FUNDS"
        event = await OutboxEvent.get(aggregate_id=str(payment.id))
        assert event.event_type == "PaymentFailed"
        assert event.payload["error"] == "Insufficient funds"

    @pytest.mark.asyncio
    async def test_order_is_never_charged_twice(self, db):
        gateway = AsyncMock()
        gateway.charge.return_value = GatewayResult(success=True, transaction_id="txn_1")
        order_id = uuid4()

        async with in_transaction() as conn:
            first = await process_payment(conn, order_id, payment_request(), gateway=gateway)
        async with in_transaction() as conn:
            second = await process_payment(conn, order_id, payment_request(), gateway=gateway)

        assert second.id == first.id
        assert gateway.charge.await_count == 1
        assert await PaymentTransaction.filter(order_id=order_id).count() == 1
        assert await OutboxEvent.all().count() == 1


class TestFulfillmentService:

    @staticmethod
    def order_created():
        return OrderCreated.model_validate({
            "orderId": str(uuid4()),
            "status": "PENDING_PAYMENT",
            "currency": "USD",
            "subtotal": 100,
            "tax": 0,
            "grandTotal": 100,
            "items": [{"productId": "P", "name": "N", "quantity": 1, "unitPrice": 100, "totalPrice": 100}],
            "shippingAddress": {"fullName": "J", "addressLine1": "1 St", "city": "C", "state": "S",
                                "postalCode": "1", "country": "US"},
        })

    @pytest.mark.asyncio
    async def test_create_task_once_per_order(self, db):
        event = self.order_created()

        async with in_transaction() as conn:
            task = await create_task(conn, event)
        async with in_transaction() as conn:
            again = await create_task(conn, event)

        assert again.id == task.id
        assert task.status == FulfillmentStatus.PENDING
        assert task.payload["grandTotal"] == 100
        assert await FulfillmentTask.all().count() == 1
        assert (await get_task_by_order_id(event.order_id)).id == task.id
