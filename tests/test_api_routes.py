import pytest
import httpx
from datetime import datetime, timezone
from fastapi.testclient import TestClient
from types import SimpleNamespace
from unittest.mock import patch, AsyncMock
from uuid import uuid4

from app.core.errors import IdempotencyConflict
from app.main import app
from app.models.idempotency import IdempotencyRecord, IdempotencyStatus
from app.models.order import OrderStatus
from app.models.outbox import OutboxEvent
from app.schemas.checkout import CheckoutResponse
from app.services.idempotency_service import IdempotencyCheck, StoredResponse

CHECKOUT_URL = "/api/v1/checkout/payment"


@pytest.fixture
def client():
    return TestClient(app, raise_server_exceptions=False)


def accepted_response(order_id=None):
    return CheckoutResponse(
        order_id=order_id or uuid4(),
        status=OrderStatus.PENDING_PAYMENT,
        message="accepted",
        grand_total=13994,
        currency="USD",
        created_at=datetime.now(timezone.utc),
    )


class TestCheckoutRoutes:
    def test_missing_idempotency_key(self, client, checkout_body):
        response = client.post(CHECKOUT_URL, json=checkout_body())

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "MISSING_IDEMPOTENCY_KEY"
        assert body["error"]["title"] == "Missing Idempotency Key"

    def test_invalid_body_is_rejected(self, client, checkout_body):
        data = checkout_body()
        del data["paymentDetails"]["cvv"]

        response = client.post(CHECKOUT_URL, json=data, headers={"Idempotency-Key": "k1"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_key_reused_with_different_payload(self, client, checkout_body):
        with patch('app.services.idempotency_service.check_or_create',
                   new_callable=AsyncMock, side_effect=IdempotencyConflict()):
            response = client.post(CHECKOUT_URL, json=checkout_body(), headers={"Idempotency-Key": "k1"})

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "IDEMPOTENCY_CONFLICT"

    def test_request_in_progress(self, client, checkout_body):
        in_flight = IdempotencyCheck(status=IdempotencyStatus.IN_PROGRESS, is_new=False)
        with patch('app.services.idempotency_service.check_or_create', new_callable=AsyncMock, return_value=in_flight):
            with patch('app.api.v1.checkout.submit_checkout', new_callable=AsyncMock) as mock_submit:
                response = client.post(CHECKOUT_URL, json=checkout_body(), headers={"Idempotency-Key": "k1"})

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "REQUEST_IN_PROGRESS"
        mock_submit.assert_not_called()

    def test_completed_request_is_replayed(self, client, checkout_body):
        stored = StoredResponse(status_code=201, body={"success": True, "request_id": "r1", "data": {"orderId": "o1"}})
        done = IdempotencyCheck(status=IdempotencyStatus.COMPLETED, is_new=False, stored_response=stored)
        with patch('app.services.idempotency_service.check_or_create', new_callable=AsyncMock, return_value=done):
            with patch('app.api.v1.checkout.submit_checkout', new_callable=AsyncMock) as mock_submit:
                response = client.post(CHECKOUT_URL, json=checkout_body(), headers={"Idempotency-Key": "k1"})

        assert response.status_code == 201
        assert response.json() == {**stored.body, "replayed": True}
        mock_submit.assert_not_called()

    def test_new_request_is_accepted_and_stored(self, client, checkout_body):
        new = IdempotencyCheck(status=IdempotencyStatus.IN_PROGRESS, is_new=True)
        result = accepted_response()
        with patch('app.services.idempotency_service.check_or_create', new_callable=AsyncMock, return_value=new), \
                patch('app.services.idempotency_service.mark_completed', new_callable=AsyncMock) as mock_completed, \
                patch('app.api.v1.checkout.submit_checkout', new_callable=AsyncMock, return_value=result):
            response = client.post(CHECKOUT_URL, json=checkout_body(), headers={"Idempotency-Key": "k1"})

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["orderId"] == str(result.order_id)
        assert data["status"] == "PENDING_PAYMENT"
        key, scope, code, body = mock_completed.call_args.args
        assert (key, scope, code) == ("k1", "POST:/api/v1/checkout/payment", 201)
        assert body == response.json()

    def test_failed_checkout_releases_key(self, client, checkout_body):
        new = IdempotencyCheck(status=IdempotencyStatus.IN_PROGRESS, is_new=True)
        with patch('app.services.idempotency_service.check_or_create', new_callable=AsyncMock, return_value=new), \
                patch('app.services.idempotency_service.mark_failed', new_callable=AsyncMock) as mock_failed, \
                patch('app.api.v1.checkout.submit_checkout', new_callable=AsyncMock,
                      side_effect=RuntimeError("database down")):
            response = client.post(CHECKOUT_URL, json=checkout_body(), headers={"Idempotency-Key": "k1"})

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "INTERNAL_ERROR"
        mock_failed.assert_awaited_once_with("k1", "POST:/api/v1/checkout/payment")


class TestReadRoutes:
    def test_get_order_not_found(self, client):
        with patch('app.api.v1.orders.get_order_by_id', new_callable=AsyncMock, return_value=None):
            response = client.get(f"/api/v1/orders/{uuid4()}")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_get_order_success(self, client):
        now = datetime.now(timezone.utc)
        order = SimpleNamespace(
            id=uuid4(), status=OrderStatus.CONFIRMED, currency="USD", subtotal=100, tax=0, grand_total=100,
            payment_id=uuid4(), payment_transaction_id="txn_1", shipping_address={"city": "SF"}, metadata={},
            items=[SimpleNamespace(product_id="P", name="N", quantity=1, unit_price=100, total_price=100)],
            created_at=now, updated_at=now,
        )
        with patch('app.api.v1.orders.get_order_by_id', new_callable=AsyncMock, return_value=order):
            response = client.get(f"/api/v1/orders/{order.id}")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "CONFIRMED"
        assert data["grandTotal"] == 100
        assert data["items"][0]["productId"] == "P"

    def test_get_payment_not_found(self, client):
        with patch('app.api.v1.payments.get_payment_by_id', new_callable=AsyncMock, return_value=None):
            response = client.get(f"/api/v1/payments/{uuid4()}")
        assert response.status_code == 404

    def test_get_fulfillment_task_not_found(self, client):
        with patch('app.api.v1.fulfillment.get_task_by_order_id', new_callable=AsyncMock, return_value=None):
            response = client.get(f"/api/v1/fulfillment/{uuid4()}")
        assert response.status_code == 404


class TestCheckoutIdempotencyWithStore:

    @pytest.mark.asyncio
    async def test_retry_replays_and_writes_one_event(self, db, checkout_body):
        correlation = str(uuid4())
        headers = {"Idempotency-Key": "retry-key", "X-Correlation-ID": correlation}
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
            first = await client.post(CHECKOUT_URL, json=checkout_body(), headers=headers)
            second = await client.post(CHECKOUT_URL, json=checkout_body(), headers=headers)
            conflict = await client.post(CHECKOUT_URL, json=checkout_body("4000000000000000"), headers=headers)

        assert first.status_code == 201
        assert first.headers["X-Correlation-ID"] == correlation
        assert second.status_code == 201
        assert second.json()["replayed"] is True
        assert second.json()["data"] == first.json()["data"]
        assert conflict.status_code == 409

        assert await OutboxEvent.filter(event_type="CheckoutRequested").count() == 1
        event = await OutboxEvent.get(event_type="CheckoutRequested")
        assert event.headers == {"correlationId": correlation}
        assert event.aggregate_id == first.json()["data"]["orderId"]
        record = await IdempotencyRecord.get(idem_key="retry-key")
        assert record.status == IdempotencyStatus.COMPLETED
        assert record.response_code == 201

    @pytest.mark.asyncio
    async def test_distinct_keys_create_distinct_orders(self, db, checkout_body):
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
            first = await client.post(CHECKOUT_URL, json=checkout_body(), headers={"Idempotency-Key": "a"})
            second = await client.post(CHECKOUT_URL, json=checkout_body(), headers={"Idempotency-Key": "b"})

        assert first.json()["data"]["orderId"] != second.json()["data"]["orderId"]
        assert await OutboxEvent.filter(event_type="CheckoutRequested").count() == 2
