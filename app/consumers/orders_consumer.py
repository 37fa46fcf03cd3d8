import logging
from typing import Any

from app.consumers.inbox_guard import Delivery, InboxOutcome, consume
from app.events.contracts import CheckoutRequested, PaymentResult
from app.events.envelope import EventEnvelope
from app.services import order_service

log = logging.getLogger("orders_consumer")


async def handle_checkout_requested(
    payload: CheckoutRequested, envelope: EventEnvelope, delivery: Delivery
) -> InboxOutcome:
    """
    Consumer logic for 'CheckoutRequested'.
    Creates the order and queues PaymentRequested and OrderCreated.
    """
    log.info(f"--- Orders: CREATING Order {payload.order.id} ---")

    async def create(conn: Any) -> None:
        await order_service.create_order(conn, payload.order, correlation_id=envelope.correlation_id)

    return await consume(delivery, create)


async def handle_payment_completed(
    payload: PaymentResult, envelope: EventEnvelope, delivery: Delivery
) -> InboxOutcome:
    """Consumer logic for 'PaymentCompleted'. Moves the order to CONFIRMED."""
    log.info(f"--- Orders: CONFIRMING Order {payload.order_id} ---")

    async def confirm(conn: Any) -> None:
        await order_service.apply_payment_result(conn, payload, succeeded=True, correlation_id=envelope.correlation_id)

    return await consume(delivery, confirm)


async def handle_payment_failed(
    payload: PaymentResult, envelope: EventEnvelope, delivery: Delivery
) -> InboxOutcome:
    """Consumer logic for 'PaymentFailed'. Moves the order to PAYMENT_FAILED."""
    log.info(f"--- Orders: FAILING Order {payload.order_id} ({payload.error_code}) ---")

    async def fail(conn: Any) -> None:
        await order_service.apply_payment_result(conn, payload, succeeded=False, correlation_id=envelope.correlation_id)

    return await consume(delivery, fail)


CHECKOUT_HANDLERS = {
    "CheckoutRequested": handle_checkout_requested,
}

PAYMENT_RESULT_HANDLERS = {
    "PaymentCompleted": handle_payment_completed,
    "PaymentFailed": handle_payment_failed,
}
