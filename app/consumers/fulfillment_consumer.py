import logging
from typing import Any

from app.consumers.inbox_guard import Delivery, InboxOutcome, consume
from app.events.contracts import OrderCreated
from app.events.envelope import EventEnvelope
from app.services import fulfillment_service

log = logging.getLogger("fulfillment_consumer")


async def handle_order_created(
    payload: OrderCreated, envelope: EventEnvelope, delivery: Delivery
) -> InboxOutcome:
    """Consumer logic for 'OrderCreated'. Opens a PENDING fulfillment task."""
    log.info(f"--- Fulfillment: NEW TASK for Order {payload.order_id} ---")

    async def open_task(conn: Any) -> None:
        await fulfillment_service.create_task(conn, payload)

    return await consume(delivery, open_task)


# OrderConfirmed and OrderPaymentFailed share the topic and are skipped by eventType
HANDLERS = {
    "OrderCreated": handle_order_created,
}
