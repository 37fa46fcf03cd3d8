import logging
from typing import Any

from app.consumers.inbox_guard import Delivery, InboxOutcome, consume
from app.events.contracts import PaymentRequested
from app.events.envelope import EventEnvelope
from app.services import payment_service

log = logging.getLogger("payment_consumer")


async def handle_payment_requested(
    payload: PaymentRequested, envelope: EventEnvelope, delivery: Delivery
) -> InboxOutcome:
    """
    Consumer logic for 'PaymentRequested'.
    Charges the card and queues PaymentCompleted or PaymentFailed.
    """
    log.info(f"--- Payment: CHARGING Order {payload.order_id} ({payload.payment_request.amount} {payload.payment_request.currency}) ---")

    async def charge(conn: Any) -> None:
        await payment_service.process_payment(
            conn, payload.order_id, payload.payment_request, correlation_id=envelope.correlation_id
        )

    return await consume(delivery, charge)


HANDLERS = {
    "PaymentRequested": handle_payment_requested,
}
