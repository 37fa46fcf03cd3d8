from typing import Dict

from app.core.errors import UnknownEventType

TOPIC_CHECKOUT_REQUESTS = "checkout.requests"
TOPIC_PAYMENT_REQUESTS = "payment.requests"
TOPIC_PAYMENT_EVENTS = "payment.events"
TOPIC_ORDER_EVENTS = "order.events"

# Static routing, one topic per event type
EVENT_TOPIC_MAP: Dict[str, str] = {
    "CheckoutRequested": TOPIC_CHECKOUT_REQUESTS,
    "PaymentRequested": TOPIC_PAYMENT_REQUESTS,
    "PaymentCompleted": TOPIC_PAYMENT_EVENTS,
    "PaymentFailed": TOPIC_PAYMENT_EVENTS,
    "OrderCreated": TOPIC_ORDER_EVENTS,
    "OrderConfirmed": TOPIC_ORDER_EVENTS,
    "OrderPaymentFailed": TOPIC_ORDER_EVENTS,
}


def topic_for(event_type: str) -> str:
    try:
        return EVENT_TOPIC_MAP[event_type]
    except KeyError:
        raise UnknownEventType(f"No topic routed for event type '{event_type}'")
