import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from tortoise.transactions import in_transaction

from app.events.contracts import CheckoutOrder, CheckoutRequested, LineItem, PaymentRequest, ShippingAddress
from app.events.outbox_utility import correlation_headers, create_outbox_event
from app.models.order import OrderStatus
from app.schemas.checkout import CheckoutRequest, CheckoutResponse

log = logging.getLogger(__name__)

# Mock cart data - in production this would come from a cart service
MOCK_CART_ITEMS: List[LineItem] = [
    LineItem(product_id="WIDGET-001", name="Premium Widget", quantity=2, unit_price=2999, total_price=5998),
    LineItem(product_id="GADGET-002", name="Super Gadget", quantity=1, unit_price=4999, total_price=4999),
    LineItem(product_id="CABLE-003", name="USB-C Cable", quantity=3, unit_price=999, total_price=2997),
]
CART_CURRENCY = "USD"


def get_cart() -> Dict[str, Any]:
    subtotal = sum(item.total_price for item in MOCK_CART_ITEMS)
    tax = 0  # Tax calculation is out of scope
    return {
        "items": MOCK_CART_ITEMS,
        "currency": CART_CURRENCY,
        "subtotal": subtotal,
        "tax": tax,
        "grand_total": subtotal + tax,
    }


def build_checkout_event(order_id: uuid.UUID, request: CheckoutRequest, correlation_id: Optional[str]) -> CheckoutRequested:
    cart = get_cart()
    address = request.shipping_address
    card = request.payment_details
    return CheckoutRequested(
        order=CheckoutOrder(
            id=order_id,
            currency=cart["currency"],
            subtotal=cart["subtotal"],
            tax=cart["tax"],
            grand_total=cart["grand_total"],
            items=cart["items"],
            shipping_address=ShippingAddress(
                full_name=address.full_name,
                address_line1=address.street_address,
                city=address.city,
                state=address.state_province,
                postal_code=address.postal_code,
                country=address.country,
            ),
            payment_request=PaymentRequest(
                amount=cart["grand_total"],
                currency=cart["currency"],
                card_number=card.card_number,
                expiry_date=card.expiry_date,
                cvv=card.cvv,
                cardholder_name=card.cardholder_name,
            ),
            metadata={"source": request.metadata or "web", "correlationId": correlation_id},
        )
    )


async def submit_checkout(request: CheckoutRequest, correlation_id: Optional[str] = None) -> CheckoutResponse:
    """
    Accepts a checkout: assigns the order id and records CheckoutRequested in the
    gateway outbox. Order creation and payment happen downstream, so the response
    always reports PENDING_PAYMENT.
    """
    order_id = uuid.uuid4()
    event = build_checkout_event(order_id, request, correlation_id)

    async with in_transaction() as conn:
        await create_outbox_event(
            conn,
            aggregate_type="Order",
            aggregate_id=order_id,
            event_type="CheckoutRequested",
            payload=event,
            headers=correlation_headers(correlation_id),
        )

    log.info(f"Checkout request recorded for order {order_id} (correlation: {correlation_id})")
    return CheckoutResponse(
        order_id=order_id,
        status=OrderStatus.PENDING_PAYMENT,
        message="Your order has been received and is being processed. Use the orderId to check status.",
        grand_total=event.order.grand_total,
        currency=event.order.currency,
        created_at=datetime.now(timezone.utc),
    )
