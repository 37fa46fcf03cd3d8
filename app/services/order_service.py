import logging
from typing import Any, Optional
from uuid import UUID

from app.events.contracts import (
    CheckoutOrder,
    OrderConfirmed,
    OrderCreated,
    OrderPaymentFailed,
    PaymentRequested,
    PaymentResult,
)
from app.events.outbox_utility import correlation_headers, create_outbox_event
from app.models.order import Order, OrderItem, OrderStatus

log = logging.getLogger(__name__)


async def create_order(conn: Any, order: CheckoutOrder, correlation_id: Optional[str] = None) -> Order:
    """
    Creates the Order in PENDING_PAYMENT and, in the same transaction, the
    PaymentRequested and OrderCreated outbox events.
    """
    existing = await Order.get_or_none(id=order.id).using_db(conn)
    if existing:
        # Same CheckoutRequested published twice lands at a new offset; the order id makes it a no-op
        log.warning(f"Order {order.id} already exists, ignoring repeated CheckoutRequested.")
        return existing

    db_order = await Order.create(
        id=order.id,
        status=OrderStatus.PENDING_PAYMENT,
        currency=order.currency,
        subtotal=order.subtotal,
        tax=order.tax,
        grand_total=order.grand_total,
        shipping_address=order.shipping_address.model_dump(mode="json", by_alias=True),
        metadata=order.metadata,
        using_db=conn,
    )

    for item in order.items:
        await OrderItem.create(
            order=db_order,
            product_id=item.product_id,
            name=item.name,
            quantity=item.quantity,
            unit_price=item.unit_price,
            total_price=item.total_price,
            using_db=conn,
        )

    headers = correlation_headers(correlation_id)
    await create_outbox_event(
        conn,
        aggregate_type="Order",
        aggregate_id=db_order.id,
        event_type="PaymentRequested",
        payload=PaymentRequested(order_id=db_order.id, payment_request=order.payment_request),
        headers=headers,
    )
    await create_outbox_event(
        conn,
        aggregate_type="Order",
        aggregate_id=db_order.id,
        event_type="OrderCreated",
        payload=OrderCreated(
            order_id=db_order.id,
            status=OrderStatus.PENDING_PAYMENT.value,
            currency=order.currency,
            subtotal=order.subtotal,
            tax=order.tax,
            grand_total=order.grand_total,
            items=order.items,
            shipping_address=order.shipping_address,
        ),
        headers=headers,
    )

    log.info(f"Order {db_order.id} created with status {OrderStatus.PENDING_PAYMENT.value}")
    return db_order


async def apply_payment_result(
    conn: Any, result: PaymentResult, succeeded: bool, correlation_id: Optional[str] = None
) -> Optional[Order]:
    """
    Moves an order out of PENDING_PAYMENT according to the payment outcome and
    emits OrderConfirmed or OrderPaymentFailed. Returns None if the order is unknown.
    """
    # Results for one order can arrive on different partitions; one reader moves it at a time
    order = await Order.filter(id=result.order_id).using_db(conn).select_for_update().first()
    if not order:
        log.warning(f"Order {result.order_id} not found for payment {result.payment_id}, treating as processed.")
        return None

    # Only a pending order reacts; terminal orders never re-enter the payment step
    if order.status != OrderStatus.PENDING_PAYMENT:
        log.info(f"Order {order.id} already {order.status.value}, ignoring payment {result.payment_id}.")
        return order

    order.payment_id = result.payment_id
    if succeeded:
        order.status = OrderStatus.CONFIRMED
        order.payment_transaction_id = result.transaction_id
        event_type = "OrderConfirmed"
        payload = OrderConfirmed(
            order_id=order.id,
            status=order.status.value,
            payment_id=result.payment_id,
            transaction_id=result.transaction_id,
        )
    else:
        order.status = OrderStatus.PAYMENT_FAILED
        order.metadata = {
            **(order.metadata or {}),
            "paymentError": result.error,
            "paymentErrorCode": result.error_code,
        }
        event_type = "OrderPaymentFailed"
        payload = OrderPaymentFailed(
            order_id=order.id,
            status=order.status.value,
            payment_id=result.payment_id,
            error=result.error,
            error_code=result.error_code,
        )

    await order.save(
        update_fields=["status", "payment_id", "payment_transaction_id", "metadata", "updated_at"],
        using_db=conn,
    )
    await create_outbox_event(
        conn,
        aggregate_type="Order",
        aggregate_id=order.id,
        event_type=event_type,
        payload=payload,
        headers=correlation_headers(correlation_id),
    )

    log.info(f"Order {order.id} updated to {order.status.value}")
    return order


async def get_order_by_id(order_id: UUID) -> Optional[Order]:
    """Fetches order details with items."""
    return await Order.get_or_none(id=order_id).prefetch_related("items")
