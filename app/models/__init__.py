# app/models/__init__.py
from .idempotency import IdempotencyRecord, IdempotencyStatus
from .outbox import OutboxEvent, OutboxStatus
from .inbox import InboxRecord, InboxStatus
from .order import Order, OrderItem, OrderStatus
from .payment import PaymentTransaction, PaymentStatus
from .fulfillment import FulfillmentTask, FulfillmentStatus

# Export all models
__all__ = [
    "IdempotencyRecord",
    "IdempotencyStatus",
    "OutboxEvent",
    "OutboxStatus",
    "InboxRecord",
    "InboxStatus",
    "Order",
    "OrderItem",
    "OrderStatus",
    "PaymentTransaction",
    "PaymentStatus",
    "FulfillmentTask",
    "FulfillmentStatus",
]
