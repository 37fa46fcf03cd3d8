from enum import Enum
from tortoise import fields, models
import uuid


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    PENDING_PAYMENT = "PENDING_PAYMENT"  # Created from CheckoutRequested, waiting for the payment result
    PAYMENT_FAILED = "PAYMENT_FAILED"    # Terminal for this saga
    CONFIRMED = "CONFIRMED"              # Terminal for this saga
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class Order(models.Model):
    # Assigned by the gateway, so retries of CheckoutRequested map to the same order
    id = fields.UUIDField(primary_key=True)
    status = fields.CharEnumField(OrderStatus, max_length=50, default=OrderStatus.PENDING_PAYMENT)
    currency = fields.CharField(max_length=3, default="USD")
    subtotal = fields.IntField()  # cents
    tax = fields.IntField(default=0)  # cents
    grand_total = fields.IntField()  # cents
    payment_id = fields.UUIDField(null=True)
    payment_transaction_id = fields.CharField(max_length=200, null=True)
    shipping_address = fields.JSONField(null=True)
    metadata = fields.JSONField(default=dict)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "orders"
        indexes = [
            ("status",),                 # Status-based filtering
            ("payment_id",),
            ("created_at",),             # Time-based queries
            ("status", "created_at"),    # Composite: status with time
        ]


class OrderItem(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    order = fields.ForeignKeyField("models.Order", related_name="items")
    product_id = fields.CharField(max_length=64)
    name = fields.CharField(max_length=255)
    quantity = fields.IntField()
    unit_price = fields.IntField()  # cents
    total_price = fields.IntField()  # cents

    class Meta:
        table = "order_items"
        indexes = [
            ("order_id",),              # Order line items
        ]
