from enum import Enum
from tortoise import fields, models
import uuid


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class PaymentTransaction(models.Model):
    """Stores every payment attempt and its gateway result. Owned by the payment service."""
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    order_id = fields.UUIDField()  # Reference only, the order lives in the orders service
    status = fields.CharEnumField(PaymentStatus, max_length=50)
    amount = fields.IntField()  # cents
    currency = fields.CharField(max_length=3)
    transaction_id = fields.CharField(max_length=200, null=True)  # external gateway transaction ID
    error_message = fields.CharField(max_length=500, null=True)
    error_code = fields.CharField(max_length=50, null=True)
    payment_method = fields.JSONField(null=True)  # {"type": "card", "last4": "4242"}
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "payment_transactions"
        indexes = [
            ("order_id",),
            ("status",),
            ("status", "created_at"),
        ]
