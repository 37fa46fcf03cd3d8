from enum import Enum
from tortoise import fields, models
import uuid


class FulfillmentStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"


class FulfillmentTask(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    order_id = fields.UUIDField(unique=True)  # One task per order
    status = fields.CharEnumField(FulfillmentStatus, default=FulfillmentStatus.PENDING)
    payload = fields.JSONField()  # OrderCreated data as received
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "fulfillment_tasks"
