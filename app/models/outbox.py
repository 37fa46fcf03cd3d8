from enum import Enum
from tortoise import fields, models
import uuid


class OutboxStatus(str, Enum):
    PENDING = "PENDING"      # Waiting for the publisher (possibly in backoff)
    PUBLISHED = "PUBLISHED"  # Acknowledged by the broker
    FAILED = "FAILED"        # Retries exhausted, needs manual intervention


class OutboxEvent(models.Model):
    """
    The Outbox table stores events atomically with the database transaction.
    This is the core of the Transactional Outbox Pattern.
    """
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    aggregate_type = fields.CharField(max_length=100) # e.g., 'Order', 'Payment'
    aggregate_id = fields.CharField(max_length=64) # Broker message key
    event_type = fields.CharField(max_length=100) # e.g., 'OrderCreated'
    event_version = fields.IntField(default=1)
    payload = fields.JSONField() # The actual event data
    headers = fields.JSONField(null=True) # Carries the correlationId
    status = fields.CharEnumField(OutboxStatus, default=OutboxStatus.PENDING)
    available_at = fields.DatetimeField() # Not published before this instant (backoff)
    attempts = fields.IntField(default=0)
    last_error = fields.TextField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)
    published_at = fields.DatetimeField(null=True)

    class Meta:
        table = "outbox_events"
        indexes = [
            ("status", "available_at", "created_at"),  # Publisher poll
            ("aggregate_type", "aggregate_id"),
        ]
