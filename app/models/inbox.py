from enum import Enum
from tortoise import fields, models
import uuid


class InboxStatus(str, Enum):
    PROCESSED = "PROCESSED"
    FAILED = "FAILED"  # Handler kept failing, message parked for inspection


class InboxRecord(models.Model):
    """
    Table used for Idempotency in Consumers. One row per consumed broker message,
    inserted in the same transaction as the side effects of handling it.
    """
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    consumer_group = fields.CharField(max_length=200)
    topic = fields.CharField(max_length=200)
    partition = fields.IntField()
    offset = fields.BigIntField()
    event_type = fields.CharField(max_length=100, null=True)
    status = fields.CharEnumField(InboxStatus, default=InboxStatus.PROCESSED)
    last_error = fields.TextField(null=True)
    processed_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "consumer_inbox"
        unique_together = (("consumer_group", "topic", "partition", "offset"),)
        indexes = [
            ("status",),
        ]
