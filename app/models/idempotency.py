from enum import Enum
from tortoise import fields, models
import uuid


class IdempotencyStatus(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"  # Lock held by the request currently executing
    COMPLETED = "COMPLETED"      # Response stored, replayed on retries
    FAILED = "FAILED"            # Request failed, the key may be retried


class IdempotencyRecord(models.Model):
    """
    One row per (idempotency key, scope). The stored response is replayed for
    retries of a completed request; rows expire after a fixed TTL regardless of status.
    """
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    idem_key = fields.CharField(max_length=255)
    scope = fields.CharField(max_length=100)  # e.g. 'POST:/api/v1/checkout/payment'
    request_hash = fields.CharField(max_length=64)  # SHA-256 of the normalized request body
    status = fields.CharEnumField(IdempotencyStatus, default=IdempotencyStatus.IN_PROGRESS)
    response_code = fields.IntField(null=True)
    response_body = fields.JSONField(null=True)
    locked_at = fields.DatetimeField(null=True)
    expires_at = fields.DatetimeField()
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "idempotency_keys"
        unique_together = (("idem_key", "scope"),)
        indexes = [
            ("expires_at",),  # Retention sweeps
        ]
