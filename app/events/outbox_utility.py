import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, Optional, Union
from uuid import UUID

from app.events.contracts import ContractModel, serialize_payload
from app.models.outbox import OutboxEvent, OutboxStatus

log = logging.getLogger(__name__)


def correlation_headers(correlation_id: Optional[str]) -> Dict[str, Any]:
    return {"correlationId": correlation_id}


async def create_outbox_event(
    conn: Any,
    aggregate_type: str,
    aggregate_id: Union[str, UUID],
    event_type: str,
    payload: Union[ContractModel, Dict[str, Any]],
    headers: Optional[Dict[str, Any]] = None,
    event_version: int = 1,
) -> UUID:
    """
    Creates a new Outbox event record using the provided database connection (transaction).

    CRITICAL: Passing 'conn' ensures the event is created atomically with the business data.
    If the surrounding transaction rolls back, the event never exists.
    """
    if conn is None:
        raise ValueError("Outbox events must be written inside the business transaction.")

    event = await OutboxEvent.create(
        aggregate_type=aggregate_type,
        aggregate_id=str(aggregate_id),
        event_type=event_type,
        event_version=event_version,
        payload=serialize_payload(event_type, payload),
        headers=headers,
        status=OutboxStatus.PENDING,
        available_at=datetime.now(timezone.utc),
        attempts=0,
        using_db=conn,
    )
    log.debug(f"Outbox event {event.id} ({event_type}) appended for {aggregate_type}:{aggregate_id}")
    return event.id


async def requeue_failed(event_ids: Optional[Iterable[UUID]] = None) -> int:
    """Manual intervention: moves FAILED events back to PENDING with a fresh retry budget."""
    query = OutboxEvent.filter(status=OutboxStatus.FAILED)
    if event_ids is not None:
        query = query.filter(id__in=list(event_ids))
    count = await query.update(
        status=OutboxStatus.PENDING,
        attempts=0,
        available_at=datetime.now(timezone.utc),
    )
    log.info(f"Requeued {count} FAILED outbox events.")
    return count


async def purge_published(older_than: timedelta) -> int:
    """Out-of-band retention: deletes events published before now - older_than."""
    cutoff = datetime.now(timezone.utc) - older_than
    count = await OutboxEvent.filter(status=OutboxStatus.PUBLISHED, published_at__lt=cutoff).delete()
    log.info(f"Purged {count} published outbox events older than {cutoff.isoformat()}.")
    return count
