"""
Consumer inbox: the dedup gate for broker messages.

An InboxRecord keyed by (consumer group, topic, partition, offset) is inserted in
the same transaction as the side effects of handling the message. Its existence is
proof of processing, so a redelivered message is skipped, and a crash before commit
leaves neither the record nor the side effects behind.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from tortoise.exceptions import IntegrityError
from tortoise.transactions import in_transaction

from app.core.errors import DuplicateDelivery
from app.models.inbox import InboxRecord, InboxStatus

log = logging.getLogger(__name__)

BusinessFn = Callable[[Any], Awaitable[None]]


class InboxOutcome(str, Enum):
    PROCESSED = "PROCESSED"
    ALREADY_PROCESSED = "ALREADY_PROCESSED"


@dataclass(frozen=True)
class Delivery:
    """Broker coordinates of one consumed message."""
    consumer_group: str
    topic: str
    partition: int
    offset: int
    event_type: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.consumer_group}/{self.topic}/{self.partition}@{self.offset}"


async def _is_recorded(conn: Any, consumer_group: str, topic: str, partition: int, offset: int) -> bool:
    return await InboxRecord.filter(
        consumer_group=consumer_group, topic=topic, partition=partition, offset=offset
    ).using_db(conn).exists()


async def handle(
    conn: Any,
    consumer_group: str,
    topic: str,
    partition: int,
    offset: int,
    business_fn: BusinessFn,
    event_type: Optional[str] = None,
) -> InboxOutcome:
    """
    Runs business_fn(conn) at most once per message, inside the caller's transaction.

    Returns ALREADY_PROCESSED without calling business_fn when the message has an
    inbox row. Raises DuplicateDelivery if a concurrent consumer inserted the row
    first; the caller must then roll back. Exceptions from business_fn propagate so
    the transaction, inbox row included, rolls back and the message is redelivered.
    """
    if await _is_recorded(conn, consumer_group, topic, partition, offset):
        log.info(f"Duplicate delivery {consumer_group}/{topic}/{partition}@{offset} skipped.")
        return InboxOutcome.ALREADY_PROCESSED

    try:
        await InboxRecord.create(
            consumer_group=consumer_group,
            topic=topic,
            partition=partition,
            offset=offset,
            event_type=event_type,
            status=InboxStatus.PROCESSED,
            using_db=conn,
        )
    except IntegrityError:
        raise DuplicateDelivery(consumer_group, topic, partition, offset)

    await business_fn(conn)
    return InboxOutcome.PROCESSED


async def consume(delivery: Delivery, business_fn: BusinessFn) -> InboxOutcome:
    """Opens the transaction for one message and runs it through the inbox gate."""
    try:
        async with in_transaction() as conn:
            return await handle(
                conn,
                delivery.consumer_group,
                delivery.topic,
                delivery.partition,
                delivery.offset,
                business_fn,
                event_type=delivery.event_type,
            )
    except DuplicateDelivery as e:
        log.info(f"Inbox insert lost a race, treating as processed: {e}")
        return InboxOutcome.ALREADY_PROCESSED


async def record_failure(delivery: Delivery, error: BaseException) -> bool:
    """
    Parks a message whose handler keeps failing as a FAILED inbox row.
    The row blocks further redelivery until an operator deletes it.
    """
    try:
        await InboxRecord.create(
            consumer_group=delivery.consumer_group,
            topic=delivery.topic,
            partition=delivery.partition,
            offset=delivery.offset,
            event_type=delivery.event_type,
            status=InboxStatus.FAILED,
            last_error=f"{type(error).__name__}: {error}",
        )
    except IntegrityError:
        log.warning(f"Message {delivery} already has an inbox row, not parking it.")
        return False

    log.error(f"Message {delivery} parked as FAILED after repeated handler errors: {error}")
    return True
