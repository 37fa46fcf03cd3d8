import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Set

from app.core.config import BACKOFF_BASE_SECONDS, BATCH_SIZE, MAX_ATTEMPTS, POLLING_INTERVAL, SERVICE_NAME
from app.events.envelope import EventEnvelope, message_headers
from app.events.topics import topic_for
from app.models.outbox import OutboxEvent, OutboxStatus

log = logging.getLogger(__name__)


def backoff_delay(attempts: int, base_seconds: float = BACKOFF_BASE_SECONDS) -> timedelta:
    """Delay before the next publish attempt: 2^attempts * base."""
    return timedelta(seconds=(2 ** attempts) * base_seconds)


class OutboxPublisher:
    """
    Polls the outbox for PENDING events and publishes them to the broker.

    One publisher runs per service instance. Events are never lost here: a failed
    publish leaves the row PENDING with a later available_at, or FAILED once the
    retry budget is spent.
    """

    def __init__(
        self,
        broker: Any,
        source: str = SERVICE_NAME,
        batch_size: int = BATCH_SIZE,
        max_attempts: int = MAX_ATTEMPTS,
        backoff_base: float = BACKOFF_BASE_SECONDS,
        poll_interval: float = POLLING_INTERVAL,
    ):
        self._broker = broker
        self._source = source
        self._batch_size = batch_size
        self._max_attempts = max_attempts
        self._backoff_base = backoff_base
        self._poll_interval = poll_interval
        self._stopping = asyncio.Event()
        self._warned_disconnected = False

    @property
    def is_enabled(self) -> bool:
        return self._broker.is_connected

    async def start(self) -> bool:
        """Connects the broker. An unreachable broker disables publishing instead of failing the service."""
        if await self._broker.connect():
            log.info(f"Outbox publisher for '{self._source}' connected")
            return True
        log.warning("Outbox publishing disabled - events will remain in PENDING state until the broker is reachable")
        self._warned_disconnected = True
        return False

    async def _ensure_connected(self) -> bool:
        if self._broker.is_connected:
            return True
        if await self._broker.connect():
            log.info("Broker reachable again, resuming outbox publishing")
            self._warned_disconnected = False
            return True
        if not self._warned_disconnected:
            log.warning("Broker unreachable, outbox publishing paused")
            self._warned_disconnected = True
        return False

    async def publish_pending(self) -> int:
        """
        Publishes one batch of due events, oldest first. Returns the number published.
        """
        if not await self._ensure_connected():
            return 0

        now = datetime.now(timezone.utc)
        events = await OutboxEvent.filter(
            status=OutboxStatus.PENDING, available_at__lte=now
        ).order_by("created_at").limit(self._batch_size)

        if not events:
            return 0

        published = 0
        blocked_aggregates: Set[str] = set()
        for event in events:
            # Keep per-aggregate order: nothing after a failed event of the same aggregate goes out in this poll
            if event.aggregate_id in blocked_aggregates:
                continue
            if await self._publish_event(event):
                published += 1
            else:
                blocked_aggregates.add(event.aggregate_id)
        return published

    async def _publish_event(self, event: OutboxEvent) -> bool:
        try:
            topic = topic_for(event.event_type)
            envelope = EventEnvelope.from_outbox(event, self._source)
            await self._broker.send(
                topic,
                key=event.aggregate_id,
                value=envelope.to_bytes(),
                headers=message_headers(event),
            )
        except Exception as e:
            await self._record_failure(event, e)
            return False

        event.status = OutboxStatus.PUBLISHED
        event.published_at = datetime.now(timezone.utc)
        await event.save(update_fields=["status", "published_at"])
        log.info(f"Published {event.event_type} to {topic} ({event.id})")
        return True

    async def _record_failure(self, event: OutboxEvent, error: Exception) -> None:
        event.attempts += 1
        event.last_error = f"{type(error).__name__}: {error}"

        if event.attempts >= self._max_attempts:
            event.status = OutboxStatus.FAILED
            log.error(f"Event {event.id} ({event.event_type}) FAILED after {event.attempts} attempts: {error}")
        else:
            event.available_at = datetime.now(timezone.utc) + backoff_delay(event.attempts, self._backoff_base)
            log.warning(
                f"Publish of event {event.id} failed (attempt {event.attempts}/{self._max_attempts}), "
                f"retrying at {event.available_at.isoformat()}: {error}"
            )

        await event.save(update_fields=["attempts", "last_error", "status", "available_at"])

    async def run(self) -> None:
        """Main loop for the publisher. Returns after stop(), once the current batch is done."""
        log.info(f"--- Outbox Publisher '{self._source}' Started ---")
        while not self._stopping.is_set():
            try:
                await self.publish_pending()
            except Exception as e:
                log.exception(f"Publisher encountered a critical DB error: {e}.")

            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self._poll_interval)
            except asyncio.TimeoutError:
                pass
        log.info(f"--- Outbox Publisher '{self._source}' Stopped ---")

    async def stop(self) -> None:
        self._stopping.set()
