import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from aiokafka import AIOKafkaConsumer
from aiokafka.errors import KafkaError

from app.consumers.inbox_guard import Delivery, InboxOutcome, record_failure
from app.core.config import HANDLER_MAX_ATTEMPTS, HANDLER_RETRY_DELAY, KAFKA_BROKERS, KAFKA_CLIENT_ID
from app.events.contracts import ContractModel
from app.events.envelope import EventEnvelope

log = logging.getLogger(__name__)

EventHandler = Callable[[ContractModel, EventEnvelope, Delivery], Awaitable[InboxOutcome]]


def _header(record: Any, name: str) -> Optional[str]:
    for key, value in record.headers or ():
        if key == name and value is not None:
            return value.decode("utf-8", errors="replace")
    return None


class EventConsumer:
    """
    Consumes one topic for one consumer group and routes envelopes to handlers by eventType.

    Records of a partition are handled one at a time and the offset is committed only
    after the handler's transaction committed (or the message was parked), so a crash
    means redelivery, never loss.
    """

    def __init__(
        self,
        topic: str,
        group_id: str,
        handlers: Dict[str, EventHandler],
        bootstrap_servers: str = KAFKA_BROKERS,
        client_id: str = KAFKA_CLIENT_ID,
        max_handler_attempts: int = HANDLER_MAX_ATTEMPTS,
        retry_delay: float = HANDLER_RETRY_DELAY,
    ):
        self.topic = topic
        self.group_id = group_id
        self._handlers = handlers
        self._bootstrap_servers = bootstrap_servers
        self._client_id = client_id
        self._max_handler_attempts = max_handler_attempts
        self._retry_delay = retry_delay
        self._consumer: Optional[AIOKafkaConsumer] = None
        self._stopping = asyncio.Event()

    @property
    def is_connected(self) -> bool:
        return self._consumer is not None

    async def start(self) -> bool:
        consumer = AIOKafkaConsumer(
            self.topic,
            bootstrap_servers=self._bootstrap_servers.split(","),
            client_id=f"{self._client_id}-{self.group_id}",
            group_id=self.group_id,
            enable_auto_commit=False,
            auto_offset_reset="earliest",
        )
        try:
            await consumer.start()
        except (KafkaError, OSError) as e:
            log.warning(f"Consumer for {self.topic} (group {self.group_id}) disabled, Kafka not available: {e}")
            await consumer.stop()
            return False

        self._consumer = consumer
        log.info(f"Consumer connected (topic: {self.topic}, group: {self.group_id})")
        return True

    async def run(self) -> None:
        """Polls until stop() is called. The batch in flight is finished before returning."""
        if self._consumer is None:
            return

        while not self._stopping.is_set():
            try:
                await self._poll_once()
            except KafkaError as e:
                # Rebalance or lost connection: uncommitted records come back and the inbox drops repeats
                log.warning(f"Kafka error on {self.topic} (group {self.group_id}), polling again: {e}")
                await asyncio.sleep(self._retry_delay)

    async def _poll_once(self) -> None:
        batch = await self._consumer.getmany(timeout_ms=1000)
        for tp, records in batch.items():
            for record in records:
                try:
                    await self.process_message(record)
                except Exception as e:
                    # Store unreachable or similar: rewind so this record is delivered again
                    log.exception(f"Error processing {tp.topic}/{tp.partition}@{record.offset}: {e}")
                    self._consumer.seek(tp, record.offset)
                    await asyncio.sleep(self._retry_delay)
                    break
                await self._consumer.commit({tp: record.offset + 1})

    async def stop(self) -> None:
        self._stopping.set()

    async def close(self) -> None:
        if self._consumer is not None:
            await self._consumer.stop()
            self._consumer = None
            log.info(f"Consumer for {self.topic} (group {self.group_id}) closed")

    async def process_message(self, record: Any) -> Optional[InboxOutcome]:
        """
        Decodes a broker record and runs the matching handler. Returns None for
        records that are skipped (other event types, malformed envelopes).
        """
        header_type = _header(record, "eventType")
        if header_type is not None and header_type not in self._handlers:
            return None

        if not record.value:
            return None

        try:
            envelope = EventEnvelope.from_bytes(record.value)
            payload = envelope.payload()
        except ValueError as e:
            log.warning(f"Skipping malformed message {record.topic}/{record.partition}@{record.offset}: {e}")
            return None

        handler = self._handlers.get(envelope.event_type)
        if handler is None:
            return None

        delivery = Delivery(
            consumer_group=self.group_id,
            topic=record.topic,
            partition=record.partition,
            offset=record.offset,
            event_type=envelope.event_type,
        )
        return await self._dispatch(handler, payload, envelope, delivery)

    async def _dispatch(
        self, handler: EventHandler, payload: ContractModel, envelope: EventEnvelope, delivery: Delivery
    ) -> Optional[InboxOutcome]:
        attempt = 1
        while True:
            try:
                outcome = await handler(payload, envelope, delivery)
                log.info(f"{envelope.event_type} {envelope.event_id} from {delivery}: {outcome.value}")
                return outcome
            except Exception as e:
                if attempt >= self._max_handler_attempts:
                    await record_failure(delivery, e)
                    return None
                delay = self._retry_delay * 2 ** (attempt - 1)
                log.warning(
                    f"Handler for {envelope.event_type} failed on attempt {attempt}/{self._max_handler_attempts}, "
                    f"retrying in {delay}s: {e}"
                )
                attempt += 1
                await asyncio.sleep(delay)
