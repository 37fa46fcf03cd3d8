import logging
from typing import List, Optional, Tuple

from aiokafka import AIOKafkaProducer
from aiokafka.errors import KafkaError

from app.core.config import KAFKA_BROKERS, KAFKA_CLIENT_ID

log = logging.getLogger(__name__)


class KafkaBroker:
    """
    Process-lifetime producer connection. Built once at startup, injected into the
    outbox publisher and closed on shutdown. A failed connect leaves the broker
    disconnected instead of raising, so the service keeps running without it.
    """

    def __init__(self, bootstrap_servers: str = KAFKA_BROKERS, client_id: str = KAFKA_CLIENT_ID):
        self._bootstrap_servers = bootstrap_servers
        self._client_id = client_id
        self._producer: Optional[AIOKafkaProducer] = None

    @property
    def is_connected(self) -> bool:
        return self._producer is not None

    async def connect(self) -> bool:
        if self._producer is not None:
            return True

        producer = AIOKafkaProducer(
            bootstrap_servers=self._bootstrap_servers.split(","),
            client_id=self._client_id,
            acks="all",
        )
        try:
            await producer.start()
        except (KafkaError, OSError) as e:
            log.warning(f"Could not connect to Kafka at {self._bootstrap_servers}: {e}")
            await producer.stop()
            return False

        self._producer = producer
        log.info(f"Kafka producer '{self._client_id}' connected to {self._bootstrap_servers}")
        return True

    async def send(self, topic: str, key: str, value: bytes, headers: List[Tuple[str, bytes]]) -> None:
        if self._producer is None:
            raise ConnectionError("Kafka producer not connected")
        await self._producer.send_and_wait(
            topic,
            value=value,
            key=key.encode("utf-8"),
            headers=headers,
        )

    async def close(self) -> None:
        if self._producer is not None:
            await self._producer.stop()
            self._producer = None
            log.info(f"Kafka producer '{self._client_id}' disconnected")
