"""
Worker entrypoint: python -m app.service_runner <orders|payment|fulfillment>

Runs the role's outbox publisher plus one consumer task per subscribed topic until
SIGINT or SIGTERM. The gateway role is the FastAPI app (uvicorn app.main:app).
"""
import argparse
import asyncio
import logging
import signal
from typing import Dict, List, Tuple

from app.consumers import fulfillment_consumer, orders_consumer, payment_consumer
from app.consumers.outbox_poller import OutboxPublisher
from app.core.config import (
    FULFILLMENT_GROUP,
    ORDERS_CHECKOUT_GROUP,
    ORDERS_PAYMENT_GROUP,
    PAYMENT_GROUP,
)
from app.core.db import close_db, init_db
from app.events.topics import (
    TOPIC_CHECKOUT_REQUESTS,
    TOPIC_ORDER_EVENTS,
    TOPIC_PAYMENT_EVENTS,
    TOPIC_PAYMENT_REQUESTS,
)
from app.messaging.broker import KafkaBroker
from app.messaging.consumer import EventConsumer

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
log = logging.getLogger("service_runner")

# role -> [(topic, consumer group, handlers)]
ROLES: Dict[str, List[Tuple[str, str, dict]]] = {
    "orders": [
        (TOPIC_CHECKOUT_REQUESTS, ORDERS_CHECKOUT_GROUP, orders_consumer.CHECKOUT_HANDLERS),
        (TOPIC_PAYMENT_EVENTS, ORDERS_PAYMENT_GROUP, orders_consumer.PAYMENT_RESULT_HANDLERS),
    ],
    "payment": [
        (TOPIC_PAYMENT_REQUESTS, PAYMENT_GROUP, payment_consumer.HANDLERS),
    ],
    "fulfillment": [
        (TOPIC_ORDER_EVENTS, FULFILLMENT_GROUP, fulfillment_consumer.HANDLERS),
    ],
}


def build_consumers(role: str) -> List[EventConsumer]:
    if role not in ROLES:
        raise ValueError(f"Unknown role '{role}', expected one of {sorted(ROLES)}")
    return [EventConsumer(topic, group, handlers) for topic, group, handlers in ROLES[role]]


async def run_role(role: str) -> None:
    consumers = build_consumers(role)
    await init_db()

    broker = KafkaBroker()
    publisher = OutboxPublisher(broker, source=f"{role}-service")
    await publisher.start()

    started = [consumer for consumer in consumers if await consumer.start()]
    if len(started) < len(consumers):
        log.warning(f"{role}: {len(consumers) - len(started)} consumer(s) disabled, Kafka not available")

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    tasks = [asyncio.create_task(publisher.run())]
    tasks += [asyncio.create_task(consumer.run()) for consumer in started]
    log.info(f"--- {role} service running ({len(started)} consumer(s)) ---")

    await stop_event.wait()
    log.info(f"Shutting down {role} service...")

    await publisher.stop()
    for consumer in started:
        await consumer.stop()
    await asyncio.gather(*tasks, return_exceptions=True)

    for consumer in started:
        await consumer.close()
    await broker.close()
    await close_db()
    log.info(f"{role} service stopped.")


def main() -> None:
    parser = argparse.ArgumentParser(description="Run a checkout saga worker role.")
    parser.add_argument("role", choices=sorted(ROLES))
    args = parser.parse_args()
    asyncio.run(run_role(args.role))


if __name__ == "__main__":
    main()
