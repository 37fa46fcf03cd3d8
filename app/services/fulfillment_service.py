import logging
from typing import Any, Optional
from uuid import UUID

from app.events.contracts import OrderCreated
from app.models.fulfillment import FulfillmentStatus, FulfillmentTask

log = logging.getLogger(__name__)


async def create_task(conn: Any, order_created: OrderCreated) -> FulfillmentTask:
    """Creates the PENDING fulfillment task for a new order (one per order)."""
    existing = await FulfillmentTask.get_or_none(order_id=order_created.order_id).using_db(conn)
    if existing:
        log.info(f"Fulfillment task for order {order_created.order_id} already exists.")
        return existing

    task = await FulfillmentTask.create(
        order_id=order_created.order_id,
        status=FulfillmentStatus.PENDING,
        payload=order_created.model_dump(mode="json", by_alias=True),
        using_db=conn,
    )
    log.info(f"Fulfillment task {task.id} created for order {order_created.order_id}")
    return task


async def get_task_by_order_id(order_id: UUID) -> Optional[FulfillmentTask]:
    return await FulfillmentTask.get_or_none(order_id=order_id)
