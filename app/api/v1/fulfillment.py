from uuid import UUID

from fastapi import APIRouter

from app.core.errors import NotFoundError
from app.schemas.order import FulfillmentTaskResponse
from app.schemas.response import SuccessResponse
from app.services.fulfillment_service import get_task_by_order_id

router = APIRouter()


@router.get("/{order_id}", response_model=SuccessResponse)
async def get_fulfillment_task_endpoint(order_id: UUID):
    task = await get_task_by_order_id(order_id)
    if not task:
        raise NotFoundError("Fulfillment task", str(order_id))

    data = FulfillmentTaskResponse(
        id=task.id,
        order_id=task.order_id,
        status=task.status,
        created_at=task.created_at,
    ).model_dump(mode="json", by_alias=True)
    return SuccessResponse(data=data)
