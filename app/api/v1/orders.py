import logging
from uuid import UUID

from fastapi import APIRouter

from app.core.errors import NotFoundError
from app.schemas.order import OrderDetailResponse, OrderItemResponse
from app.schemas.response import SuccessResponse
from app.services.order_service import get_order_by_id

router = APIRouter()
log = logging.getLogger("uvicorn")


@router.get("/{order_id}", response_model=SuccessResponse)
async def get_order_endpoint(order_id: UUID):
    """Fetches details for a specific order, including its saga status."""
    order = await get_order_by_id(order_id)
    if not order:
        raise NotFoundError("Order", str(order_id))

    data = OrderDetailResponse(
        id=order.id,
        status=order.status,
        currency=order.currency,
        subtotal=order.subtotal,
        tax=order.tax,
        grand_total=order.grand_total,
        payment_id=order.payment_id,
        payment_transaction_id=order.payment_transaction_id,
        shipping_address=order.shipping_address,
        metadata=order.metadata,
        items=[
            OrderItemResponse(
                product_id=i.product_id,
                name=i.name,
                quantity=i.quantity,
                unit_price=i.unit_price,
                total_price=i.total_price,
            )
            for i in order.items
        ],
        created_at=order.created_at,
        updated_at=order.updated_at,
    ).model_dump(mode="json", by_alias=True)
    return SuccessResponse(data=data)
