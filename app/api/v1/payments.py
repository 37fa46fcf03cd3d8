from uuid import UUID

from fastapi import APIRouter

from app.core.errors import NotFoundError
from app.schemas.order import PaymentDetailResponse
from app.schemas.response import SuccessResponse
from app.services.payment_service import get_payment_by_id

router = APIRouter()


@router.get("/{payment_id}", response_model=SuccessResponse)
async def get_payment_endpoint(payment_id: UUID):
    """Fetches a payment transaction and its gateway result."""
    payment = await get_payment_by_id(payment_id)
    if not payment:
        raise NotFoundError("Payment", str(payment_id))

    data = PaymentDetailResponse(
        id=payment.id,
        order_id=payment.order_id,
        status=payment.status,
        amount=payment.amount,
        currency=payment.currency,
        transaction_id=payment.transaction_id,
        error_message=payment.error_message,
        error_code=payment.error_code,
        created_at=payment.created_at,
    ).model_dump(mode="json", by_alias=True)
    return SuccessResponse(data=data)
