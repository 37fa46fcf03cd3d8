import logging
from typing import Optional

from asgi_correlation_id.context import correlation_id
from fastapi import APIRouter, Header, status
from fastapi.responses import JSONResponse

from app.core.config import CHECKOUT_SCOPE
from app.core.errors import MissingIdempotencyKey, RequestInProgress
from app.schemas.checkout import CheckoutRequest
from app.schemas.response import SuccessResponse
from app.services import idempotency_service
from app.services.checkout_service import submit_checkout

router = APIRouter()
log = logging.getLogger("uvicorn")


@router.post("/payment", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def checkout_payment_endpoint(
    request_data: CheckoutRequest,
    idempotency_key: Optional[str] = Header(default=None),
):
    """
    Accepts a checkout. The order is created asynchronously, so the response carries
    status PENDING_PAYMENT. Retrying with the same Idempotency-Key and body replays
    the original response.
    """
    if not idempotency_key:
        raise MissingIdempotencyKey()

    payload = request_data.model_dump(mode="json", by_alias=True)
    # Raises IdempotencyConflict when the key was used with another body
    check = await idempotency_service.check_or_create(idempotency_key, CHECKOUT_SCOPE, payload)

    if check.stored_response is not None:
        log.info(f"Replaying stored response for idempotency key {idempotency_key}")
        return JSONResponse(
            status_code=check.stored_response.status_code,
            content={**check.stored_response.body, "replayed": True},
        )

    if not check.is_new:
        raise RequestInProgress()

    try:
        result = await submit_checkout(request_data, correlation_id=correlation_id.get())
    except Exception as e:
        log.error(f"Checkout failed for idempotency key {idempotency_key}: {e}")
        # Releases the key so the client can retry with the same body
        await idempotency_service.mark_failed(idempotency_key, CHECKOUT_SCOPE)
        raise

    body = SuccessResponse(data=result.model_dump(mode="json", by_alias=True)).model_dump(mode="json")
    await idempotency_service.mark_completed(idempotency_key, CHECKOUT_SCOPE, status.HTTP_201_CREATED, body)
    log.info(f"Checkout accepted for order {result.order_id}")
    return JSONResponse(status_code=status.HTTP_201_CREATED, content=body)
