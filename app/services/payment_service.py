import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Optional
from uuid import UUID

from app.events.contracts import PaymentCompleted, PaymentFailed, PaymentRequest
from app.events.outbox_utility import correlation_headers, create_outbox_event
from app.models.payment import PaymentStatus, PaymentTransaction

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class GatewayResult:
    success: bool
    transaction_id: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None


class MockPaymentGateway:
    """
    Simulates an external card processor. The last four digits pick the outcome:
    0000 insufficient funds, 1111 invalid card, 9999 gateway error, anything else succeeds.
    """
    DECLINES = {
        "0000": ("Insufficient funds", "INSUFFICIENT_FUNDS"),
        "1111": ("Invalid card", "INVALID_CARD"),
        "9999": ("Payment gateway temporarily unavailable", "GATEWAY_ERROR"),
    }

    def __init__(self, latency: float = 0.1):
        self.latency = latency

    async def charge(self, request: PaymentRequest) -> GatewayResult:
        await asyncio.sleep(self.latency)
        last4 = request.card_number[-4:]
        log.info(f"Processing payment: last4={last4} amount={request.amount} {request.currency}")

        if last4 in self.DECLINES:
            error, error_code = self.DECLINES[last4]
            return GatewayResult(success=False, error=error, error_code=error_code)

        return GatewayResult(success=True, transaction_id=f"txn_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}")


payment_gateway = MockPaymentGateway()


async def process_payment(
    conn: Any,
    order_id: UUID,
    payment_request: PaymentRequest,
    correlation_id: Optional[str] = None,
    gateway: Optional[MockPaymentGateway] = None,
) -> PaymentTransaction:
    """
    Charges the card, stores the PaymentTransaction and emits PaymentCompleted or
    PaymentFailed in the same transaction. A declined card is a normal outcome, not an error.
    """
    existing = await PaymentTransaction.filter(order_id=order_id).using_db(conn).first()
    if existing:
        # PaymentRequested republished by the outbox arrives at a new offset; never charge twice
        log.warning(f"Order {order_id} already has payment {existing.id} ({existing.status.value}), not charging again.")
        return existing

    result = await (gateway or payment_gateway).charge(payment_request)

    payment = await PaymentTransaction.create(
        order_id=order_id,
        status=PaymentStatus.COMPLETED if result.success else PaymentStatus.FAILED,
        amount=payment_request.amount,
        currency=payment_request.currency,
        transaction_id=result.transaction_id,
        error_message=result.error,
        error_code=result.error_code,
        payment_method={"type": "card", "last4": payment_request.card_number[-4:]},
        using_db=conn,
    )

    payload_type = PaymentCompleted if result.success else PaymentFailed
    await create_outbox_event(
        conn,
        aggregate_type="Payment",
        aggregate_id=payment.id,
        event_type=payload_type.__name__,
        payload=payload_type(
            payment_id=payment.id,
            order_id=order_id,
            status=payment.status.value,
            amount=payment.amount,
            currency=payment.currency,
            transaction_id=payment.transaction_id,
            error=payment.error_message,
            error_code=payment.error_code,
        ),
        headers=correlation_headers(correlation_id),
    )

    log.info(f"Payment {payment.id} processed for order {order_id}: {payload_type.__name__}")
    return payment


async def get_payment_by_id(payment_id: UUID) -> Optional[PaymentTransaction]:
    return await PaymentTransaction.get_or_none(id=payment_id)
