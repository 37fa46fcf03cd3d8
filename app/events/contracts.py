"""
Event payload contracts for the checkout saga.

Every event type has exactly one payload model. Payloads are validated when they
are written to the outbox and again when a consumer reads them off the broker,
so a malformed event never reaches business code. Field names are camelCase on
the wire.
"""
import uuid
from typing import Any, Dict, List, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.core.errors import UnknownEventType


class ContractModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LineItem(ContractModel):
    product_id: str
    name: str
    quantity: int = Field(..., gt=0)
    unit_price: int  # cents
    total_price: int  # cents


class ShippingAddress(ContractModel):
    full_name: str
    address_line1: str
    address_line2: Optional[str] = None
    city: str
    state: str
    postal_code: str
    country: str
    phone: Optional[str] = None


class PaymentRequest(ContractModel):
    amount: int  # cents
    currency: str
    card_number: str
    expiry_date: str
    cvv: str
    cardholder_name: str


class CheckoutOrder(ContractModel):
    id: uuid.UUID
    currency: str
    subtotal: int
    tax: int = 0
    grand_total: int
    items: List[LineItem]
    shipping_address: ShippingAddress
    payment_request: PaymentRequest
    metadata: Dict[str, Any] = Field(default_factory=dict)


# ----------- Event payloads -----------

class CheckoutRequested(ContractModel):
    """Gateway -> Orders: a client asked to place an order."""
    order: CheckoutOrder


class PaymentRequested(ContractModel):
    """Orders -> Payment: charge the card for a freshly created order."""
    order_id: uuid.UUID
    payment_request: PaymentRequest


class OrderCreated(ContractModel):
    """Orders -> Fulfillment and other downstream readers."""
    order_id: uuid.UUID
    status: str
    currency: str
    subtotal: int
    tax: int
    grand_total: int
    items: List[LineItem]
    shipping_address: ShippingAddress


class PaymentResult(ContractModel):
    payment_id: uuid.UUID
    order_id: uuid.UUID
    status: str
    amount: int
    currency: str
    transaction_id: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None


class PaymentCompleted(PaymentResult):
    pass


class PaymentFailed(PaymentResult):
    pass


class OrderStatusEvent(ContractModel):
    order_id: uuid.UUID
    status: str
    payment_id: Optional[uuid.UUID] = None
    transaction_id: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None


class OrderConfirmed(OrderStatusEvent):
    pass


class OrderPaymentFailed(OrderStatusEvent):
    pass


EVENT_PAYLOADS: Dict[str, Type[ContractModel]] = {
    contract.__name__: contract
    for contract in (
        CheckoutRequested,
        PaymentRequested,
        OrderCreated,
        PaymentCompleted,
        PaymentFailed,
        OrderConfirmed,
        OrderPaymentFailed,
    )
}


def contract_for(event_type: str) -> Type[ContractModel]:
    try:
        return EVENT_PAYLOADS[event_type]
    except KeyError:
        raise UnknownEventType(f"No payload contract registered for event type '{event_type}'")


def serialize_payload(event_type: str, payload: Union[ContractModel, Dict[str, Any]]) -> Dict[str, Any]:
    """Validates a payload against its event type and returns the JSON-ready wire form."""
    contract = contract_for(event_type)
    if isinstance(payload, BaseModel):
        if not isinstance(payload, contract):
            raise UnknownEventType(
                f"Payload {type(payload).__name__} does not match event type '{event_type}'"
            )
        model = payload
    else:
        model = contract.model_validate(payload)
    return model.model_dump(mode="json", by_alias=True)


def parse_payload(event_type: str, data: Dict[str, Any]) -> ContractModel:
    return contract_for(event_type).model_validate(data)
