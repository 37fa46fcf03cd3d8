from datetime import datetime
from typing import Optional
import uuid

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.models.order import OrderStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ShippingAddressRequest(CamelModel):
    """Shipping address as entered on the checkout form."""
    full_name: str = Field(..., min_length=1)
    street_address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state_province: str = Field(..., min_length=1)
    postal_code: str = Field(..., min_length=1)
    country: str = Field(..., min_length=2, max_length=2, description="ISO 3166-1 alpha-2 code.")


class PaymentDetailsRequest(CamelModel):
    card_number: str = Field(..., min_length=4, description="Card number is required")
    expiry_date: str = Field(..., min_length=1, description="Expiry date is required")
    cvv: str = Field(..., min_length=1, description="CVV is required")
    cardholder_name: str = Field(..., min_length=1, description="Cardholder name is required")


class CheckoutRequest(CamelModel):
    """Schema for the checkout payment request body."""
    shipping_address: ShippingAddressRequest
    payment_details: PaymentDetailsRequest
    metadata: Optional[str] = None


class CheckoutResponse(CamelModel):
    """Response schema for an accepted checkout (201 Created, order still PENDING_PAYMENT)."""
    order_id: uuid.UUID
    status: OrderStatus
    message: str
    grand_total: int
    currency: str
    created_at: datetime
