from datetime import datetime
from typing import Any, Dict, List, Optional
import uuid

from app.models.fulfillment import FulfillmentStatus
from app.models.order import OrderStatus
from app.models.payment import PaymentStatus
from app.schemas.checkout import CamelModel


class OrderItemResponse(CamelModel):
    """Schema for an item inside the detailed order response."""
    product_id: str
    name: str
    quantity: int
    unit_price: int
    total_price: int


class OrderDetailResponse(CamelModel):
    """Schema for fetching detailed order information. Amounts are in cents."""
    id: uuid.UUID
    status: OrderStatus
    currency: str
    subtotal: int
    tax: int
    grand_total: int
    payment_id: Optional[uuid.UUID] = None
    payment_transaction_id: Optional[str] = None
    shipping_address: Optional[Dict[str, Any]] = None
    metadata: Dict[str, Any] = {}
    items: List[OrderItemResponse]
    created_at: datetime
    updated_at: datetime


class PaymentDetailResponse(CamelModel):
    id: uuid.UUID
    order_id: uuid.UUID
    status: PaymentStatus
    amount: int
    currency: str
    transaction_id: Optional[str] = None
    error_message: Optional[str] = None
    error_code: Optional[str] = None
    created_at: datetime


class FulfillmentTaskResponse(CamelModel):
    id: uuid.UUID
    order_id: uuid.UUID
    status: FulfillmentStatus
    created_at: datetime
