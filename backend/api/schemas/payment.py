"""결제 관련 스키마"""
from datetime import datetime
from typing import Optional, List, Dict, Any
from pydantic import Field
from api.schemas.common import CamelModel, ResponseBase
from domain.enums import PurchaseScope


class CreateOrderRequest(CamelModel):
    pricing_id: int
    scope: PurchaseScope


class CreateOrderResponse(ResponseBase):
    order_id: str
    gateway_session_token: Optional[str] = None
    amount: float
    currency: str
    invoice_id: int


class OrderRequest(CamelModel):
    order_id: str = Field(min_length=1, max_length=100)


class OrderStatusResponse(ResponseBase):
    order_id: str
    amount: float
    currency: str
    status: str
    gateway_status: str
    item_name: str


class ResumeResponse(ResponseBase):
    status: str
    order_id: str
    amount: float
    currency: str
    gateway_session_token: Optional[str] = None


class FinalizeResponse(ResponseBase):
    subscription_id: int
    already_existed: bool


class InvoiceItemOut(CamelModel):
    item_type: str
    item_name: str
    item_description: Optional[str] = None
    quantity: int
    unit_price: float
    line_total: float


class PaymentAttemptOut(CamelModel):
    order_id: str
    status: str
    is_retry: bool
    transaction_id: Optional[str] = None
    failure_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class PaymentOut(CamelModel):
    payment_reference: str
    amount: float
    currency: str
    status: str
    payment_method: Optional[str] = None
    gateway_transaction_id: Optional[str] = None
    payment_date: Optional[datetime] = None
    attempts: List[PaymentAttemptOut] = []


class InvoiceOut(CamelModel):
    id: int
    invoice_number: str
    scope: str
    status: str
    status_reason: Optional[str] = None
    subtotal: float
    tax_amount: float
    discount_amount: float
    total_amount: float
    currency: str
    created_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    items: List[InvoiceItemOut] = []
    payments: List[PaymentOut] = []


class PaymentHistoryResponse(ResponseBase):
    items: List[InvoiceOut]
    total: int


class WebhookAck(ResponseBase):
    status: Optional[str] = None
    correlation_id: Optional[str] = None


class ReplayStormRequest(CamelModel):
    event_id: Optional[str] = None
    order_id: Optional[str] = None
    replay_count: int = Field(default=5, ge=1)
    concurrent: bool = True


class ReplayResponse(ResponseBase):
    event_id: str
    result: Dict[str, Any]


class SubscriptionCheck(CamelModel):
    order_id: str
    subscription_count: int
    passed: bool


class ReplayStormResponse(ResponseBase):
    replay_count: int
    concurrent: bool
    elapsed_ms: int
    results: List[Dict[str, Any]]
    subscription_check: SubscriptionCheck
