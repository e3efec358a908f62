"""청구서/결제 도메인 엔티티"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Dict, Any

from domain.enums import (
    PurchaseScope, InvoiceStatus, PaymentStatus, AttemptStatus, PaymentMethod,
)


@dataclass
class InvoiceItemEntity:
    id: int
    item_type: PurchaseScope
    item_name: str
    item_description: Optional[str] = None
    course_id: Optional[int] = None
    subject_id: Optional[int] = None
    quantity: int = 1
    unit_price: Decimal = Decimal("0")
    line_total: Decimal = Decimal("0")


@dataclass
class PaymentAttemptEntity:
    """게이트웨이 주문 1건. 대체된 시도의 결제 완료 외에는 종료 후 변경되지 않는다."""
    id: int
    payment_id: int
    order_id: str
    status: AttemptStatus
    session_token: Optional[str] = None
    is_retry: bool = False
    transaction_id: Optional[str] = None
    failure_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


@dataclass
class PaymentEntity:
    id: int
    invoice_id: int
    payment_reference: str
    amount: Decimal
    currency: str
    status: PaymentStatus
    gateway_session_token: Optional[str] = None
    gateway_transaction_id: Optional[str] = None
    paid_order_id: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None
    payment_method_details: Optional[Dict[str, Any]] = None
    payment_date: Optional[datetime] = None
    attempts: List[PaymentAttemptEntity] = field(default_factory=list)


@dataclass
class InvoiceEntity:
    id: int
    invoice_number: str
    customer_id: int
    scope: PurchaseScope
    total_amount: Decimal
    currency: str
    status: InvoiceStatus
    org_id: Optional[int] = None
    course_id: Optional[int] = None
    subject_id: Optional[int] = None
    pricing_id: Optional[int] = None
    subtotal: Decimal = Decimal("0")
    tax_amount: Decimal = Decimal("0")
    discount_amount: Decimal = Decimal("0")
    status_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    items: List[InvoiceItemEntity] = field(default_factory=list)
    payments: List[PaymentEntity] = field(default_factory=list)

    @property
    def is_paid(self) -> bool:
        return self.status == InvoiceStatus.PAID

    @property
    def item_name(self) -> str:
        if not self.items:
            return "Subscription"
        item = self.items[0]
        return item.item_name or item.item_description or "Subscription"


@dataclass
class PaymentLookup:
    """게이트웨이 주문 ID로 찾은 로컬 결제 레코드 묶음"""
    order_id: str
    invoice: InvoiceEntity
    payment: PaymentEntity
    attempt: Optional[PaymentAttemptEntity] = None

    @property
    def is_current(self) -> bool:
        """주문 ID가 결제 레코드의 현재 참조인지 (재시도로 대체되지 않았는지)"""
        return self.payment.payment_reference == self.order_id


@dataclass
class PaidDetails:
    """청구서 결제 완료 처리에 필요한 게이트웨이 정보"""
    order_id: str
    transaction_id: Optional[str] = None
    payment_method: PaymentMethod = PaymentMethod.OTHER
    method_details: Optional[Dict[str, Any]] = None
    metadata: Optional[Dict[str, Any]] = None
