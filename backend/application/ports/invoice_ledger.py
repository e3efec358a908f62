"""청구서 원장 포트: 청구서/결제/결제 시도 기록"""
from abc import ABC, abstractmethod
from typing import Optional, List

from domain.entities.user import CustomerEntity
from domain.entities.pricing import PricingPlanEntity
from domain.entities.invoice import InvoiceEntity, PaymentLookup, PaidDetails
from domain.enums import AttemptStatus


class InvoiceLedger(ABC):
    @abstractmethod
    async def create_invoice(self, customer: CustomerEntity, pricing: PricingPlanEntity,
                             payment_reference: str, payment_gateway: str = "CASHFREE") -> InvoiceEntity:
        """청구서 1건과 PENDING 결제 1건을 원자적으로 생성"""
    @abstractmethod
    async def get_invoice(self, invoice_id: int) -> Optional[InvoiceEntity]: ...
    @abstractmethod
    async def find_by_order_id(self, order_id: str) -> Optional[PaymentLookup]:
        """현재 참조 또는 과거 결제 시도의 주문 ID로 결제 레코드 조회"""
    @abstractmethod
    async def attach_session(self, payment_id: int, order_id: str, session_token: Optional[str]) -> None: ...
    @abstractmethod
    async def rebind_payment(self, payment_id: int, new_order_id: str,
                             session_token: Optional[str]) -> None:
        """재시도: 이전 시도를 대체 처리하고 결제 참조를 새 주문 ID로 교체"""
    @abstractmethod
    async def mark_paid(self, invoice_id: int, details: PaidDetails) -> bool:
        """PAID 전이가 실제로 일어났으면 True, 이미 PAID면 False"""
    @abstractmethod
    async def mark_failed(self, invoice_id: int, reason: str) -> bool: ...
    @abstractmethod
    async def mark_cancelled(self, invoice_id: int, reason: str) -> bool: ...
    @abstractmethod
    async def close_attempt(self, order_id: str, status: AttemptStatus,
                            reason: Optional[str] = None,
                            transaction_id: Optional[str] = None) -> None:
        """PENDING 시도를 종료. SUCCESS 는 재시도로 대체된 시도에도 기록된다"""
    @abstractmethod
    async def list_by_customer(self, customer_id: int) -> List[InvoiceEntity]: ...
