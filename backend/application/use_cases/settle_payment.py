"""결제 정산: 청구서 PAID 처리 후 구독 부여

webhook, 주문 상태 조회(자가 복구), 결제 재개, 구독 확정 경로가 모두 이 유스케이스를
거친다. 모든 단계가 멱등이므로 같은 결제에 대해 여러 번 호출해도 안전하다.
"""
from dataclasses import dataclass
from typing import Optional, Dict, Any

from loguru import logger

from domain.enums import PaymentMethod
from domain.exceptions import AlreadySubscribedError
from domain.entities.invoice import PaymentLookup, PaidDetails
from domain.entities.subscription import SubscriptionEntity
from application.ports.invoice_ledger import InvoiceLedger
from application.use_cases.grant_subscription import GrantSubscriptionUseCase, GrantInput


@dataclass
class SettlementResult:
    invoice_transitioned: bool
    subscription: Optional[SubscriptionEntity] = None
    subscription_created: bool = False
    duplicate_payment: bool = False


class SettlePaymentUseCase:
    def __init__(self, ledger: InvoiceLedger, grant: GrantSubscriptionUseCase):
        self._ledger = ledger
        self._grant = grant

    async def execute(self, lookup: PaymentLookup, transaction_id: Optional[str],
                      payment_method: PaymentMethod = PaymentMethod.OTHER,
                      method_details: Optional[Dict[str, Any]] = None,
                      metadata: Optional[Dict[str, Any]] = None) -> SettlementResult:
        invoice = lookup.invoice

        transitioned = await self._ledger.mark_paid(invoice.id, PaidDetails(
            order_id=lookup.order_id,
            transaction_id=transaction_id,
            payment_method=payment_method,
            method_details=method_details,
            metadata=metadata,
        ))

        if not transitioned:
            paid_by = await self._paid_order_id(lookup)
            if paid_by and paid_by != lookup.order_id:
                # 같은 청구서가 다른 주문(재시도 전후)으로 이미 결제됨
                logger.error(f"중복 결제 감지: invoice={invoice.id} order={lookup.order_id} tx={transaction_id} "
                             f"(결제 완료 주문 {paid_by}): 수동 환불 필요")
                return SettlementResult(invoice_transitioned=False, duplicate_payment=True)

        try:
            granted = await self._grant.execute(GrantInput(
                user_id=invoice.customer_id,
                org_id=invoice.org_id,
                scope=invoice.scope,
                course_id=invoice.course_id,
                subject_id=invoice.subject_id,
                pricing_id=invoice.pricing_id,
                invoice_id=invoice.id,
                amount=invoice.total_amount,
                gateway_order_id=lookup.order_id,
                transaction_id=transaction_id,
                payment_method=payment_method,
            ))
        except AlreadySubscribedError:
            # 구매 전 검사와 구독 부여는 원자적이지 않다: 감지하고 기록만 한다
            logger.warning(f"동시 구매로 인한 중복 활성 구독 시도: invoice={invoice.id} "
                           f"user={invoice.customer_id}")
            return SettlementResult(invoice_transitioned=transitioned)

        return SettlementResult(
            invoice_transitioned=transitioned,
            subscription=granted.subscription,
            subscription_created=granted.created,
        )

    async def _paid_order_id(self, lookup: PaymentLookup) -> Optional[str]:
        current = await self._ledger.find_by_order_id(lookup.order_id)
        return (current or lookup).payment.paid_order_id
