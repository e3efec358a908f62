"""결제 재개 / 취소 유스케이스"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from loguru import logger

from domain.enums import GatewayOrderStatus, PaymentStatus
from domain.exceptions import NotFoundError, ForbiddenError, InvalidStateError, GatewayError
from domain.entities.invoice import PaymentLookup
from domain.entities.user import CustomerEntity
from domain.payment_rules import generate_order_id, normalize_payment_method
from application.ports.invoice_ledger import InvoiceLedger
from application.ports.payment_gateway import (
    PaymentGatewayPort, GatewayOrderRequest, GatewayOrderState,
)
from application.use_cases.settle_payment import SettlePaymentUseCase

ALREADY_PAID = "ALREADY_PAID"
REUSED = "REUSED"
NEW_ORDER = "NEW_ORDER"


async def load_owned(ledger: InvoiceLedger, order_id: str, customer: CustomerEntity) -> PaymentLookup:
    lookup = await ledger.find_by_order_id(order_id)
    if lookup is None:
        raise NotFoundError("결제", order_id)
    if not customer.owns(lookup.invoice.customer_id):
        logger.warning(f"타인 주문 접근 시도: user={customer.id} order={order_id}")
        raise ForbiddenError("본인의 주문만 처리할 수 있습니다.")
    return lookup


@dataclass
class ResumeOutput:
    status: str
    order_id: str
    amount: Decimal
    currency: str
    gateway_session_token: Optional[str] = None


class ResumePaymentUseCase:
    """멈췄거나 만료된 주문을 같은 청구서로 다시 결제할 수 있게 한다"""

    def __init__(self, gateway: PaymentGatewayPort, ledger: InvoiceLedger,
                 settlement: SettlePaymentUseCase):
        self._gateway = gateway
        self._ledger = ledger
        self._settlement = settlement

    async def execute(self, order_id: str, customer: CustomerEntity) -> ResumeOutput:
        lookup = await load_owned(self._ledger, order_id, customer)
        payment = lookup.payment

        # 과거 주문 ID로 호출되어도 결제 레코드의 현재 참조 기준으로 처리
        current_id = payment.payment_reference
        if current_id != order_id:
            logger.info(f"대체된 주문으로 재개 요청: {order_id} → 현재 {current_id}")
            lookup = await self._ledger.find_by_order_id(current_id) or lookup

        if payment.status == PaymentStatus.SUCCESS or lookup.invoice.is_paid:
            return ResumeOutput(status=ALREADY_PAID, order_id=current_id,
                                amount=payment.amount, currency=payment.currency)

        remote = await self._fetch_remote(current_id)
        if remote and remote.order_status == GatewayOrderStatus.PAID.value:
            logger.warning(f"재개 요청 중 게이트웨이 PAID 확인: 로컬 정산: order={current_id}")
            await self._settlement.execute(
                lookup,
                transaction_id=remote.payment_id,
                payment_method=normalize_payment_method(remote.payment_method),
                method_details=remote.payment_method,
                metadata={"source": "resume"},
            )
            return ResumeOutput(status=ALREADY_PAID, order_id=current_id,
                                amount=payment.amount, currency=payment.currency)

        if (remote and remote.order_status == GatewayOrderStatus.ACTIVE.value
                and remote.session_token and payment.status == PaymentStatus.PENDING):
            logger.info(f"활성 세션 재사용: order={current_id}")
            return ResumeOutput(status=REUSED, order_id=current_id,
                                amount=payment.amount, currency=payment.currency,
                                gateway_session_token=remote.session_token)

        # 새 게이트웨이 주문 발급 후 결제 참조 교체
        new_order_id = generate_order_id("RETRY")
        order = await self._gateway.create_order(GatewayOrderRequest(
            order_id=new_order_id,
            amount=payment.amount,
            currency=payment.currency,
            customer=customer,
            metadata={
                "invoiceId": str(lookup.invoice.id),
                "paymentId": str(payment.id),
                "userId": str(customer.id),
                "type": lookup.invoice.scope.value.lower(),
                "retryOf": current_id,
            },
        ))
        await self._ledger.rebind_payment(payment.id, order.order_id, order.session_token)
        logger.info(f"결제 재시도 주문 생성: {current_id} → {order.order_id} invoice={lookup.invoice.id}")
        return ResumeOutput(status=NEW_ORDER, order_id=order.order_id,
                            amount=payment.amount, currency=payment.currency,
                            gateway_session_token=order.session_token)

    async def _fetch_remote(self, order_id: str) -> Optional[GatewayOrderState]:
        try:
            return await self._gateway.get_order_status(order_id)
        except GatewayError as e:
            logger.warning(f"재개 중 게이트웨이 조회 실패: 새 주문 발급으로 진행: {order_id}: {e.message}")
            return None


class CancelPaymentUseCase:
    def __init__(self, ledger: InvoiceLedger):
        self._ledger = ledger

    async def execute(self, order_id: str, customer: CustomerEntity) -> bool:
        lookup = await load_owned(self._ledger, order_id, customer)
        payment = lookup.payment

        if payment.status == PaymentStatus.SUCCESS or lookup.invoice.is_paid:
            raise InvalidStateError("완료된 결제는 취소할 수 없습니다.")
        if payment.status in (PaymentStatus.CANCELLED, PaymentStatus.FAILED):
            logger.info(f"이미 종료된 결제 취소 요청 (무시): order={order_id} {payment.status.value}")
            return True

        await self._ledger.mark_cancelled(lookup.invoice.id, "사용자가 결제를 취소했습니다.")
        logger.info(f"결제 취소: order={order_id} invoice={lookup.invoice.id}")
        return True
