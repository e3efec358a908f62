"""주문 상태 조회 유스케이스

게이트웨이 실시간 상태와 로컬 원장 상태를 합쳐 "지금 이 주문의 실제 상태"를 답한다.
게이트웨이는 PAID 인데 로컬이 아직 PAID 가 아니면 (webhook 유실) 이 자리에서 정산한다.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from loguru import logger

from domain.enums import GatewayOrderStatus, OrderResolution, AttemptStatus
from domain.exceptions import NotFoundError, ForbiddenError, GatewayError
from domain.entities.invoice import PaymentLookup
from domain.entities.user import CustomerEntity
from domain.payment_rules import (
    resolve_order_status, attempt_as_payment_status, normalize_payment_method,
)
from application.ports.invoice_ledger import InvoiceLedger
from application.ports.payment_gateway import PaymentGatewayPort, GatewayOrderState
from application.ports.transaction import TransactionManager
from application.use_cases.settle_payment import SettlePaymentUseCase


@dataclass
class OrderStatusOutput:
    order_id: str
    amount: Decimal
    currency: str
    status: OrderResolution
    gateway_status: str
    item_name: str


class ResolveOrderStatusUseCase:
    def __init__(self, gateway: PaymentGatewayPort, ledger: InvoiceLedger,
                 settlement: SettlePaymentUseCase, tx: TransactionManager):
        self._gateway = gateway
        self._ledger = ledger
        self._settlement = settlement
        self._tx = tx

    async def execute(self, order_id: str,
                      customer: Optional[CustomerEntity] = None) -> OrderStatusOutput:
        lookup = await self._ledger.find_by_order_id(order_id)
        if lookup is None:
            raise NotFoundError("결제", order_id)
        if customer is not None and not customer.owns(lookup.invoice.customer_id):
            raise ForbiddenError("본인의 주문만 조회할 수 있습니다.")

        remote = await self._fetch_remote(order_id)
        gateway_status = remote.order_status if remote else GatewayOrderStatus.UNKNOWN.value

        if remote and gateway_status == GatewayOrderStatus.PAID.value:
            lookup = await self._self_heal(lookup, remote)

        if lookup.is_current:
            payment_status = lookup.payment.status
            invoice_status = lookup.invoice.status
        else:
            # 재시도로 대체된 주문은 해당 시도의 결과만 본다
            payment_status = attempt_as_payment_status(lookup.attempt.status) if lookup.attempt else None
            invoice_status = None

        status = resolve_order_status(gateway_status, payment_status, invoice_status)
        return OrderStatusOutput(
            order_id=order_id,
            amount=lookup.payment.amount,
            currency=lookup.payment.currency,
            status=status,
            gateway_status=gateway_status,
            item_name=lookup.invoice.item_name,
        )

    async def _fetch_remote(self, order_id: str) -> Optional[GatewayOrderState]:
        try:
            return await self._gateway.get_order_status(order_id)
        except GatewayError as e:
            # 게이트웨이 조회 실패는 로컬 상태만으로 판단
            logger.warning(f"게이트웨이 주문 조회 실패, 로컬 상태로 판단: {order_id}: {e.message}")
            return None

    async def _self_heal(self, lookup: PaymentLookup, remote: GatewayOrderState) -> PaymentLookup:
        # 대체된 주문도 같은 정산 경로를 탄다 (미결제 청구서 정산 또는 중복 결제 기록)
        if lookup.invoice.is_paid and lookup.payment.paid_order_id in (None, lookup.order_id):
            return lookup
        if lookup.attempt is not None and lookup.attempt.status == AttemptStatus.SUCCESS:
            return lookup
        logger.warning(f"게이트웨이 PAID / 로컬 미반영: webhook 유실로 보고 정산: order={lookup.order_id}")
        try:
            async with self._tx.savepoint():
                await self._settlement.execute(
                    lookup,
                    transaction_id=remote.payment_id,
                    payment_method=normalize_payment_method(remote.payment_method),
                    method_details=remote.payment_method,
                    metadata={"source": "status-check"},
                )
        except Exception as e:
            # 정산 실패해도 조회 응답은 게이트웨이 기준으로 반환
            logger.exception(f"상태 조회 중 정산 실패: order={lookup.order_id}: {e}")
            return lookup
        return await self._ledger.find_by_order_id(lookup.order_id) or lookup
