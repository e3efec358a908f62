"""구독 확정 유스케이스: 결제 완료 페이지에서 호출하는 webhook 백업 경로"""
from dataclasses import dataclass

from loguru import logger

from domain.enums import GatewayOrderStatus, PaymentStatus
from domain.exceptions import InvalidStateError, AlreadySubscribedError
from domain.entities.user import CustomerEntity
from domain.payment_rules import normalize_payment_method
from application.ports.invoice_ledger import InvoiceLedger
from application.ports.payment_gateway import PaymentGatewayPort
from application.ports.subscription_repository import SubscriptionRepository
from application.use_cases.resume_payment import load_owned
from application.use_cases.settle_payment import SettlePaymentUseCase


@dataclass
class FinalizeOutput:
    subscription_id: int
    already_existed: bool


class FinalizeSubscriptionUseCase:
    def __init__(self, gateway: PaymentGatewayPort, ledger: InvoiceLedger,
                 subscriptions: SubscriptionRepository, settlement: SettlePaymentUseCase):
        self._gateway = gateway
        self._ledger = ledger
        self._subscriptions = subscriptions
        self._settlement = settlement

    async def execute(self, order_id: str, customer: CustomerEntity) -> FinalizeOutput:
        lookup = await load_owned(self._ledger, order_id, customer)
        payment = lookup.payment
        transaction_id = payment.gateway_transaction_id
        method = payment.payment_method
        details = payment.payment_method_details

        if lookup.invoice.is_paid and payment.paid_order_id not in (None, order_id):
            # 청구서가 다른 주문으로 결제 완료됨: 그 결제로 부여된 구독을 돌려준다
            existing = await self._subscriptions.find_by_keys(invoice_id=lookup.invoice.id)
            if existing:
                return FinalizeOutput(subscription_id=existing.id, already_existed=True)

        # 이 주문으로 결제 완료된 경우만 로컬 기록을 쓴다
        locally_paid = payment.status == PaymentStatus.SUCCESS and payment.paid_order_id == order_id
        if not locally_paid:
            # 로컬에 아직 반영되지 않았으면 게이트웨이 확인 (실패 시 그대로 전파)
            remote = await self._gateway.get_order_status(order_id)
            if remote.order_status != GatewayOrderStatus.PAID.value:
                raise InvalidStateError(f"결제가 완료되지 않았습니다: {remote.order_status}")
            transaction_id = remote.payment_id
            method = normalize_payment_method(remote.payment_method)
            details = remote.payment_method

        result = await self._settlement.execute(
            lookup,
            transaction_id=transaction_id,
            payment_method=method or normalize_payment_method(None),
            method_details=details,
            metadata={"source": "finalize"},
        )
        if result.subscription:
            return FinalizeOutput(subscription_id=result.subscription.id,
                                  already_existed=not result.subscription_created)

        # 다른 주문으로 이미 구독이 부여된 경우
        existing = await self._subscriptions.find_by_keys(invoice_id=lookup.invoice.id)
        if existing:
            return FinalizeOutput(subscription_id=existing.id, already_existed=True)
        logger.warning(f"구독 확정 불가: 다른 활성 구독 존재: order={order_id} user={customer.id}")
        raise AlreadySubscribedError(lookup.invoice.scope.value)
