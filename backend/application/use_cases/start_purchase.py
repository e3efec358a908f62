"""구매 시작 유스케이스: 청구서 생성 후 게이트웨이 주문 생성"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from loguru import logger

from domain.enums import PurchaseScope
from domain.exceptions import (
    NotFoundError, AlreadySubscribedError, InternalInconsistencyError,
)
from domain.entities.user import CustomerEntity
from domain.payment_rules import generate_order_id
from application.ports.catalog_repository import CatalogRepository
from application.ports.invoice_ledger import InvoiceLedger
from application.ports.subscription_repository import SubscriptionRepository
from application.ports.payment_gateway import PaymentGatewayPort, GatewayOrderRequest


@dataclass
class StartPurchaseInput:
    customer: CustomerEntity
    pricing_id: int
    scope: PurchaseScope


@dataclass
class StartPurchaseOutput:
    order_id: str
    gateway_session_token: Optional[str]
    amount: Decimal
    currency: str
    invoice_id: int


class StartPurchaseUseCase:
    def __init__(self, catalog: CatalogRepository, ledger: InvoiceLedger,
                 subscriptions: SubscriptionRepository, gateway: PaymentGatewayPort):
        self._catalog = catalog
        self._ledger = ledger
        self._subscriptions = subscriptions
        self._gateway = gateway

    async def execute(self, input: StartPurchaseInput) -> StartPurchaseOutput:
        customer = input.customer

        # 1. 가격 플랜 확인
        pricing = await self._catalog.get_pricing(input.pricing_id)
        if pricing is None or pricing.scope != input.scope:
            raise NotFoundError("가격 플랜", input.pricing_id)

        # 2. 기존 활성 구독 확인 (경합 시 최종 방어는 저장소의 유니크 인덱스)
        await self._ensure_not_subscribed(customer, input.scope, pricing.target_id)

        # 3. 청구서 + PENDING 결제 생성. 결제 참조가 곧 게이트웨이 주문 ID
        order_id = generate_order_id("ORD")
        invoice = await self._ledger.create_invoice(customer, pricing, payment_reference=order_id)
        if not invoice.payments:
            logger.error(f"결제 레코드 없이 청구서 생성됨: invoice={invoice.id}")
            raise InternalInconsistencyError("청구서에 결제 레코드가 없습니다.")
        payment = invoice.payments[0]

        # 4. 게이트웨이 주문 생성
        order = await self._gateway.create_order(GatewayOrderRequest(
            order_id=payment.payment_reference,
            amount=invoice.total_amount,
            currency=invoice.currency,
            customer=customer,
            metadata={
                "invoiceId": str(invoice.id),
                "paymentId": str(payment.id),
                "userId": str(customer.id),
                "type": input.scope.value.lower(),
            },
        ))

        # 5. 세션 토큰 기록: 토큰이 없는 결제는 원격에만 존재하는 고아 주문
        await self._ledger.attach_session(payment.id, order.order_id, order.session_token)

        logger.info(f"주문 생성: order={order.order_id} invoice={invoice.id} "
                    f"user={customer.id} {pricing.scope.value}:{pricing.target_id} "
                    f"{invoice.total_amount} {invoice.currency}")
        return StartPurchaseOutput(
            order_id=order.order_id,
            gateway_session_token=order.session_token,
            amount=invoice.total_amount,
            currency=invoice.currency,
            invoice_id=invoice.id,
        )

    async def _ensure_not_subscribed(self, customer: CustomerEntity, scope: PurchaseScope,
                                     target_id: Optional[int]) -> None:
        if target_id is None:
            raise NotFoundError("구매 대상")
        if scope == PurchaseScope.COURSE:
            exists = await self._subscriptions.has_active_for_course(customer.id, target_id)
        else:
            exists = await self._subscriptions.has_active_for_subject(customer.id, target_id)
        if exists:
            logger.info(f"구매 거부: 이미 구독 중: user={customer.id} {scope.value}:{target_id}")
            raise AlreadySubscribedError(scope.value)
