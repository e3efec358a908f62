"""구독 부여 유스케이스: 결제 완료된 청구서로부터 UserSubscription 생성 (멱등)"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from loguru import logger

from domain.enums import PurchaseScope, PaymentMethod
from domain.exceptions import (
    InvalidScopeError, AlreadySubscribedError, SubscriptionConflictError,
)
from domain.entities.subscription import (
    SubscriptionEntity, subscription_type_for, target_key_for, validity_window,
)
from application.ports.catalog_repository import CatalogRepository
from application.ports.subscription_repository import SubscriptionRepository


@dataclass
class GrantInput:
    user_id: int
    scope: PurchaseScope
    amount: Decimal
    org_id: Optional[int] = None
    course_id: Optional[int] = None
    subject_id: Optional[int] = None
    pricing_id: Optional[int] = None
    invoice_id: Optional[int] = None
    gateway_order_id: Optional[str] = None
    transaction_id: Optional[str] = None
    payment_method: PaymentMethod = PaymentMethod.OTHER


@dataclass
class GrantOutput:
    subscription: SubscriptionEntity
    created: bool


class GrantSubscriptionUseCase:
    def __init__(self, catalog: CatalogRepository, subscriptions: SubscriptionRepository,
                 validity_days: int = 365):
        self._catalog = catalog
        self._subscriptions = subscriptions
        self._validity_days = validity_days

    async def execute(self, input: GrantInput) -> GrantOutput:
        # 1. 멱등성 검사: 중복 webhook 으로 인한 중복 구독을 막는 유일한 방어선
        existing = await self._find_existing(input)
        if existing:
            logger.info(f"구독 이미 존재 (멱등 처리): subscription={existing.id} "
                        f"order={input.gateway_order_id}")
            return GrantOutput(subscription=existing, created=False)

        # 2. 대상 과목 확정
        subject_ids = await self._resolve_subjects(input)

        # 3. 구독 생성
        start, end = validity_window(datetime.utcnow(), self._validity_days)
        subscription = SubscriptionEntity(
            user_id=input.user_id,
            org_id=input.org_id,
            scope=input.scope,
            course_id=input.course_id if input.scope == PurchaseScope.COURSE else None,
            subject_ids=subject_ids,
            target_key=target_key_for(input.scope, input.course_id, input.subject_id),
            subscription_type=subscription_type_for(input.amount),
            start_date=start,
            end_date=end,
            next_billing_date=end,  # 1회성 구매이므로 종료일과 동일
            last_payment_at=start,
            auto_renew=False,
            gateway_order_id=input.gateway_order_id or None,
            transaction_id=input.transaction_id or None,
            invoice_id=input.invoice_id,
            pricing_id=input.pricing_id,
            payment_method=input.payment_method,
            amount_paid=Decimal(input.amount),
        )
        try:
            created = await self._subscriptions.create(subscription)
        except SubscriptionConflictError:
            # 동시 요청이 먼저 저장한 경우 그 결과를 반환
            winner = await self._find_existing(input)
            if winner:
                logger.info(f"구독 동시 생성 경합: 기존 구독 반환: {winner.id}")
                return GrantOutput(subscription=winner, created=False)
            logger.warning(f"활성 구독 중복 감지: user={input.user_id} "
                           f"target={subscription.target_key}")
            raise AlreadySubscribedError(input.scope.value)

        logger.info(f"구독 생성: subscription={created.id} user={input.user_id} "
                    f"{created.target_key} 과목 {len(subject_ids)}개 "
                    f"{created.subscription_type.value}")
        return GrantOutput(subscription=created, created=True)

    async def _find_existing(self, input: GrantInput) -> Optional[SubscriptionEntity]:
        if not (input.gateway_order_id or input.transaction_id or input.invoice_id):
            logger.warning(f"멱등성 키 없이 구독 생성: user={input.user_id}")
            return None
        return await self._subscriptions.find_by_keys(
            gateway_order_id=input.gateway_order_id or None,
            transaction_id=input.transaction_id or None,
            invoice_id=input.invoice_id,
        )

    async def _resolve_subjects(self, input: GrantInput):
        if input.scope == PurchaseScope.COURSE and input.course_id is not None:
            subject_ids = await self._catalog.get_course_subject_ids(input.course_id)
            if subject_ids is not None:
                return list(subject_ids)
        elif input.scope == PurchaseScope.SUBJECT and input.subject_id is not None:
            if await self._catalog.subject_exists(input.subject_id):
                return [input.subject_id]
        raise InvalidScopeError(input.scope.value)
