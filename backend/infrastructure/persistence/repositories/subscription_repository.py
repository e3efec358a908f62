"""사용자 구독 Repository (SQLAlchemy)"""
from typing import Optional, List
from loguru import logger
from sqlalchemy import select, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from application.ports.subscription_repository import SubscriptionRepository
from domain.entities.subscription import SubscriptionEntity
from domain.enums import PurchaseScope, SubscriptionStatus
from domain.exceptions import SubscriptionConflictError
from infrastructure.persistence.models.catalog import Subject
from infrastructure.persistence.models.subscription import UserSubscription, subscription_subjects


def _to_entity(row: UserSubscription) -> SubscriptionEntity:
    return SubscriptionEntity(
        id=row.id,
        user_id=row.user_id,
        org_id=row.org_id,
        scope=row.scope,
        course_id=row.course_id,
        subject_ids=[s.id for s in row.subjects],
        target_key=row.target_key,
        subscription_type=row.subscription_type,
        status=row.status,
        start_date=row.start_date,
        end_date=row.end_date,
        next_billing_date=row.next_billing_date,
        last_payment_at=row.last_payment_at,
        auto_renew=row.auto_renew,
        gateway_order_id=row.gateway_order_id,
        transaction_id=row.transaction_id,
        invoice_id=row.invoice_id,
        pricing_id=row.pricing_id,
        payment_method=row.payment_method,
        amount_paid=row.amount_paid,
        created_at=row.created_at,
    )


class SqlSubscriptionRepository(SubscriptionRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    def _select(self):
        return select(UserSubscription).options(selectinload(UserSubscription.subjects))

    async def _subjects(self, subject_ids: List[int]) -> List[Subject]:
        if not subject_ids:
            return []
        result = await self._session.execute(select(Subject).where(Subject.id.in_(subject_ids)))
        return list(result.scalars().all())

    async def find_by_keys(self, gateway_order_id: Optional[str] = None,
                           transaction_id: Optional[str] = None,
                           invoice_id: Optional[int] = None) -> Optional[SubscriptionEntity]:
        conditions = []
        if gateway_order_id:
            conditions.append(UserSubscription.gateway_order_id == gateway_order_id)
        if transaction_id:
            conditions.append(UserSubscription.transaction_id == transaction_id)
        if invoice_id is not None:
            conditions.append(UserSubscription.invoice_id == invoice_id)
        if not conditions:
            return None
        stmt = self._select().where(or_(*conditions)).order_by(UserSubscription.id).limit(1)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _to_entity(row) if row else None

    async def has_active_for_course(self, user_id: int, course_id: int) -> bool:
        stmt = select(func.count(UserSubscription.id)).where(
            UserSubscription.user_id == user_id,
            UserSubscription.scope == PurchaseScope.COURSE,
            UserSubscription.course_id == course_id,
            UserSubscription.status == SubscriptionStatus.ACTIVE,
        )
        return (await self._session.execute(stmt)).scalar() > 0

    async def has_active_for_subject(self, user_id: int, subject_id: int) -> bool:
        # 과목 구독뿐 아니라 그 과목을 포함한 강좌 구독도 해당
        stmt = (
            select(func.count(UserSubscription.id))
            .join(subscription_subjects, subscription_subjects.c.subscription_id == UserSubscription.id)
            .where(
                UserSubscription.user_id == user_id,
                UserSubscription.status == SubscriptionStatus.ACTIVE,
                subscription_subjects.c.subject_id == subject_id,
            )
        )
        return (await self._session.execute(stmt)).scalar() > 0

    async def create(self, subscription: SubscriptionEntity) -> SubscriptionEntity:
        row = UserSubscription(
            user_id=subscription.user_id,
            org_id=subscription.org_id,
            scope=subscription.scope,
            course_id=subscription.course_id,
            target_key=subscription.target_key,
            subscription_type=subscription.subscription_type,
            status=subscription.status,
            start_date=subscription.start_date,
            end_date=subscription.end_date,
            next_billing_date=subscription.next_billing_date,
            last_payment_at=subscription.last_payment_at,
            auto_renew=subscription.auto_renew,
            gateway_order_id=subscription.gateway_order_id,
            transaction_id=subscription.transaction_id,
            invoice_id=subscription.invoice_id,
            pricing_id=subscription.pricing_id,
            payment_method=subscription.payment_method,
            amount_paid=subscription.amount_paid,
        )
        row.subjects = await self._subjects(subscription.subject_ids)
        try:
            async with self._session.begin_nested():
                self._session.add(row)
        except IntegrityError as e:
            logger.warning(f"구독 저장 유니크 제약 위반: user={subscription.user_id} "
                           f"order={subscription.gateway_order_id}: {e.orig}")
            raise SubscriptionConflictError(f"구독 저장 충돌: {subscription.target_key}") from e
        return _to_entity(row)

    async def get(self, subscription_id: int) -> Optional[SubscriptionEntity]:
        stmt = self._select().where(UserSubscription.id == subscription_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _to_entity(row) if row else None

    async def list_active_by_user(self, user_id: int) -> List[SubscriptionEntity]:
        stmt = self._select().where(
            UserSubscription.user_id == user_id,
            UserSubscription.status == SubscriptionStatus.ACTIVE,
        ).order_by(UserSubscription.created_at.desc())
        return [_to_entity(row) for row in (await self._session.execute(stmt)).scalars().all()]

    async def list_active_by_course(self, course_id: int) -> List[SubscriptionEntity]:
        stmt = self._select().where(
            UserSubscription.course_id == course_id,
            UserSubscription.scope == PurchaseScope.COURSE,
            UserSubscription.status == SubscriptionStatus.ACTIVE,
        ).order_by(UserSubscription.id)
        return [_to_entity(row) for row in (await self._session.execute(stmt)).scalars().all()]

    async def replace_subjects(self, subscription_id: int, subject_ids: List[int]) -> None:
        stmt = self._select().where(UserSubscription.id == subscription_id)
        row = (await self._session.execute(stmt)).scalar_one()
        row.subjects = await self._subjects(subject_ids)
        await self._session.flush()

    async def count_by_gateway_order_id(self, gateway_order_id: str) -> int:
        stmt = select(func.count(UserSubscription.id)).where(
            UserSubscription.gateway_order_id == gateway_order_id)
        return (await self._session.execute(stmt)).scalar()
