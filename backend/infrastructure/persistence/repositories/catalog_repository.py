"""카탈로그 Repository (SQLAlchemy)"""
from typing import Optional, List
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from application.ports.catalog_repository import CatalogRepository
from domain.entities.pricing import PricingPlanEntity
from infrastructure.persistence.models.catalog import Course, Subject, PricingPlan, course_subjects


class SqlCatalogRepository(CatalogRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_pricing(self, pricing_id: int) -> Optional[PricingPlanEntity]:
        stmt = (
            select(PricingPlan)
            .where(PricingPlan.id == pricing_id, PricingPlan.is_active == True)  # noqa: E712
            .options(selectinload(PricingPlan.course), selectinload(PricingPlan.subject))
        )
        plan = (await self._session.execute(stmt)).scalar_one_or_none()
        if plan is None:
            return None
        return PricingPlanEntity(
            id=plan.id,
            name=plan.name,
            scope=plan.scope,
            amount=plan.amount,
            currency=plan.currency,
            course_id=plan.course_id,
            subject_id=plan.subject_id,
            course_name=plan.course.name if plan.course else None,
            subject_name=plan.subject.name if plan.subject else None,
        )

    async def get_course_subject_ids(self, course_id: int) -> Optional[List[int]]:
        course = await self._session.get(Course, course_id)
        if course is None:
            return None
        stmt = (
            select(course_subjects.c.subject_id)
            .where(course_subjects.c.course_id == course_id)
            .order_by(course_subjects.c.subject_id)
        )
        return list((await self._session.execute(stmt)).scalars().all())

    async def subject_exists(self, subject_id: int) -> bool:
        return await self._session.get(Subject, subject_id) is not None
