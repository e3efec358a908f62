"""강좌 구독 과목 동기화

강좌 구독은 구매 시점의 과목 목록을 펼쳐 저장한다. 이후 강좌의 과목 구성이 바뀌면
활성 강좌 구독을 현재 목록으로 다시 맞춘다 (관리자 일괄 동기화 또는 사용자 새로고침).
"""
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional

from loguru import logger

from domain.enums import PurchaseScope, UserRole
from domain.exceptions import NotFoundError, ForbiddenError, InvalidScopeError
from domain.entities.subscription import SubscriptionEntity, SubjectDiff
from domain.entities.user import CustomerEntity
from application.ports.catalog_repository import CatalogRepository
from application.ports.subscription_repository import SubscriptionRepository


@dataclass
class CourseSyncOutput:
    course_id: int
    total_subscriptions: int
    updated_count: int
    changes: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class SyncStatusOutput:
    subscription_id: int
    in_sync: bool
    diff: SubjectDiff
    subject_count: int = 0


class SubscriptionSyncService:
    def __init__(self, catalog: CatalogRepository, subscriptions: SubscriptionRepository):
        self._catalog = catalog
        self._subscriptions = subscriptions

    async def sync_course(self, course_id: int) -> CourseSyncOutput:
        wanted = await self._catalog.get_course_subject_ids(course_id)
        if wanted is None:
            raise NotFoundError("강좌", course_id)

        subscriptions = await self._subscriptions.list_active_by_course(course_id)
        changes = []
        for sub in subscriptions:
            diff = SubjectDiff.between(sub.subject_ids, wanted)
            if not diff.has_changes:
                continue
            await self._subscriptions.replace_subjects(sub.id, wanted)
            changes.append({
                "subscriptionId": sub.id,
                "userId": sub.user_id,
                "added": diff.added,
                "removed": diff.removed,
            })

        logger.info(f"강좌 구독 동기화: course={course_id} {len(changes)}/{len(subscriptions)}건 갱신")
        return CourseSyncOutput(course_id=course_id, total_subscriptions=len(subscriptions),
                                updated_count=len(changes), changes=changes)

    async def refresh(self, subscription_id: int, caller: CustomerEntity) -> SyncStatusOutput:
        sub = await self._load_visible(subscription_id, caller)
        if sub.scope != PurchaseScope.COURSE or sub.course_id is None:
            raise InvalidScopeError(sub.scope.value)

        wanted = await self._course_subjects(sub)
        diff = SubjectDiff.between(sub.subject_ids, wanted)
        if diff.has_changes:
            await self._subscriptions.replace_subjects(sub.id, wanted)
            logger.info(f"구독 새로고침: subscription={sub.id} +{len(diff.added)} -{len(diff.removed)}")
        return SyncStatusOutput(subscription_id=sub.id, in_sync=True, diff=diff,
                                subject_count=len(wanted))

    async def check_sync_status(self, subscription_id: int, caller: CustomerEntity) -> SyncStatusOutput:
        sub = await self._load_visible(subscription_id, caller)
        if sub.scope != PurchaseScope.COURSE or sub.course_id is None:
            # 과목 단위 구독은 항상 동기화 상태
            return SyncStatusOutput(subscription_id=sub.id, in_sync=True, diff=SubjectDiff(),
                                    subject_count=len(sub.subject_ids))

        wanted = await self._course_subjects(sub)
        diff = SubjectDiff.between(sub.subject_ids, wanted)
        return SyncStatusOutput(subscription_id=sub.id, in_sync=not diff.has_changes, diff=diff,
                                subject_count=len(sub.subject_ids))

    async def _load_visible(self, subscription_id: int, caller: CustomerEntity) -> SubscriptionEntity:
        sub = await self._subscriptions.get(subscription_id)
        if sub is None:
            raise NotFoundError("구독", subscription_id)
        if not caller.owns(sub.user_id) and caller.role != UserRole.ADMIN.value:
            raise ForbiddenError("본인의 구독만 조회할 수 있습니다.")
        return sub

    async def _course_subjects(self, sub: SubscriptionEntity) -> List[int]:
        wanted: Optional[List[int]] = await self._catalog.get_course_subject_ids(sub.course_id)
        if wanted is None:
            raise NotFoundError("강좌", sub.course_id)
        return wanted
