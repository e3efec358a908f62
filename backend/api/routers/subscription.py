"""구독 동기화 라우터"""
from fastapi import APIRouter, Depends

from domain.entities.user import CustomerEntity
from application.use_cases.sync_subscriptions import SubscriptionSyncService, SyncStatusOutput
from infrastructure.persistence.models.user import User
from api.schemas.subscription import SyncStatusResponse, SubjectChanges, CourseSyncResponse
from api.dependencies import get_current_customer, get_admin_user, get_sync_service

router = APIRouter(tags=["구독"])


def _status_response(result: SyncStatusOutput, message: str = None) -> SyncStatusResponse:
    return SyncStatusResponse(
        success=True,
        message=message,
        subscription_id=result.subscription_id,
        in_sync=result.in_sync,
        has_changes=result.diff.has_changes,
        subject_count=result.subject_count,
        changes=SubjectChanges(added=result.diff.added, removed=result.diff.removed),
    )


@router.post("/api/usersubscriptions/{subscription_id}/refresh", response_model=SyncStatusResponse)
async def refresh_subscription(subscription_id: int,
                               customer: CustomerEntity = Depends(get_current_customer),
                               service: SubscriptionSyncService = Depends(get_sync_service)):
    result = await service.refresh(subscription_id, customer)
    return _status_response(result, "구독 과목이 강좌 구성과 동기화되었습니다.")


@router.get("/api/usersubscriptions/{subscription_id}/sync-status", response_model=SyncStatusResponse)
async def get_sync_status(subscription_id: int,
                          customer: CustomerEntity = Depends(get_current_customer),
                          service: SubscriptionSyncService = Depends(get_sync_service)):
    return _status_response(await service.check_sync_status(subscription_id, customer))


@router.post("/api/admin/courses/{course_id}/sync-subscriptions", response_model=CourseSyncResponse)
async def sync_course_subscriptions(course_id: int,
                                    admin: User = Depends(get_admin_user),
                                    service: SubscriptionSyncService = Depends(get_sync_service)):
    result = await service.sync_course(course_id)
    return CourseSyncResponse(success=True, course_id=result.course_id,
                              total_subscriptions=result.total_subscriptions,
                              updated_count=result.updated_count, changes=result.changes)
