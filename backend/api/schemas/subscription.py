"""구독 관련 스키마"""
from datetime import datetime
from typing import Optional, List, Dict, Any
from api.schemas.common import CamelModel, ResponseBase


class SubscriptionOut(CamelModel):
    id: int
    scope: str
    course_id: Optional[int] = None
    subject_ids: List[int]
    subscription_type: str
    status: str
    start_date: datetime
    end_date: datetime
    next_billing_date: Optional[datetime] = None
    auto_renew: bool
    amount_paid: float
    payment_method: Optional[str] = None
    gateway_order_id: Optional[str] = None


class MySubscriptionsResponse(ResponseBase):
    items: List[SubscriptionOut]
    total: int


class SubjectChanges(CamelModel):
    added: List[int]
    removed: List[int]


class SyncStatusResponse(ResponseBase):
    subscription_id: int
    in_sync: bool
    has_changes: bool
    subject_count: int
    changes: SubjectChanges


class CourseSyncResponse(ResponseBase):
    course_id: int
    total_subscriptions: int
    updated_count: int
    changes: List[Dict[str, Any]]
