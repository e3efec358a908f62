"""사용자 구독 도메인 엔티티"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional, List, Tuple

from domain.enums import (
    PurchaseScope, SubscriptionStatus, SubscriptionType, PaymentMethod,
)


def subscription_type_for(amount: Decimal) -> SubscriptionType:
    """금액으로만 구독 유형을 결정한다 (클라이언트 입력 아님)"""
    return SubscriptionType.FREE if Decimal(amount) == 0 else SubscriptionType.PAID


def target_key_for(scope: PurchaseScope, course_id: Optional[int],
                   subject_id: Optional[int]) -> str:
    target_id = course_id if scope == PurchaseScope.COURSE else subject_id
    return f"{scope.value}:{target_id}"


def validity_window(start: datetime, days: int) -> Tuple[datetime, datetime]:
    return start, start + timedelta(days=days)


@dataclass
class SubscriptionEntity:
    user_id: int
    scope: PurchaseScope
    target_key: str
    subscription_type: SubscriptionType
    start_date: datetime
    end_date: datetime
    amount_paid: Decimal
    id: Optional[int] = None
    org_id: Optional[int] = None
    course_id: Optional[int] = None
    subject_ids: List[int] = field(default_factory=list)
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    next_billing_date: Optional[datetime] = None
    last_payment_at: Optional[datetime] = None
    auto_renew: bool = False
    gateway_order_id: Optional[str] = None
    transaction_id: Optional[str] = None
    invoice_id: Optional[int] = None
    pricing_id: Optional[int] = None
    payment_method: Optional[PaymentMethod] = None
    created_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status == SubscriptionStatus.ACTIVE


@dataclass
class SubjectDiff:
    """강좌 과목 목록과 구독 과목 목록의 차이"""
    added: List[int] = field(default_factory=list)
    removed: List[int] = field(default_factory=list)

    @classmethod
    def between(cls, current: List[int], wanted: List[int]) -> "SubjectDiff":
        return cls(
            added=[sid for sid in wanted if sid not in current],
            removed=[sid for sid in current if sid not in wanted],
        )

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.removed)
