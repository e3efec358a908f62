"""가격 플랜 도메인 엔티티"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from domain.enums import PurchaseScope


@dataclass
class PricingPlanEntity:
    """구매 가능한 강좌(COURSE) 또는 과목(SUBJECT) 가격"""
    id: int
    name: str
    scope: PurchaseScope
    amount: Decimal
    currency: str = "INR"
    course_id: Optional[int] = None
    subject_id: Optional[int] = None
    course_name: Optional[str] = None
    subject_name: Optional[str] = None

    @property
    def target_id(self) -> Optional[int]:
        return self.course_id if self.scope == PurchaseScope.COURSE else self.subject_id

    @property
    def target_name(self) -> str:
        if self.scope == PurchaseScope.COURSE:
            return self.course_name or "Course"
        return self.subject_name or "Subject"
