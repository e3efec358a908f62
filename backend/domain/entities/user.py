"""구매 고객 도메인 엔티티"""
from dataclasses import dataclass
from typing import Optional

from domain.enums import UserRole


@dataclass
class CustomerEntity:
    """결제 요청자: ORM 모델이 아닌 비즈니스 로직용"""
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    org_id: Optional[int] = None
    role: str = UserRole.STUDENT.value

    @property
    def gateway_phone(self) -> str:
        # 게이트웨이는 전화번호를 필수로 요구한다
        return self.phone or "9999999999"

    def owns(self, customer_id: Optional[int]) -> bool:
        return customer_id is not None and customer_id == self.id
