"""사용자 구독 Repository 인터페이스"""
from abc import ABC, abstractmethod
from typing import Optional, List
from domain.entities.subscription import SubscriptionEntity


class SubscriptionRepository(ABC):
    @abstractmethod
    async def find_by_keys(self, gateway_order_id: Optional[str] = None,
                           transaction_id: Optional[str] = None,
                           invoice_id: Optional[int] = None) -> Optional[SubscriptionEntity]: ...
    @abstractmethod
    async def has_active_for_course(self, user_id: int, course_id: int) -> bool: ...
    @abstractmethod
    async def has_active_for_subject(self, user_id: int, subject_id: int) -> bool: ...
    @abstractmethod
    async def create(self, subscription: SubscriptionEntity) -> SubscriptionEntity:
        """유니크 제약 위반 시 SubscriptionConflictError"""
    @abstractmethod
    async def get(self, subscription_id: int) -> Optional[SubscriptionEntity]: ...
    @abstractmethod
    async def list_active_by_user(self, user_id: int) -> List[SubscriptionEntity]: ...
    @abstractmethod
    async def list_active_by_course(self, course_id: int) -> List[SubscriptionEntity]: ...
    @abstractmethod
    async def replace_subjects(self, subscription_id: int, subject_ids: List[int]) -> None: ...
    @abstractmethod
    async def count_by_gateway_order_id(self, gateway_order_id: str) -> int: ...
