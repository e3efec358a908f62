"""카탈로그(강좌/과목/가격) 읽기 전용 Repository 인터페이스"""
from abc import ABC, abstractmethod
from typing import Optional, List
from domain.entities.pricing import PricingPlanEntity


class CatalogRepository(ABC):
    @abstractmethod
    async def get_pricing(self, pricing_id: int) -> Optional[PricingPlanEntity]: ...
    @abstractmethod
    async def get_course_subject_ids(self, course_id: int) -> Optional[List[int]]:
        """강좌의 현재 과목 ID 목록. 강좌가 없으면 None"""
    @abstractmethod
    async def subject_exists(self, subject_id: int) -> bool: ...
