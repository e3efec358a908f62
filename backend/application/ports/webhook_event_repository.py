"""수신 webhook 이벤트 저장소 인터페이스"""
from abc import ABC, abstractmethod
from typing import Optional
from domain.entities.webhook import WebhookEventEntity
from domain.enums import WebhookProcessingStatus


class WebhookEventRepository(ABC):
    @abstractmethod
    async def store(self, event: WebhookEventEntity) -> WebhookEventEntity: ...
    @abstractmethod
    async def mark(self, event_id: str, status: WebhookProcessingStatus,
                   error: Optional[str] = None) -> None: ...
    @abstractmethod
    async def get(self, event_id: str) -> Optional[WebhookEventEntity]: ...
    @abstractmethod
    async def latest_for_order(self, order_id: str, event_type: str) -> Optional[WebhookEventEntity]: ...
    @abstractmethod
    async def increment_replay(self, event_id: str, count: int = 1) -> None: ...
