"""webhook 이벤트 Repository (SQLAlchemy)"""
import json
from datetime import datetime
from typing import Optional
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from application.ports.webhook_event_repository import WebhookEventRepository
from domain.entities.webhook import WebhookEventEntity
from domain.enums import WebhookProcessingStatus
from infrastructure.persistence.models.webhook_event import WebhookEvent


def _to_entity(row: WebhookEvent) -> WebhookEventEntity:
    return WebhookEventEntity(
        id=row.id,
        event_id=row.event_id,
        order_id=row.order_id,
        event_type=row.event_type,
        raw_payload=json.loads(row.raw_payload),
        raw_headers=json.loads(row.raw_headers) if row.raw_headers else {},
        processing_status=row.processing_status,
        correlation_id=row.correlation_id,
        error_message=row.error_message,
        replay_count=row.replay_count,
        created_at=row.created_at,
    )


class SqlWebhookEventRepository(WebhookEventRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def store(self, event: WebhookEventEntity) -> WebhookEventEntity:
        row = WebhookEvent(
            event_id=event.event_id,
            order_id=event.order_id,
            event_type=event.event_type,
            raw_payload=json.dumps(event.raw_payload, ensure_ascii=False),
            raw_headers=json.dumps(event.raw_headers, ensure_ascii=False),
            processing_status=event.processing_status,
            correlation_id=event.correlation_id,
            replay_count=event.replay_count,
        )
        self._session.add(row)
        await self._session.flush()
        return _to_entity(row)

    async def mark(self, event_id: str, status: WebhookProcessingStatus,
                   error: Optional[str] = None) -> None:
        await self._session.execute(
            update(WebhookEvent)
            .where(WebhookEvent.event_id == event_id)
            .values(processing_status=status, error_message=error, processed_at=datetime.utcnow())
        )

    async def get(self, event_id: str) -> Optional[WebhookEventEntity]:
        stmt = select(WebhookEvent).where(WebhookEvent.event_id == event_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _to_entity(row) if row else None

    async def latest_for_order(self, order_id: str, event_type: str) -> Optional[WebhookEventEntity]:
        stmt = (
            select(WebhookEvent)
            .where(WebhookEvent.order_id == order_id, WebhookEvent.event_type == event_type)
            .order_by(WebhookEvent.id.desc())
            .limit(1)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _to_entity(row) if row else None

    async def increment_replay(self, event_id: str, count: int = 1) -> None:
        await self._session.execute(
            update(WebhookEvent)
            .where(WebhookEvent.event_id == event_id)
            .values(replay_count=WebhookEvent.replay_count + count)
        )
