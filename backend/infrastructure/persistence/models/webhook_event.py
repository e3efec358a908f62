"""수신 webhook 이벤트 ORM 모델"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Text, Enum
from infrastructure.persistence.database import Base
from domain.enums import WebhookProcessingStatus


class WebhookEvent(Base):
    __tablename__ = "webhook_events"
    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(String(200), unique=True, nullable=False)
    order_id = Column(String(100), nullable=False, index=True)
    event_type = Column(String(50), nullable=False)
    raw_payload = Column(Text, nullable=False)
    raw_headers = Column(Text, nullable=True)
    processing_status = Column(Enum(WebhookProcessingStatus), default=WebhookProcessingStatus.STORED,
                               nullable=False)
    correlation_id = Column(String(50), nullable=True)
    error_message = Column(Text, nullable=True)
    replay_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    processed_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<WebhookEvent {self.event_id} - {self.processing_status}>"
