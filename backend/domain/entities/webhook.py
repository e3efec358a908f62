"""수신 webhook 값 객체"""
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Dict, Any, Mapping

from domain.enums import WebhookEventType, WebhookProcessingStatus, PaymentMethod


@dataclass
class RawWebhookEnvelope:
    """전송 계층에서 받은 그대로의 webhook.

    parsed_body: 프레임워크가 이미 파싱한 본문 (없거나 비어 있을 수 있음)
    raw_bytes: 파싱되지 않은 원본 바이트. 서명 검증은 항상 이 값으로 한다.
    """
    headers: Mapping[str, str]
    raw_bytes: bytes
    parsed_body: Optional[Dict[str, Any]] = None

    @property
    def signature(self) -> Optional[str]:
        return self._header("x-webhook-signature")

    @property
    def timestamp(self) -> Optional[str]:
        return self._header("x-webhook-timestamp")

    def _header(self, name: str) -> Optional[str]:
        for key, value in self.headers.items():
            if key.lower() == name:
                return value
        return None

    def decode(self) -> Dict[str, Any]:
        """본문을 한 번만 역직렬화한다.

        파싱된 본문이 비어 있으면 원본 바이트를 파싱한다. 원본도 JSON이 아니면
        빈 dict를 반환한다 (이후 단계에서 주문 ID 누락으로 처리됨).
        """
        if self.parsed_body:
            return dict(self.parsed_body)
        if not self.raw_bytes:
            return {}
        try:
            decoded = json.loads(self.raw_bytes.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            return {}
        return decoded if isinstance(decoded, dict) else {}


@dataclass
class NormalizedWebhook:
    event_type: str
    order_id: Optional[str]
    gateway_payment_id: Optional[str]
    payment_method: PaymentMethod
    method_details: Dict[str, Any]
    failure_message: Optional[str]
    raw_payload: Dict[str, Any]

    @property
    def is_test(self) -> bool:
        data = self.raw_payload.get("data") or {}
        if self.event_type == WebhookEventType.GENERIC_TEST.value and data.get("test_object"):
            return True
        return self.event_type == WebhookEventType.TEST.value and not self.order_id


@dataclass
class WebhookEventEntity:
    event_id: str
    order_id: str
    event_type: str
    raw_payload: Dict[str, Any]
    raw_headers: Dict[str, Optional[str]] = field(default_factory=dict)
    processing_status: WebhookProcessingStatus = WebhookProcessingStatus.STORED
    correlation_id: Optional[str] = None
    error_message: Optional[str] = None
    replay_count: int = 0
    id: Optional[int] = None
    created_at: Optional[datetime] = None
