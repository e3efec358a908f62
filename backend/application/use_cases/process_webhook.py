"""결제 게이트웨이 webhook 처리 유스케이스

처리 순서: 서명 검증 → 정규화 → 테스트 이벤트 단락 → 주문 대조 → 이벤트 저장 → 분기 처리

webhook 은 최소 1회 전달(at-least-once)이므로 같은 이벤트가 여러 번, 동시에 올 수 있다.
모든 쓰기는 결제 참조/게이트웨이 주문 ID/거래 ID 같은 자연 키로 멱등하게 처리된다.
인증 이후의 처리 실패는 기록만 하고 200 으로 응답한다 (게이트웨이 재전송 폭주 방지).
"""
import time
import uuid
from dataclasses import dataclass
from typing import Optional, Dict, Any

from loguru import logger

from domain.enums import WebhookEventType, WebhookProcessingStatus, AttemptStatus
from domain.exceptions import InvalidSignatureError, MissingCorrelationError
from domain.entities.invoice import PaymentLookup
from domain.entities.webhook import RawWebhookEnvelope, NormalizedWebhook, WebhookEventEntity
from domain.payment_rules import normalize_payment_method
from application.ports.invoice_ledger import InvoiceLedger
from application.ports.payment_gateway import PaymentGatewayPort
from application.ports.transaction import TransactionManager
from application.ports.webhook_event_repository import WebhookEventRepository
from application.use_cases.settle_payment import SettlePaymentUseCase


def normalize_webhook(payload: Dict[str, Any]) -> NormalizedWebhook:
    """게이트웨이 이벤트 봉투 {type, data: {order, payment}} 에서 필요한 값만 추출"""
    data = payload.get("data") or {}
    order = data.get("order") or {}
    payment = data.get("payment") or {}
    method = payment.get("payment_method") or {}
    failure = payment.get("payment_message")
    if not failure:
        failure = (data.get("error_details") or {}).get("error_description")

    gateway_payment_id = payment.get("cf_payment_id")
    return NormalizedWebhook(
        event_type=payload.get("type") or "",
        order_id=order.get("order_id") or payment.get("order_id"),
        gateway_payment_id=str(gateway_payment_id) if gateway_payment_id else None,
        payment_method=normalize_payment_method(method if isinstance(method, dict) else None),
        method_details=method if isinstance(method, dict) else {},
        failure_message=failure,
        raw_payload=payload,
    )


@dataclass
class WebhookOutcome:
    status: str
    message: str
    correlation_id: str
    order_id: Optional[str] = None
    event_id: Optional[str] = None
    subscription_id: Optional[int] = None
    duplicate_payment: bool = False


class WebhookProcessor:
    def __init__(self, gateway: PaymentGatewayPort, ledger: InvoiceLedger,
                 settlement: SettlePaymentUseCase, events: WebhookEventRepository,
                 tx: TransactionManager, allow_unsigned: bool = False):
        self._gateway = gateway
        self._ledger = ledger
        self._settlement = settlement
        self._events = events
        self._tx = tx
        # 서명 검증 실패를 허용할지 여부. 운영 환경에서는 항상 False 로 생성된다
        self._allow_unsigned = allow_unsigned

    @property
    def allow_unsigned(self) -> bool:
        return self._allow_unsigned

    async def handle(self, envelope: RawWebhookEnvelope) -> WebhookOutcome:
        correlation_id = f"WH-{uuid.uuid4().hex[:12]}"
        log = logger.bind(correlation_id=correlation_id)

        # 1. 서명 검증
        self._authenticate(envelope, log)

        # 2. 정규화
        webhook = normalize_webhook(envelope.decode())
        log.info(f"webhook 수신: type={webhook.event_type} order={webhook.order_id}")

        # 3. 연결 테스트 이벤트
        if webhook.is_test:
            log.info("테스트 webhook: 원장 변경 없이 성공 응답")
            return WebhookOutcome(status="TEST", message="Test webhook received successfully",
                                  correlation_id=correlation_id)

        # 4. 주문 대조
        lookup = await self._correlate(webhook, log)

        # 5. 이벤트 저장 (재생 테스트용)
        event = await self._events.store(WebhookEventEntity(
            event_id=f"{webhook.order_id}-{webhook.event_type}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}",
            order_id=webhook.order_id,
            event_type=webhook.event_type,
            raw_payload=webhook.raw_payload,
            raw_headers={"signature": envelope.signature, "timestamp": envelope.timestamp},
            correlation_id=correlation_id,
        ))

        # 6. 분기 처리
        return await self._dispatch(webhook, lookup, correlation_id, log, event_id=event.event_id)

    async def replay(self, payload: Dict[str, Any], correlation_id: str) -> WebhookOutcome:
        """저장된 이벤트 본문을 다시 처리한다. 서명은 최초 수신 시 이미 검증됨"""
        log = logger.bind(correlation_id=correlation_id)
        webhook = normalize_webhook(payload)
        lookup = await self._correlate(webhook, log)
        return await self._dispatch(webhook, lookup, correlation_id, log)

    def _authenticate(self, envelope: RawWebhookEnvelope, log) -> None:
        if self._gateway.verify_signature(envelope.signature, envelope.timestamp, envelope.raw_bytes):
            return
        if not self._allow_unsigned:
            log.warning(f"webhook 서명 검증 실패: 거부 (timestamp={envelope.timestamp})")
            raise InvalidSignatureError()
        log.warning("!!! webhook 서명 검증 실패: 비운영 환경 서명 우회 플래그로 계속 처리합니다 !!!")

    async def _correlate(self, webhook: NormalizedWebhook, log) -> PaymentLookup:
        if not webhook.order_id:
            log.warning(f"webhook 에 주문 ID 없음: type={webhook.event_type}")
            raise MissingCorrelationError("webhook 에 주문 ID가 없습니다.")
        lookup = await self._ledger.find_by_order_id(webhook.order_id)
        if lookup is None:
            log.error(f"주문 ID에 해당하는 결제 레코드 없음: {webhook.order_id}")
            raise MissingCorrelationError(f"결제 레코드를 찾을 수 없습니다: {webhook.order_id}")
        return lookup

    async def _dispatch(self, webhook: NormalizedWebhook, lookup: PaymentLookup,
                        correlation_id: str, log, event_id: Optional[str] = None) -> WebhookOutcome:
        try:
            async with self._tx.savepoint():
                outcome = await self._apply(webhook, lookup, correlation_id, log)
        except Exception as e:
            # 인증된 webhook 의 처리 실패는 기록 후 수신 확인
            log.exception(f"webhook 처리 실패: order={webhook.order_id} type={webhook.event_type}: {e}")
            if event_id:
                await self._events.mark(event_id, WebhookProcessingStatus.FAILED, str(e))
            return WebhookOutcome(status=WebhookProcessingStatus.FAILED.value,
                                  message="Webhook received; processing failed",
                                  correlation_id=correlation_id, order_id=webhook.order_id,
                                  event_id=event_id)

        outcome.event_id = event_id
        if event_id:
            await self._events.mark(event_id, WebhookProcessingStatus(outcome.status))
        return outcome

    async def _apply(self, webhook: NormalizedWebhook, lookup: PaymentLookup,
                     correlation_id: str, log) -> WebhookOutcome:
        if webhook.event_type == WebhookEventType.PAYMENT_SUCCESS.value:
            result = await self._settlement.execute(
                lookup,
                transaction_id=webhook.gateway_payment_id,
                payment_method=webhook.payment_method,
                method_details=webhook.method_details,
                metadata={"source": "webhook", "correlationId": correlation_id},
            )
            subscription_id = result.subscription.id if result.subscription else None
            log.info(f"결제 성공 처리: order={webhook.order_id} 청구서 전이={result.invoice_transitioned} "
                     f"구독={subscription_id} 신규={result.subscription_created}")
            return WebhookOutcome(status=WebhookProcessingStatus.PROCESSED.value,
                                  message="Payment success processed",
                                  correlation_id=correlation_id, order_id=webhook.order_id,
                                  subscription_id=subscription_id,
                                  duplicate_payment=result.duplicate_payment)

        if webhook.event_type == WebhookEventType.PAYMENT_FAILED.value:
            reason = webhook.failure_message or "Payment failed"
            if lookup.is_current:
                await self._ledger.mark_failed(lookup.invoice.id, reason)
            else:
                # 재시도로 대체된 과거 주문의 실패: 해당 시도만 종료
                await self._ledger.close_attempt(webhook.order_id, AttemptStatus.FAILED, reason)
            log.info(f"결제 실패 처리: order={webhook.order_id} 현재참조={lookup.is_current} 사유={reason}")
            return WebhookOutcome(status=WebhookProcessingStatus.PROCESSED.value,
                                  message="Payment failure processed",
                                  correlation_id=correlation_id, order_id=webhook.order_id)

        log.info(f"처리하지 않는 webhook 유형 무시: {webhook.event_type}")
        return WebhookOutcome(status=WebhookProcessingStatus.IGNORED.value,
                              message="Event type ignored",
                              correlation_id=correlation_id, order_id=webhook.order_id)
