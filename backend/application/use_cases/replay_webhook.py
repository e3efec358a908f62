"""저장된 webhook 재생 (테스트 환경 전용)

멱등성 검증용 도구. 재생 1회마다 독립된 작업 범위(세션)를 열어 실제 중복 전달과
같은 조건을 만든다.
"""
import asyncio
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any, Callable, AsyncContextManager

from loguru import logger

from domain.enums import WebhookEventType
from domain.exceptions import ForbiddenError, NotFoundError
from domain.entities.webhook import WebhookEventEntity
from application.ports.subscription_repository import SubscriptionRepository
from application.ports.webhook_event_repository import WebhookEventRepository
from application.use_cases.process_webhook import WebhookProcessor, WebhookOutcome


@dataclass
class ReplayScope:
    """재생 1회가 사용하는 저장소 묶음. 범위를 벗어나면 커밋된다"""
    processor: WebhookProcessor
    events: WebhookEventRepository
    subscriptions: SubscriptionRepository


@dataclass
class ReplayOutput:
    event_id: str
    outcome: WebhookOutcome


@dataclass
class StormOutput:
    event_id: str
    order_id: str
    replay_count: int
    concurrent: bool
    elapsed_ms: int
    subscription_count: int
    results: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return self.subscription_count == 1


class ReplayWebhookUseCase:
    def __init__(self, open_scope: Callable[[], AsyncContextManager[ReplayScope]],
                 testing_enabled: bool, max_replays: int = 20):
        self._open_scope = open_scope
        self._testing_enabled = testing_enabled
        self._max_replays = max_replays

    def _ensure_enabled(self) -> None:
        if not self._testing_enabled:
            logger.warning("webhook 재생 요청 차단: WEBHOOK_TESTING_ENABLED 꺼짐")
            raise ForbiddenError("이 환경에서는 webhook 재생이 비활성화되어 있습니다.")

    async def replay(self, event_id: str) -> ReplayOutput:
        self._ensure_enabled()
        event = await self._load(event_id=event_id)

        correlation_id = f"REPLAY-{uuid.uuid4().hex[:8]}"
        async with self._open_scope() as scope:
            outcome = await scope.processor.replay(event.raw_payload, correlation_id)
        async with self._open_scope() as scope:
            await scope.events.increment_replay(event.event_id)

        logger.info(f"webhook 재생 완료: event={event.event_id} 결과={outcome.status}")
        return ReplayOutput(event_id=event.event_id, outcome=outcome)

    async def storm(self, event_id: Optional[str] = None, order_id: Optional[str] = None,
                    replay_count: int = 5, concurrent: bool = True) -> StormOutput:
        self._ensure_enabled()
        event = await self._load(event_id=event_id, order_id=order_id)
        replay_count = max(1, min(replay_count, self._max_replays))
        storm_id = f"STORM-{uuid.uuid4().hex[:8]}"
        logger.info(f"[{storm_id}] 재생 폭주 시작: {replay_count}회 event={event.event_id} 동시={concurrent}")

        started = time.monotonic()
        if concurrent:
            results = list(await asyncio.gather(
                *(self._replay_once(event, f"{storm_id}-{i}", i) for i in range(replay_count))
            ))
        else:
            results = [await self._replay_once(event, f"{storm_id}-{i}", i) for i in range(replay_count)]
        elapsed_ms = int((time.monotonic() - started) * 1000)

        async with self._open_scope() as scope:
            await scope.events.increment_replay(event.event_id, replay_count)
            count = await scope.subscriptions.count_by_gateway_order_id(event.order_id)

        output = StormOutput(event_id=event.event_id, order_id=event.order_id,
                             replay_count=replay_count, concurrent=concurrent,
                             elapsed_ms=elapsed_ms, subscription_count=count, results=results)
        logger.info(f"[{storm_id}] 재생 폭주 완료: {elapsed_ms}ms 구독 {count}건 통과={output.passed}")
        return output

    async def _replay_once(self, event: WebhookEventEntity, correlation_id: str,
                           index: int) -> Dict[str, Any]:
        try:
            async with self._open_scope() as scope:
                outcome = await scope.processor.replay(event.raw_payload, correlation_id)
        except Exception as e:
            # 재생 1건의 실패는 결과 목록에 기록하고 나머지 재생은 계속
            logger.warning(f"[{correlation_id}] 재생 실패: {e}")
            return {"index": index, "success": False, "error": str(e)}
        return {"index": index, "success": True, "status": outcome.status,
                "subscriptionId": outcome.subscription_id}

    async def _load(self, event_id: Optional[str] = None,
                    order_id: Optional[str] = None) -> WebhookEventEntity:
        async with self._open_scope() as scope:
            if event_id:
                event = await scope.events.get(event_id)
            elif order_id:
                event = await scope.events.latest_for_order(
                    order_id, WebhookEventType.PAYMENT_SUCCESS.value)
            else:
                event = None
        if event is None:
            raise NotFoundError("webhook 이벤트", event_id or order_id)
        return event
