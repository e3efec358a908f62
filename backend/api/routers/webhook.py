"""결제 게이트웨이 webhook 라우터"""
from fastapi import APIRouter, Depends, Request

from domain.entities.webhook import RawWebhookEnvelope
from application.use_cases.process_webhook import WebhookProcessor
from application.use_cases.replay_webhook import ReplayWebhookUseCase
from api.schemas.payment import (
    WebhookAck, ReplayStormRequest, ReplayResponse, ReplayStormResponse, SubscriptionCheck,
)
from api.dependencies import get_webhook_processor, get_replay_webhook

router = APIRouter(prefix="/api/payment/webhook", tags=["webhook"])


@router.post("", response_model=WebhookAck)
async def receive_webhook(request: Request,
                          processor: WebhookProcessor = Depends(get_webhook_processor)):
    """서명 검증은 파싱 전 원본 바이트로 한다"""
    envelope = RawWebhookEnvelope(headers=dict(request.headers), raw_bytes=await request.body())
    outcome = await processor.handle(envelope)
    return WebhookAck(success=True, message=outcome.message, status=outcome.status,
                      correlation_id=outcome.correlation_id)


@router.post("/replay-storm", response_model=ReplayStormResponse)
async def replay_storm(request: ReplayStormRequest,
                       use_case: ReplayWebhookUseCase = Depends(get_replay_webhook)):
    result = await use_case.storm(event_id=request.event_id, order_id=request.order_id,
                                  replay_count=request.replay_count, concurrent=request.concurrent)
    return ReplayStormResponse(
        success=True,
        message="Replay storm complete",
        replay_count=result.replay_count,
        concurrent=result.concurrent,
        elapsed_ms=result.elapsed_ms,
        results=result.results,
        subscription_check=SubscriptionCheck(order_id=result.order_id,
                                             subscription_count=result.subscription_count,
                                             passed=result.passed),
    )


@router.post("/replay/{event_id}", response_model=ReplayResponse)
async def replay_webhook(event_id: str,
                         use_case: ReplayWebhookUseCase = Depends(get_replay_webhook)):
    result = await use_case.replay(event_id)
    outcome = result.outcome
    return ReplayResponse(success=True, message="Webhook replayed", event_id=result.event_id,
                          result={"status": outcome.status, "message": outcome.message,
                                  "subscriptionId": outcome.subscription_id})
