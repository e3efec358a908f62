from contextlib import asynccontextmanager

import pytest
import pytest_asyncio

from domain.enums import PurchaseScope
from domain.exceptions import ForbiddenError, NotFoundError
from application.use_cases.replay_webhook import ReplayWebhookUseCase, ReplayScope
from application.use_cases.start_purchase import StartPurchaseInput
from infrastructure.persistence.database import session_scope
from tests.conftest import COURSE_PLAN_ID, build_services
from tests.fakes import success_payload, envelope

pytestmark = pytest.mark.asyncio


@pytest.fixture
def make_replayer(session_factory, seeded, gateway):
    def make(enabled: bool = True, max_replays: int = 10) -> ReplayWebhookUseCase:
        @asynccontextmanager
        async def open_scope():
            async with session_scope(session_factory) as session:
                services = build_services(session, gateway)
                yield ReplayScope(processor=services.processor, events=services.events,
                                  subscriptions=services.subscriptions)

        return ReplayWebhookUseCase(open_scope, testing_enabled=enabled, max_replays=max_replays)
    return make


@pytest_asyncio.fixture
async def delivered(session_factory, seeded, gateway, student):
    """결제 성공 webhook 1회 처리 후 커밋된 상태"""
    async with session_scope(session_factory) as session:
        services = build_services(session, gateway)
        order = await services.start.execute(StartPurchaseInput(customer=student, pricing_id=COURSE_PLAN_ID,
                                                                scope=PurchaseScope.COURSE))
        outcome = await services.processor.handle(envelope(success_payload(order.order_id)))
    return outcome


async def count_subscriptions(session_factory, order_id: str) -> int:
    async with session_scope(session_factory) as session:
        return await build_services(session, None).subscriptions.count_by_gateway_order_id(order_id)


async def test_replay_disabled_is_forbidden(make_replayer, delivered):
    replayer = make_replayer(enabled=False)

    with pytest.raises(ForbiddenError):
        await replayer.replay(delivered.event_id)
    with pytest.raises(ForbiddenError):
        await replayer.storm(order_id=delivered.order_id)


async def test_single_replay_is_idempotent(make_replayer, delivered, session_factory):
    # --- ACT ---
    result = await make_replayer().replay(delivered.event_id)

    # --- ASSERT ---
    assert result.event_id == delivered.event_id
    assert result.outcome.status == "PROCESSED"
    assert result.outcome.subscription_id == delivered.subscription_id
    assert await count_subscriptions(session_factory, delivered.order_id) == 1

    async with session_scope(session_factory) as session:
        event = await build_services(session, None).events.get(delivered.event_id)
    assert event.replay_count == 1


async def test_sequential_storm_grants_once(make_replayer, delivered, session_factory):
    # --- ACT ---
    result = await make_replayer().storm(order_id=delivered.order_id, replay_count=5, concurrent=False)

    # --- ASSERT ---
    assert result.passed is True
    assert result.subscription_count == 1
    assert result.replay_count == 5
    assert result.event_id == delivered.event_id
    assert [r["index"] for r in result.results] == [0, 1, 2, 3, 4]
    assert all(r["success"] for r in result.results)
    assert {r["subscriptionId"] for r in result.results} == {delivered.subscription_id}

    async with session_scope(session_factory) as session:
        event = await build_services(session, None).events.get(delivered.event_id)
    assert event.replay_count == 5


async def test_storm_replay_count_is_capped(make_replayer, delivered):
    result = await make_replayer(max_replays=3).storm(event_id=delivered.event_id, replay_count=50,
                                                      concurrent=False)

    assert result.replay_count == 3
    assert len(result.results) == 3


async def test_replay_unknown_event(make_replayer, seeded):
    with pytest.raises(NotFoundError):
        await make_replayer().replay("no-such-event")


async def test_storm_without_success_event(make_replayer, seeded):
    with pytest.raises(NotFoundError):
        await make_replayer().storm(order_id="ORD-NONE", concurrent=False)
