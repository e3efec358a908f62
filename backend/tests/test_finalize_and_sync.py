import pytest
from sqlalchemy import insert, delete

from domain.enums import PurchaseScope, InvoiceStatus
from domain.exceptions import (
    InvalidStateError, ForbiddenError, NotFoundError, InvalidScopeError, GatewayUnavailableError,
)
from application.use_cases.start_purchase import StartPurchaseInput
from infrastructure.persistence.models import course_subjects
from tests.conftest import COURSE_PLAN_ID, SUBJECT_PLAN_ID, COURSE_ID, SUBJECT_IDS, STANDALONE_SUBJECT_ID
from tests.fakes import success_payload, envelope

pytestmark = pytest.mark.asyncio


async def purchase(services, customer, pricing_id=COURSE_PLAN_ID, scope=PurchaseScope.COURSE):
    return await services.start.execute(StartPurchaseInput(customer=customer, pricing_id=pricing_id,
                                                           scope=scope))


async def subscribe(services, customer, **kwargs):
    order = await purchase(services, customer, **kwargs)
    payload = success_payload(order.order_id, cf_payment_id=f"cf-{order.order_id}")
    outcome = await services.processor.handle(envelope(payload))
    return outcome.subscription_id


async def change_course_subjects(session, add=(), remove=()):
    for subject_id in add:
        await session.execute(insert(course_subjects).values(course_id=COURSE_ID, subject_id=subject_id))
    for subject_id in remove:
        await session.execute(delete(course_subjects).where(
            course_subjects.c.course_id == COURSE_ID, course_subjects.c.subject_id == subject_id))


# ---- 구독 확정 ----

async def test_finalize_after_webhook_returns_existing(services, student):
    order = await purchase(services, student)
    outcome = await services.processor.handle(envelope(success_payload(order.order_id)))

    result = await services.finalize.execute(order.order_id, student)

    assert result.subscription_id == outcome.subscription_id
    assert result.already_existed is True


async def test_finalize_current_order_after_superseded_one_paid(services, gateway, student):
    # --- ARRANGE ---
    order = await purchase(services, student)
    gateway.set_status(order.order_id, "EXPIRED")
    resumed = await services.resume.execute(order.order_id, student)
    outcome = await services.processor.handle(envelope(success_payload(order.order_id, cf_payment_id="cf-old")))

    # --- ACT ---
    result = await services.finalize.execute(resumed.order_id, student)

    # --- ASSERT ---
    assert result.subscription_id == outcome.subscription_id
    assert result.already_existed is True
    # 결제되지 않은 현재 주문의 시도는 그대로
    lookup = await services.ledger.find_by_order_id(resumed.order_id)
    assert lookup.attempt.transaction_id is None


async def test_finalize_without_webhook_confirms_with_gateway(services, gateway, student):
    # --- ARRANGE ---
    order = await purchase(services, student)
    gateway.set_status(order.order_id, "PAID", payment_id="cf-final", method={"upi": {"upi_id": "a@b"}})

    # --- ACT ---
    result = await services.finalize.execute(order.order_id, student)

    # --- ASSERT ---
    assert result.already_existed is False
    sub = await services.subscriptions.get(result.subscription_id)
    assert sub.transaction_id == "cf-final"
    assert sub.subject_ids == SUBJECT_IDS
    invoice = await services.ledger.get_invoice(order.invoice_id)
    assert invoice.status == InvoiceStatus.PAID


async def test_finalize_twice_is_idempotent(services, gateway, student):
    order = await purchase(services, student)
    gateway.set_status(order.order_id, "PAID", payment_id="cf-final")

    first = await services.finalize.execute(order.order_id, student)
    second = await services.finalize.execute(order.order_id, student)

    assert first.subscription_id == second.subscription_id
    assert second.already_existed is True


async def test_finalize_unpaid_order_is_invalid_state(services, student):
    order = await purchase(services, student)

    with pytest.raises(InvalidStateError):
        await services.finalize.execute(order.order_id, student)


async def test_finalize_propagates_gateway_outage(services, gateway, student):
    order = await purchase(services, student)
    gateway.status_error = GatewayUnavailableError("down")

    with pytest.raises(GatewayUnavailableError):
        await services.finalize.execute(order.order_id, student)


async def test_finalize_other_users_order_forbidden(services, student, other_student):
    order = await purchase(services, student)

    with pytest.raises(ForbiddenError):
        await services.finalize.execute(order.order_id, other_student)


# ---- 강좌 구독 동기화 ----

async def test_sync_course_adds_and_removes_subjects(services, session, student, other_student):
    # --- ARRANGE ---
    first = await subscribe(services, student)
    second = await subscribe(services, other_student)
    await change_course_subjects(session, add=[STANDALONE_SUBJECT_ID], remove=[SUBJECT_IDS[2]])

    # --- ACT ---
    result = await services.sync.sync_course(COURSE_ID)

    # --- ASSERT ---
    assert result.total_subscriptions == 2
    assert result.updated_count == 2
    assert result.changes[0]["added"] == [STANDALONE_SUBJECT_ID]
    assert result.changes[0]["removed"] == [SUBJECT_IDS[2]]
    for sub_id in (first, second):
        sub = await services.subscriptions.get(sub_id)
        assert sorted(sub.subject_ids) == [SUBJECT_IDS[0], SUBJECT_IDS[1], STANDALONE_SUBJECT_ID]


async def test_sync_course_without_changes(services, student):
    await subscribe(services, student)

    result = await services.sync.sync_course(COURSE_ID)

    assert result.total_subscriptions == 1
    assert result.updated_count == 0
    assert result.changes == []


async def test_sync_unknown_course(services):
    with pytest.raises(NotFoundError):
        await services.sync.sync_course(999)


async def test_check_sync_status_reports_diff(services, session, student):
    sub_id = await subscribe(services, student)
    await change_course_subjects(session, add=[STANDALONE_SUBJECT_ID])

    status = await services.sync.check_sync_status(sub_id, student)

    assert status.in_sync is False
    assert status.diff.added == [STANDALONE_SUBJECT_ID]
    assert status.diff.removed == []
    assert status.subject_count == len(SUBJECT_IDS)


async def test_refresh_brings_subscription_in_sync(services, session, student):
    # --- ARRANGE ---
    sub_id = await subscribe(services, student)
    await change_course_subjects(session, add=[STANDALONE_SUBJECT_ID])

    # --- ACT ---
    refreshed = await services.sync.refresh(sub_id, student)
    status = await services.sync.check_sync_status(sub_id, student)

    # --- ASSERT ---
    assert refreshed.diff.added == [STANDALONE_SUBJECT_ID]
    assert refreshed.subject_count == len(SUBJECT_IDS) + 1
    assert status.in_sync is True


async def test_new_course_subject_counts_as_owned_after_refresh(services, session, student):
    sub_id = await subscribe(services, student)
    await change_course_subjects(session, add=[STANDALONE_SUBJECT_ID])
    assert await services.subscriptions.has_active_for_subject(student.id, STANDALONE_SUBJECT_ID) is False

    await services.sync.refresh(sub_id, student)

    assert await services.subscriptions.has_active_for_subject(student.id, STANDALONE_SUBJECT_ID) is True


async def test_refresh_subject_subscription_is_invalid_scope(services, student):
    sub_id = await subscribe(services, student, pricing_id=SUBJECT_PLAN_ID, scope=PurchaseScope.SUBJECT)

    with pytest.raises(InvalidScopeError):
        await services.sync.refresh(sub_id, student)


async def test_subject_subscription_is_always_in_sync(services, student):
    sub_id = await subscribe(services, student, pricing_id=SUBJECT_PLAN_ID, scope=PurchaseScope.SUBJECT)

    status = await services.sync.check_sync_status(sub_id, student)

    assert status.in_sync is True
    assert status.subject_count == 1


async def test_sync_status_other_user_forbidden_admin_allowed(services, student, other_student, admin):
    sub_id = await subscribe(services, student)

    with pytest.raises(ForbiddenError):
        await services.sync.check_sync_status(sub_id, other_student)
    status = await services.sync.check_sync_status(sub_id, admin)

    assert status.in_sync is True


async def test_sync_status_unknown_subscription(services, student):
    with pytest.raises(NotFoundError):
        await services.sync.check_sync_status(12345, student)
