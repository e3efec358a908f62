from decimal import Decimal

import pytest

from domain.enums import PurchaseScope, InvoiceStatus, PaymentStatus, AttemptStatus
from domain.exceptions import NotFoundError, AlreadySubscribedError, GatewayUnavailableError
from application.use_cases.start_purchase import StartPurchaseInput
from tests.conftest import COURSE_PLAN_ID, SUBJECT_PLAN_ID, STUDENT_ID
from tests.fakes import success_payload, envelope

pytestmark = pytest.mark.asyncio


async def test_start_purchase_creates_invoice_payment_and_remote_order(services, gateway, student):
    # --- ACT ---
    result = await services.start.execute(StartPurchaseInput(customer=student, pricing_id=COURSE_PLAN_ID,
                                                             scope=PurchaseScope.COURSE))

    # --- ASSERT ---
    assert result.amount == Decimal("499.00")
    assert result.currency == "INR"
    assert result.gateway_session_token == f"session_{result.order_id}"

    invoice = await services.ledger.get_invoice(result.invoice_id)
    assert invoice.status == InvoiceStatus.PENDING
    assert invoice.customer_id == STUDENT_ID
    assert invoice.items[0].item_name == "Physics Full Course"
    assert len(invoice.payments) == 1
    payment = invoice.payments[0]
    assert payment.payment_reference == result.order_id
    assert payment.status == PaymentStatus.PENDING
    assert payment.gateway_session_token == result.gateway_session_token
    assert [a.order_id for a in payment.attempts] == [result.order_id]
    assert payment.attempts[0].status == AttemptStatus.PENDING

    request = gateway.created[0]
    assert request.order_id == result.order_id
    assert request.metadata == {"invoiceId": str(invoice.id), "paymentId": str(payment.id),
                                "userId": str(STUDENT_ID), "type": "course"}


async def test_unknown_pricing_is_not_found(services, student):
    with pytest.raises(NotFoundError):
        await services.start.execute(StartPurchaseInput(customer=student, pricing_id=999,
                                                        scope=PurchaseScope.COURSE))


async def test_scope_mismatch_is_not_found(services, student):
    with pytest.raises(NotFoundError):
        await services.start.execute(StartPurchaseInput(customer=student, pricing_id=COURSE_PLAN_ID,
                                                        scope=PurchaseScope.SUBJECT))


async def test_active_course_subscription_blocks_purchase(services, gateway, student):
    # --- ARRANGE ---
    first = await services.start.execute(StartPurchaseInput(customer=student, pricing_id=COURSE_PLAN_ID,
                                                            scope=PurchaseScope.COURSE))
    await services.processor.handle(envelope(success_payload(first.order_id)))

    # --- ACT & ASSERT ---
    with pytest.raises(AlreadySubscribedError):
        await services.start.execute(StartPurchaseInput(customer=student, pricing_id=COURSE_PLAN_ID,
                                                        scope=PurchaseScope.COURSE))
    assert len(gateway.created) == 1


async def test_subject_inside_purchased_course_blocks_subject_purchase(services, student):
    first = await services.start.execute(StartPurchaseInput(customer=student, pricing_id=COURSE_PLAN_ID,
                                                            scope=PurchaseScope.COURSE))
    await services.processor.handle(envelope(success_payload(first.order_id)))

    with pytest.raises(AlreadySubscribedError):
        await services.start.execute(StartPurchaseInput(customer=student, pricing_id=SUBJECT_PLAN_ID,
                                                        scope=PurchaseScope.SUBJECT))


async def test_pending_purchase_does_not_block_a_new_attempt(services, gateway, student):
    await services.start.execute(StartPurchaseInput(customer=student, pricing_id=COURSE_PLAN_ID,
                                                    scope=PurchaseScope.COURSE))

    await services.start.execute(StartPurchaseInput(customer=student, pricing_id=COURSE_PLAN_ID,
                                                    scope=PurchaseScope.COURSE))

    assert len(gateway.created) == 2


async def test_gateway_outage_propagates(services, gateway, student):
    gateway.create_error = GatewayUnavailableError("timeout")

    with pytest.raises(GatewayUnavailableError):
        await services.start.execute(StartPurchaseInput(customer=student, pricing_id=COURSE_PLAN_ID,
                                                        scope=PurchaseScope.COURSE))
