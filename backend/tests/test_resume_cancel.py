import pytest

from domain.enums import PurchaseScope, InvoiceStatus, PaymentStatus, AttemptStatus
from domain.exceptions import ForbiddenError, InvalidStateError, NotFoundError, GatewayUnavailableError
from application.use_cases.resume_payment import ALREADY_PAID, REUSED, NEW_ORDER
from application.use_cases.start_purchase import StartPurchaseInput
from tests.conftest import COURSE_PLAN_ID
from tests.fakes import success_payload, failed_payload, envelope

pytestmark = pytest.mark.asyncio


async def purchase(services, customer):
    return await services.start.execute(StartPurchaseInput(customer=customer, pricing_id=COURSE_PLAN_ID,
                                                           scope=PurchaseScope.COURSE))


async def test_resume_reuses_active_session(services, gateway, student):
    # --- ARRANGE ---
    order = await purchase(services, student)

    # --- ACT ---
    result = await services.resume.execute(order.order_id, student)

    # --- ASSERT ---
    assert result.status == REUSED
    assert result.order_id == order.order_id
    assert result.gateway_session_token == order.gateway_session_token
    assert len(gateway.created) == 1


async def test_resume_expired_order_mints_new_order(services, gateway, student):
    # --- ARRANGE ---
    order = await purchase(services, student)
    gateway.set_status(order.order_id, "EXPIRED")

    # --- ACT ---
    result = await services.resume.execute(order.order_id, student)

    # --- ASSERT ---
    assert result.status == NEW_ORDER
    assert result.order_id.startswith("RETRY-")
    assert result.order_id != order.order_id
    assert result.gateway_session_token == f"session_{result.order_id}"

    retry_request = gateway.created[-1]
    assert retry_request.amount == order.amount
    assert retry_request.metadata["retryOf"] == order.order_id
    assert retry_request.metadata["invoiceId"] == str(order.invoice_id)

    invoice = await services.ledger.get_invoice(order.invoice_id)
    payment = invoice.payments[0]
    assert len(invoice.payments) == 1
    assert payment.payment_reference == result.order_id
    assert payment.status == PaymentStatus.PENDING
    attempts = {a.order_id: a for a in payment.attempts}
    assert attempts[order.order_id].status == AttemptStatus.SUPERSEDED
    assert attempts[result.order_id].status == AttemptStatus.PENDING
    assert attempts[result.order_id].is_retry is True


async def test_resume_with_superseded_id_uses_current_reference(services, gateway, student):
    order = await purchase(services, student)
    gateway.set_status(order.order_id, "EXPIRED")
    first = await services.resume.execute(order.order_id, student)

    second = await services.resume.execute(order.order_id, student)

    assert second.status == REUSED
    assert second.order_id == first.order_id


async def test_resume_when_gateway_unreachable_mints_new_order(services, gateway, student):
    order = await purchase(services, student)
    gateway.status_error = GatewayUnavailableError("timeout")

    result = await services.resume.execute(order.order_id, student)

    assert result.status == NEW_ORDER


async def test_resume_already_paid(services, gateway, student):
    order = await purchase(services, student)
    await services.processor.handle(envelope(success_payload(order.order_id)))

    result = await services.resume.execute(order.order_id, student)

    assert result.status == ALREADY_PAID
    assert len(gateway.created) == 1


async def test_resume_settles_when_gateway_reports_paid(services, gateway, student):
    # --- ARRANGE ---
    order = await purchase(services, student)
    gateway.set_status(order.order_id, "PAID", payment_id="cf-resume")

    # --- ACT ---
    result = await services.resume.execute(order.order_id, student)

    # --- ASSERT ---
    assert result.status == ALREADY_PAID
    invoice = await services.ledger.get_invoice(order.invoice_id)
    assert invoice.status == InvoiceStatus.PAID
    assert await services.subscriptions.find_by_keys(transaction_id="cf-resume") is not None


async def test_resume_after_failure_reopens_invoice(services, gateway, student):
    order = await purchase(services, student)
    await services.processor.handle(envelope(failed_payload(order.order_id)))
    gateway.set_status(order.order_id, "FAILED")

    result = await services.resume.execute(order.order_id, student)

    assert result.status == NEW_ORDER
    invoice = await services.ledger.get_invoice(order.invoice_id)
    assert invoice.status == InvoiceStatus.PENDING
    assert invoice.payments[0].status == PaymentStatus.PENDING


async def test_resume_other_users_order_forbidden(services, student, other_student):
    order = await purchase(services, student)

    with pytest.raises(ForbiddenError):
        await services.resume.execute(order.order_id, other_student)


async def test_resume_unknown_order(services, student):
    with pytest.raises(NotFoundError):
        await services.resume.execute("ORD-MISSING", student)


async def test_cancel_pending_order(services, student):
    order = await purchase(services, student)

    assert await services.cancel.execute(order.order_id, student) is True

    invoice = await services.ledger.get_invoice(order.invoice_id)
    assert invoice.status == InvoiceStatus.CANCELLED
    assert invoice.payments[0].status == PaymentStatus.CANCELLED
    assert invoice.payments[0].attempts[0].status == AttemptStatus.CANCELLED


async def test_cancel_twice_is_noop(services, student):
    order = await purchase(services, student)
    await services.cancel.execute(order.order_id, student)

    assert await services.cancel.execute(order.order_id, student) is True

    invoice = await services.ledger.get_invoice(order.invoice_id)
    assert invoice.status == InvoiceStatus.CANCELLED


async def test_cancel_paid_order_is_invalid(services, student):
    order = await purchase(services, student)
    await services.processor.handle(envelope(success_payload(order.order_id)))

    with pytest.raises(InvalidStateError):
        await services.cancel.execute(order.order_id, student)


async def test_cancel_other_users_order_forbidden(services, student, other_student):
    order = await purchase(services, student)

    with pytest.raises(ForbiddenError):
        await services.cancel.execute(order.order_id, other_student)


async def test_payment_after_cancel_still_settles(services, session, student):
    order = await purchase(services, student)
    await services.cancel.execute(order.order_id, student)

    outcome = await services.processor.handle(envelope(success_payload(order.order_id)))

    assert outcome.subscription_id is not None
    invoice = await services.ledger.get_invoice(order.invoice_id)
    assert invoice.status == InvoiceStatus.PAID
