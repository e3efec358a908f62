"""청구서 원장 (SQLAlchemy)

상태 전이는 조건부 UPDATE 로 처리한다. 동시에 같은 전이를 시도해도 실제로 행을
바꾼 요청만 True 를 받는다.
"""
import json
import random
import time
from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from application.ports.invoice_ledger import InvoiceLedger
from domain.entities.invoice import (
    InvoiceEntity, InvoiceItemEntity, PaymentEntity, PaymentAttemptEntity,
    PaymentLookup, PaidDetails,
)
from domain.entities.pricing import PricingPlanEntity
from domain.entities.user import CustomerEntity
from domain.enums import InvoiceStatus, PaymentStatus, AttemptStatus, PurchaseScope
from infrastructure.persistence.models.invoice import (
    Invoice, InvoiceItem, InvoicePayment, PaymentAttempt,
)

_OPEN_INVOICE_STATUSES = (InvoiceStatus.DRAFT, InvoiceStatus.PENDING)


def _invoice_number() -> str:
    return f"INV-{int(time.time() * 1000)}-{random.randint(0, 999):03d}"


def _json_or_none(value) -> Optional[str]:
    return json.dumps(value, ensure_ascii=False, default=str) if value else None


def _attempt_entity(row: PaymentAttempt) -> PaymentAttemptEntity:
    return PaymentAttemptEntity(
        id=row.id,
        payment_id=row.payment_id,
        order_id=row.order_id,
        status=row.status,
        session_token=row.session_token,
        is_retry=row.is_retry,
        transaction_id=row.transaction_id,
        failure_reason=row.failure_reason,
        created_at=row.created_at,
        completed_at=row.completed_at,
    )


def _payment_entity(row: InvoicePayment) -> PaymentEntity:
    return PaymentEntity(
        id=row.id,
        invoice_id=row.invoice_id,
        payment_reference=row.payment_reference,
        amount=row.amount,
        currency=row.currency,
        status=row.status,
        gateway_session_token=row.gateway_session_token,
        gateway_transaction_id=row.gateway_transaction_id,
        paid_order_id=row.paid_order_id,
        payment_method=row.payment_method,
        payment_method_details=json.loads(row.payment_method_details) if row.payment_method_details else None,
        payment_date=row.payment_date,
        attempts=[_attempt_entity(a) for a in row.attempts],
    )


def _invoice_entity(row: Invoice) -> InvoiceEntity:
    return InvoiceEntity(
        id=row.id,
        invoice_number=row.invoice_number,
        customer_id=row.customer_id,
        org_id=row.org_id,
        scope=row.scope,
        course_id=row.course_id,
        subject_id=row.subject_id,
        pricing_id=row.pricing_id,
        subtotal=row.subtotal,
        tax_amount=row.tax_amount,
        discount_amount=row.discount_amount,
        total_amount=row.total_amount,
        currency=row.currency,
        status=row.status,
        status_reason=row.status_reason,
        created_at=row.created_at,
        paid_at=row.paid_at,
        items=[
            InvoiceItemEntity(
                id=item.id,
                item_type=item.item_type,
                item_name=item.item_name,
                item_description=item.item_description,
                course_id=item.course_id,
                subject_id=item.subject_id,
                quantity=item.quantity,
                unit_price=item.unit_price,
                line_total=item.line_total,
            )
            for item in row.items
        ],
        payments=[_payment_entity(p) for p in row.payments],
    )


class SqlInvoiceLedger(InvoiceLedger):
    def __init__(self, session: AsyncSession):
        self._session = session

    def _invoice_query(self):
        return (
            select(Invoice)
            .options(
                selectinload(Invoice.items),
                selectinload(Invoice.payments).selectinload(InvoicePayment.attempts),
            )
            .execution_options(populate_existing=True)
        )

    async def _load_invoice(self, invoice_id: int) -> Optional[Invoice]:
        stmt = self._invoice_query().where(Invoice.id == invoice_id)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def _load_payment(self, payment_id: int) -> InvoicePayment:
        stmt = (
            select(InvoicePayment)
            .where(InvoicePayment.id == payment_id)
            .options(selectinload(InvoicePayment.attempts), selectinload(InvoicePayment.invoice))
            .execution_options(populate_existing=True)
        )
        return (await self._session.execute(stmt)).scalar_one()

    async def create_invoice(self, customer: CustomerEntity, pricing: PricingPlanEntity,
                             payment_reference: str, payment_gateway: str = "CASHFREE") -> InvoiceEntity:
        amount = Decimal(pricing.amount)
        kind = "course" if pricing.scope == PurchaseScope.COURSE else "subject"
        invoice = Invoice(
            invoice_number=_invoice_number(),
            customer_id=customer.id,
            org_id=customer.org_id,
            scope=pricing.scope,
            course_id=pricing.course_id if pricing.scope == PurchaseScope.COURSE else None,
            subject_id=pricing.subject_id if pricing.scope == PurchaseScope.SUBJECT else None,
            pricing_id=pricing.id,
            subtotal=amount,
            tax_amount=Decimal("0"),
            discount_amount=Decimal("0"),
            total_amount=amount,
            currency=pricing.currency,
            status=InvoiceStatus.PENDING,
        )
        invoice.items.append(InvoiceItem(
            item_type=pricing.scope,
            item_name=pricing.name or f"{kind.capitalize()} Purchase",
            item_description=f"Purchase of {kind}: {pricing.target_name}",
            course_id=pricing.course_id,
            subject_id=pricing.subject_id,
            quantity=1,
            unit_price=amount,
            line_total=amount,
        ))
        payment = InvoicePayment(
            payment_reference=payment_reference,
            payment_gateway=payment_gateway,
            amount=amount,
            currency=pricing.currency,
            status=PaymentStatus.PENDING,
        )
        payment.attempts.append(PaymentAttempt(order_id=payment_reference, status=AttemptStatus.PENDING))
        invoice.payments.append(payment)

        self._session.add(invoice)
        await self._session.flush()
        logger.debug(f"청구서 생성: {invoice.invoice_number} customer={customer.id} {amount} {pricing.currency}")
        return _invoice_entity(await self._load_invoice(invoice.id))

    async def get_invoice(self, invoice_id: int) -> Optional[InvoiceEntity]:
        row = await self._load_invoice(invoice_id)
        return _invoice_entity(row) if row else None

    async def find_by_order_id(self, order_id: str) -> Optional[PaymentLookup]:
        payment_id = (await self._session.execute(
            select(InvoicePayment.id).where(InvoicePayment.payment_reference == order_id)
        )).scalar_one_or_none()
        if payment_id is None:
            # 재시도로 대체된 과거 주문 ID
            payment_id = (await self._session.execute(
                select(PaymentAttempt.payment_id).where(PaymentAttempt.order_id == order_id)
            )).scalar_one_or_none()
        if payment_id is None:
            return None

        payment = await self._load_payment(payment_id)
        invoice = _invoice_entity(await self._load_invoice(payment.invoice_id))
        payment_entity = next(p for p in invoice.payments if p.id == payment_id)
        attempt = next((a for a in payment_entity.attempts if a.order_id == order_id), None)
        return PaymentLookup(order_id=order_id, invoice=invoice, payment=payment_entity, attempt=attempt)

    async def attach_session(self, payment_id: int, order_id: str, session_token: Optional[str]) -> None:
        payment = await self._load_payment(payment_id)
        payment.gateway_session_token = session_token
        for attempt in payment.attempts:
            if attempt.order_id == order_id:
                attempt.session_token = session_token
        await self._session.flush()

    async def rebind_payment(self, payment_id: int, new_order_id: str,
                             session_token: Optional[str]) -> None:
        payment = await self._load_payment(payment_id)
        now = datetime.utcnow()
        for attempt in payment.attempts:
            if attempt.status == AttemptStatus.PENDING:
                attempt.status = AttemptStatus.SUPERSEDED
                attempt.completed_at = now

        old_reference = payment.payment_reference
        payment.payment_reference = new_order_id
        payment.status = PaymentStatus.PENDING
        payment.gateway_session_token = session_token
        payment.gateway_transaction_id = None
        payment.attempts.append(PaymentAttempt(
            order_id=new_order_id, status=AttemptStatus.PENDING,
            session_token=session_token, is_retry=True,
        ))

        invoice = payment.invoice
        if invoice.status in (InvoiceStatus.FAILED, InvoiceStatus.CANCELLED):
            # 재시도는 같은 청구서를 다시 연다
            invoice.status = InvoiceStatus.PENDING
            invoice.status_reason = None
        await self._session.flush()
        logger.debug(f"결제 참조 교체: payment={payment_id} {old_reference} → {new_order_id}")

    async def mark_paid(self, invoice_id: int, details: PaidDetails) -> bool:
        # 결제 완료 증거는 실패/취소 상태보다 우선한다. PAID 는 다시 바뀌지 않는다
        result = await self._session.execute(
            update(Invoice)
            .where(Invoice.id == invoice_id, Invoice.status != InvoiceStatus.PAID)
            .values(status=InvoiceStatus.PAID, paid_at=datetime.utcnow(), status_reason=None)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            # 이 주문의 결제도 시도 기록에는 남긴다 (다른 주문으로 이미 결제됐다면 중복 결제)
            await self.close_attempt(details.order_id, AttemptStatus.SUCCESS,
                                     transaction_id=details.transaction_id)
            logger.debug(f"이미 결제 완료된 청구서: invoice={invoice_id} order={details.order_id}")
            return False

        invoice = await self._load_invoice(invoice_id)
        payment = self._payment_for(invoice, details.order_id)
        payment.status = PaymentStatus.SUCCESS
        payment.gateway_transaction_id = details.transaction_id
        payment.paid_order_id = details.order_id
        payment.payment_method = details.payment_method
        payment.payment_method_details = _json_or_none(details.method_details)
        payment.metadata_json = _json_or_none(details.metadata)
        payment.payment_date = datetime.utcnow()
        await self._session.flush()
        await self.close_attempt(details.order_id, AttemptStatus.SUCCESS,
                                 transaction_id=details.transaction_id)
        logger.info(f"청구서 결제 완료: {invoice.invoice_number} order={details.order_id} "
                    f"tx={details.transaction_id}")
        return True

    async def mark_failed(self, invoice_id: int, reason: str) -> bool:
        return await self._close_invoice(invoice_id, InvoiceStatus.FAILED, PaymentStatus.FAILED,
                                         AttemptStatus.FAILED, reason)

    async def mark_cancelled(self, invoice_id: int, reason: str) -> bool:
        return await self._close_invoice(invoice_id, InvoiceStatus.CANCELLED, PaymentStatus.CANCELLED,
                                         AttemptStatus.CANCELLED, reason)

    async def _close_invoice(self, invoice_id: int, invoice_status: InvoiceStatus,
                             payment_status: PaymentStatus, attempt_status: AttemptStatus,
                             reason: str) -> bool:
        result = await self._session.execute(
            update(Invoice)
            .where(Invoice.id == invoice_id, Invoice.status.in_(_OPEN_INVOICE_STATUSES))
            .values(status=invoice_status, status_reason=reason)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.debug(f"종료 상태 청구서: {invoice_status.value} 전이 생략: invoice={invoice_id}")
            return False

        invoice = await self._load_invoice(invoice_id)
        for payment in invoice.payments:
            if payment.status == PaymentStatus.PENDING:
                payment.status = payment_status
            await self.close_attempt(payment.payment_reference, attempt_status, reason)
        await self._session.flush()
        logger.info(f"청구서 {invoice_status.value}: {invoice.invoice_number} 사유={reason}")
        return True

    async def close_attempt(self, order_id: str, status: AttemptStatus,
                            reason: Optional[str] = None,
                            transaction_id: Optional[str] = None) -> None:
        # 결제 완료는 대체된 시도도 닫는다. 그 외 전이는 PENDING 시도만
        closable = [AttemptStatus.PENDING]
        if status == AttemptStatus.SUCCESS:
            closable.append(AttemptStatus.SUPERSEDED)
        await self._session.execute(
            update(PaymentAttempt)
            .where(PaymentAttempt.order_id == order_id, PaymentAttempt.status.in_(closable))
            .values(status=status, failure_reason=reason, transaction_id=transaction_id,
                    completed_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )

    async def list_by_customer(self, customer_id: int) -> List[InvoiceEntity]:
        stmt = self._invoice_query().where(Invoice.customer_id == customer_id).order_by(Invoice.id.desc())
        return [_invoice_entity(row) for row in (await self._session.execute(stmt)).scalars().all()]

    @staticmethod
    def _payment_for(invoice: Invoice, order_id: str) -> InvoicePayment:
        for payment in invoice.payments:
            if payment.payment_reference == order_id:
                return payment
        for payment in invoice.payments:
            if any(a.order_id == order_id for a in payment.attempts):
                return payment
        return invoice.payments[0]
