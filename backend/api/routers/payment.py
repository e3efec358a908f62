"""결제 라우터"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from domain.entities.invoice import InvoiceEntity
from domain.entities.subscription import SubscriptionEntity
from domain.entities.user import CustomerEntity
from infrastructure.persistence.database import get_session
from infrastructure.persistence.repositories.invoice_ledger import SqlInvoiceLedger
from infrastructure.persistence.repositories.subscription_repository import SqlSubscriptionRepository
from application.use_cases.start_purchase import StartPurchaseUseCase, StartPurchaseInput
from application.use_cases.resolve_order_status import ResolveOrderStatusUseCase
from application.use_cases.resume_payment import ResumePaymentUseCase, CancelPaymentUseCase
from application.use_cases.finalize_subscription import FinalizeSubscriptionUseCase
from api.schemas.common import ResponseBase
from api.schemas.payment import (
    CreateOrderRequest, CreateOrderResponse, OrderRequest, OrderStatusResponse,
    ResumeResponse, FinalizeResponse, InvoiceOut, InvoiceItemOut, PaymentOut,
    PaymentAttemptOut, PaymentHistoryResponse,
)
from api.schemas.subscription import SubscriptionOut, MySubscriptionsResponse
from api.dependencies import (
    get_current_customer, get_start_purchase, get_order_resolver, get_resume_payment,
    get_cancel_payment, get_finalize_subscription,
)

router = APIRouter(prefix="/api/payment", tags=["결제"])


def _enum_value(value):
    return value.value if value is not None else None


def invoice_out(invoice: InvoiceEntity) -> InvoiceOut:
    return InvoiceOut(
        id=invoice.id,
        invoice_number=invoice.invoice_number,
        scope=invoice.scope.value,
        status=invoice.status.value,
        status_reason=invoice.status_reason,
        subtotal=invoice.subtotal,
        tax_amount=invoice.tax_amount,
        discount_amount=invoice.discount_amount,
        total_amount=invoice.total_amount,
        currency=invoice.currency,
        created_at=invoice.created_at,
        paid_at=invoice.paid_at,
        items=[InvoiceItemOut(item_type=i.item_type.value, item_name=i.item_name,
                              item_description=i.item_description, quantity=i.quantity,
                              unit_price=i.unit_price, line_total=i.line_total)
               for i in invoice.items],
        payments=[PaymentOut(
            payment_reference=p.payment_reference, amount=p.amount, currency=p.currency,
            status=p.status.value, payment_method=_enum_value(p.payment_method),
            gateway_transaction_id=p.gateway_transaction_id, payment_date=p.payment_date,
            attempts=[PaymentAttemptOut(order_id=a.order_id, status=a.status.value, is_retry=a.is_retry,
                                        transaction_id=a.transaction_id, failure_reason=a.failure_reason,
                                        created_at=a.created_at, completed_at=a.completed_at)
                      for a in p.attempts],
        ) for p in invoice.payments],
    )


def subscription_out(sub: SubscriptionEntity) -> SubscriptionOut:
    return SubscriptionOut(
        id=sub.id, scope=sub.scope.value, course_id=sub.course_id, subject_ids=sub.subject_ids,
        subscription_type=sub.subscription_type.value, status=sub.status.value,
        start_date=sub.start_date, end_date=sub.end_date, next_billing_date=sub.next_billing_date,
        auto_renew=sub.auto_renew, amount_paid=sub.amount_paid,
        payment_method=_enum_value(sub.payment_method), gateway_order_id=sub.gateway_order_id,
    )


@router.post("/create-order", response_model=CreateOrderResponse)
async def create_order(request: CreateOrderRequest,
                       customer: CustomerEntity = Depends(get_current_customer),
                       use_case: StartPurchaseUseCase = Depends(get_start_purchase)):
    result = await use_case.execute(StartPurchaseInput(customer=customer, pricing_id=request.pricing_id,
                                                       scope=request.scope))
    return CreateOrderResponse(order_id=result.order_id, gateway_session_token=result.gateway_session_token,
                               amount=result.amount, currency=result.currency, invoice_id=result.invoice_id)


@router.get("/order/{order_id}", response_model=OrderStatusResponse)
async def get_order_status(order_id: str,
                           customer: CustomerEntity = Depends(get_current_customer),
                           use_case: ResolveOrderStatusUseCase = Depends(get_order_resolver)):
    result = await use_case.execute(order_id, customer)
    return OrderStatusResponse(order_id=result.order_id, amount=result.amount, currency=result.currency,
                               status=result.status.value, gateway_status=result.gateway_status,
                               item_name=result.item_name)


@router.post("/resume", response_model=ResumeResponse)
async def resume_payment(request: OrderRequest,
                         customer: CustomerEntity = Depends(get_current_customer),
                         use_case: ResumePaymentUseCase = Depends(get_resume_payment)):
    result = await use_case.execute(request.order_id, customer)
    return ResumeResponse(status=result.status, order_id=result.order_id, amount=result.amount,
                          currency=result.currency, gateway_session_token=result.gateway_session_token)


@router.post("/cancel", response_model=ResponseBase)
async def cancel_payment(request: OrderRequest,
                         customer: CustomerEntity = Depends(get_current_customer),
                         use_case: CancelPaymentUseCase = Depends(get_cancel_payment)):
    await use_case.execute(request.order_id, customer)
    return ResponseBase(success=True, message="결제가 취소되었습니다.")


@router.post("/finalize-subscription", response_model=FinalizeResponse)
async def finalize_subscription(request: OrderRequest,
                                customer: CustomerEntity = Depends(get_current_customer),
                                use_case: FinalizeSubscriptionUseCase = Depends(get_finalize_subscription)):
    result = await use_case.execute(request.order_id, customer)
    return FinalizeResponse(subscription_id=result.subscription_id, already_existed=result.already_existed)


@router.get("/history", response_model=PaymentHistoryResponse)
async def get_payment_history(customer: CustomerEntity = Depends(get_current_customer),
                              session: AsyncSession = Depends(get_session)):
    invoices = await SqlInvoiceLedger(session).list_by_customer(customer.id)
    items = [invoice_out(invoice) for invoice in invoices]
    return PaymentHistoryResponse(success=True, items=items, total=len(items))


@router.get("/my-subscriptions", response_model=MySubscriptionsResponse)
async def get_my_subscriptions(customer: CustomerEntity = Depends(get_current_customer),
                               session: AsyncSession = Depends(get_session)):
    subscriptions = await SqlSubscriptionRepository(session).list_active_by_user(customer.id)
    items = [subscription_out(sub) for sub in subscriptions]
    return MySubscriptionsResponse(success=True, items=items, total=len(items))
