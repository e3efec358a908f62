"""결제 상태 판정 규칙 (순수 함수)"""
import uuid
from datetime import datetime
from typing import Optional, Dict, Any

from domain.enums import (
    GatewayOrderStatus, PaymentStatus, InvoiceStatus, AttemptStatus,
    PaymentMethod, OrderResolution,
)

_GATEWAY_FAILURE_STATUSES = {
    GatewayOrderStatus.FAILED.value,
    GatewayOrderStatus.USER_DROPPED.value,
    GatewayOrderStatus.EXPIRED.value,
}


def generate_order_id(prefix: str = "ORD") -> str:
    """게이트웨이 주문번호 생성 (영숫자, '-' 만 사용, 45자 이내)"""
    timestamp = datetime.now().strftime("%Y%m%d%H%M%S")
    unique = uuid.uuid4().hex[:8]
    return f"{prefix}-{timestamp}-{unique}"


def normalize_payment_method(method: Optional[Dict[str, Any]]) -> PaymentMethod:
    """게이트웨이의 중첩 결제수단 객체를 열거형으로 변환"""
    if not method:
        return PaymentMethod.OTHER
    if method.get("card"):
        return PaymentMethod.CARD
    if method.get("upi"):
        return PaymentMethod.UPI
    if method.get("netbanking"):
        return PaymentMethod.NETBANKING
    return PaymentMethod.OTHER


def resolve_order_status(gateway_status: Optional[str],
                         payment_status: Optional[PaymentStatus],
                         invoice_status: Optional[InvoiceStatus]) -> OrderResolution:
    """게이트웨이 > 로컬 결제 > 로컬 청구서 순으로 최종 상태를 결정한다.

    게이트웨이가 실시간 기준이지만 조회에 실패할 수 있으므로, 그때는
    webhook 경로로 갱신된 로컬 상태가 기준이 된다.
    """
    if gateway_status == GatewayOrderStatus.PAID.value:
        return OrderResolution.SUCCESS
    if gateway_status in _GATEWAY_FAILURE_STATUSES:
        # 사용자 이탈/만료도 실패로 보고 즉시 재시도할 수 있게 한다
        return OrderResolution.FAILED
    if payment_status == PaymentStatus.SUCCESS:
        return OrderResolution.SUCCESS
    if payment_status == PaymentStatus.FAILED:
        return OrderResolution.FAILED
    if invoice_status == InvoiceStatus.PAID:
        return OrderResolution.SUCCESS
    if invoice_status in (InvoiceStatus.CANCELLED, InvoiceStatus.FAILED):
        return OrderResolution.FAILED
    return OrderResolution.PENDING


def attempt_as_payment_status(status: AttemptStatus) -> PaymentStatus:
    """대체된 과거 주문을 조회할 때 사용하는 결제 상태"""
    if status == AttemptStatus.SUCCESS:
        return PaymentStatus.SUCCESS
    if status == AttemptStatus.PENDING:
        return PaymentStatus.PENDING
    if status == AttemptStatus.CANCELLED:
        return PaymentStatus.CANCELLED
    return PaymentStatus.FAILED
