"""청구서/결제 ORM 모델"""
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Text, Numeric, ForeignKey, Enum,
)
from sqlalchemy.orm import relationship
from infrastructure.persistence.database import Base
from domain.enums import PurchaseScope, InvoiceStatus, PaymentStatus, AttemptStatus, PaymentMethod


class Invoice(Base):
    __tablename__ = "invoices"
    id = Column(Integer, primary_key=True, index=True)
    invoice_number = Column(String(50), unique=True, nullable=False)
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    org_id = Column(Integer, nullable=True)
    scope = Column(Enum(PurchaseScope), nullable=False)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=True)
    subject_id = Column(Integer, ForeignKey("subjects.id"), nullable=True)
    pricing_id = Column(Integer, ForeignKey("pricing_plans.id"), nullable=True)
    subtotal = Column(Numeric(10, 2), nullable=False)
    tax_amount = Column(Numeric(10, 2), default=0, nullable=False)
    discount_amount = Column(Numeric(10, 2), default=0, nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), default="INR", nullable=False)
    status = Column(Enum(InvoiceStatus), default=InvoiceStatus.PENDING, nullable=False)
    status_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    paid_at = Column(DateTime, nullable=True)
    customer = relationship("User", back_populates="invoices")
    items = relationship("InvoiceItem", back_populates="invoice", cascade="all, delete-orphan",
                         order_by="InvoiceItem.id")
    payments = relationship("InvoicePayment", back_populates="invoice", cascade="all, delete-orphan",
                            order_by="InvoicePayment.id")

    def __repr__(self):
        return f"<Invoice {self.invoice_number} - {self.status}>"


class InvoiceItem(Base):
    __tablename__ = "invoice_items"
    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False)
    item_type = Column(Enum(PurchaseScope), nullable=False)
    item_name = Column(String(200), nullable=False)
    item_description = Column(Text, nullable=True)
    course_id = Column(Integer, nullable=True)
    subject_id = Column(Integer, nullable=True)
    quantity = Column(Integer, default=1, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    line_total = Column(Numeric(10, 2), nullable=False)
    invoice = relationship("Invoice", back_populates="items")


class InvoicePayment(Base):
    __tablename__ = "invoice_payments"
    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False)
    # 현재 게이트웨이 주문 ID. 재시도 시 새 주문 ID로 교체된다 (이력은 payment_attempts)
    payment_reference = Column(String(100), unique=True, nullable=False)
    payment_gateway = Column(String(30), default="CASHFREE", nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), default="INR", nullable=False)
    status = Column(Enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False)
    gateway_session_token = Column(String(500), nullable=True)
    gateway_transaction_id = Column(String(100), nullable=True)
    # 청구서를 PAID 로 만든 게이트웨이 주문 ID
    paid_order_id = Column(String(100), nullable=True)
    payment_method = Column(Enum(PaymentMethod), nullable=True)
    payment_method_details = Column(Text, nullable=True)
    metadata_json = Column(Text, nullable=True)
    payment_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    invoice = relationship("Invoice", back_populates="payments")
    attempts = relationship("PaymentAttempt", back_populates="payment", cascade="all, delete-orphan",
                            order_by="PaymentAttempt.id")

    def __repr__(self):
        return f"<InvoicePayment {self.payment_reference} - {self.status}>"


class PaymentAttempt(Base):
    """게이트웨이 주문 1건의 기록.

    종료 상태가 되면 변경하지 않는다. 예외는 대체(SUPERSEDED)된 시도의 결제 완료로,
    실제로 돈이 들어온 시도는 SUCCESS 와 거래 ID를 남긴다.
    """
    __tablename__ = "payment_attempts"
    id = Column(Integer, primary_key=True, index=True)
    payment_id = Column(Integer, ForeignKey("invoice_payments.id", ondelete="CASCADE"), nullable=False)
    order_id = Column(String(100), unique=True, nullable=False)
    status = Column(Enum(AttemptStatus), default=AttemptStatus.PENDING, nullable=False)
    session_token = Column(String(500), nullable=True)
    is_retry = Column(Boolean, default=False, nullable=False)
    transaction_id = Column(String(100), nullable=True)
    failure_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    payment = relationship("InvoicePayment", back_populates="attempts")

    def __repr__(self):
        return f"<PaymentAttempt {self.order_id} - {self.status}>"
