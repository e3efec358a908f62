"""사용자 구독 ORM 모델"""
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Numeric, ForeignKey, Enum, Table, Index, text,
)
from sqlalchemy.orm import relationship
from infrastructure.persistence.database import Base
from domain.enums import PurchaseScope, SubscriptionStatus, SubscriptionType, PaymentMethod

subscription_subjects = Table(
    "subscription_subjects",
    Base.metadata,
    Column("subscription_id", Integer, ForeignKey("user_subscriptions.id", ondelete="CASCADE"),
           primary_key=True),
    Column("subject_id", Integer, ForeignKey("subjects.id", ondelete="CASCADE"), primary_key=True),
)


class UserSubscription(Base):
    __tablename__ = "user_subscriptions"
    __table_args__ = (
        # 사용자당 같은 대상의 활성 구독은 1건
        Index(
            "uq_user_subscriptions_active_target",
            "user_id", "target_key",
            unique=True,
            sqlite_where=text("status = 'ACTIVE'"),
            postgresql_where=text("status = 'ACTIVE'"),
        ),
    )
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    org_id = Column(Integer, nullable=True)
    scope = Column(Enum(PurchaseScope), nullable=False)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=True, index=True)
    target_key = Column(String(50), nullable=False)
    subscription_type = Column(Enum(SubscriptionType), nullable=False)
    status = Column(Enum(SubscriptionStatus), default=SubscriptionStatus.ACTIVE, nullable=False)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    next_billing_date = Column(DateTime, nullable=True)
    last_payment_at = Column(DateTime, nullable=True)
    auto_renew = Column(Boolean, default=False, nullable=False)
    # 멱등성 키
    gateway_order_id = Column(String(100), unique=True, nullable=True)
    transaction_id = Column(String(100), unique=True, nullable=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), unique=True, nullable=True)
    pricing_id = Column(Integer, ForeignKey("pricing_plans.id"), nullable=True)
    payment_method = Column(Enum(PaymentMethod), nullable=True)
    amount_paid = Column(Numeric(10, 2), default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    user = relationship("User", back_populates="subscriptions")
    subjects = relationship("Subject", secondary=subscription_subjects, order_by="Subject.id")

    def __repr__(self):
        return f"<UserSubscription {self.id} - {self.target_key} {self.status}>"
