"""사용자 ORM 모델 (인증 서비스가 관리, 여기서는 결제 고객 조회용)"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum
from sqlalchemy.orm import relationship
from infrastructure.persistence.database import Base
from domain.enums import UserRole


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    username = Column(String(100), nullable=False)
    phone = Column(String(20), nullable=True)
    org_id = Column(Integer, nullable=True, index=True)
    role = Column(Enum(UserRole), default=UserRole.STUDENT, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    invoices = relationship("Invoice", back_populates="customer")
    subscriptions = relationship("UserSubscription", back_populates="user")

    def __repr__(self):
        return f"<User {self.email}>"
