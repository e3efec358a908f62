"""카탈로그 ORM 모델: 강좌/과목/가격 플랜 (카탈로그 서비스가 관리, 여기서는 읽기 전용)"""
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Numeric, ForeignKey, Enum, Table,
)
from sqlalchemy.orm import relationship
from infrastructure.persistence.database import Base
from domain.enums import PurchaseScope

course_subjects = Table(
    "course_subjects",
    Base.metadata,
    Column("course_id", Integer, ForeignKey("courses.id", ondelete="CASCADE"), primary_key=True),
    Column("subject_id", Integer, ForeignKey("subjects.id", ondelete="CASCADE"), primary_key=True),
)


class Course(Base):
    __tablename__ = "courses"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    org_id = Column(Integer, nullable=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    subjects = relationship("Subject", secondary=course_subjects, order_by="Subject.id")

    def __repr__(self):
        return f"<Course {self.id} - {self.name}>"


class Subject(Base):
    __tablename__ = "subjects"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Subject {self.id} - {self.name}>"


class PricingPlan(Base):
    __tablename__ = "pricing_plans"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    scope = Column(Enum(PurchaseScope), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), default="INR", nullable=False)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=True)
    subject_id = Column(Integer, ForeignKey("subjects.id"), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    course = relationship("Course")
    subject = relationship("Subject")

    def __repr__(self):
        return f"<PricingPlan {self.id} - {self.scope} {self.amount}>"
