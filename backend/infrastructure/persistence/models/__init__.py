"""
ORM 모델: 모든 모델을 re-export
"""
from infrastructure.persistence.database import Base
from infrastructure.persistence.models.user import User
from infrastructure.persistence.models.catalog import Course, Subject, PricingPlan, course_subjects
from infrastructure.persistence.models.invoice import Invoice, InvoiceItem, InvoicePayment, PaymentAttempt
from infrastructure.persistence.models.subscription import UserSubscription, subscription_subjects
from infrastructure.persistence.models.webhook_event import WebhookEvent
