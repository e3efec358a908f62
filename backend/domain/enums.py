"""도메인 열거형"""
import enum


class UserRole(str, enum.Enum):
    STUDENT = "STUDENT"
    TEACHER = "TEACHER"
    ADMIN = "ADMIN"


class PurchaseScope(str, enum.Enum):
    COURSE = "COURSE"
    SUBJECT = "SUBJECT"


class InvoiceStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class AttemptStatus(str, enum.Enum):
    """게이트웨이 주문 1건의 상태"""
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    SUPERSEDED = "SUPERSEDED"  # 재시도로 새 주문이 발급됨


class PaymentMethod(str, enum.Enum):
    CARD = "CARD"
    UPI = "UPI"
    NETBANKING = "NETBANKING"
    OTHER = "OTHER"


class SubscriptionStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"


class SubscriptionType(str, enum.Enum):
    FREE = "FREE"
    PAID = "PAID"


class GatewayOrderStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    PAID = "PAID"
    FAILED = "FAILED"
    USER_DROPPED = "USER_DROPPED"
    EXPIRED = "EXPIRED"
    TERMINATED = "TERMINATED"
    UNKNOWN = "UNKNOWN"


class WebhookEventType(str, enum.Enum):
    PAYMENT_SUCCESS = "PAYMENT_SUCCESS_WEBHOOK"
    PAYMENT_FAILED = "PAYMENT_FAILED_WEBHOOK"
    TEST = "TEST_WEBHOOK"
    GENERIC_TEST = "WEBHOOK"


class WebhookProcessingStatus(str, enum.Enum):
    STORED = "STORED"
    PROCESSED = "PROCESSED"
    IGNORED = "IGNORED"
    FAILED = "FAILED"


class OrderResolution(str, enum.Enum):
    """사용자에게 노출되는 주문 최종 상태"""
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    PENDING = "PENDING"
