"""
API 스키마 re-export

사용법:
  from api.schemas import CreateOrderRequest, SubscriptionOut
"""
from api.schemas.common import CamelModel, ResponseBase, ErrorResponse
from api.schemas.payment import (
    CreateOrderRequest, CreateOrderResponse, OrderRequest, OrderStatusResponse,
    ResumeResponse, FinalizeResponse, InvoiceItemOut, PaymentAttemptOut, PaymentOut,
    InvoiceOut, PaymentHistoryResponse, WebhookAck, ReplayStormRequest, ReplayResponse,
    SubscriptionCheck, ReplayStormResponse,
)
from api.schemas.subscription import (
    SubscriptionOut, MySubscriptionsResponse, SubjectChanges, SyncStatusResponse,
    CourseSyncResponse,
)
