"""
FastAPI 의존성 주입 (Depends)

모든 라우터에서 사용하는 공통 의존성과 유스케이스 조립을 정의한다.
"""
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config import Settings, settings
from domain.enums import UserRole
from domain.entities.user import CustomerEntity
from domain.exceptions import UnauthenticatedError, ForbiddenError
from application.ports.payment_gateway import PaymentGatewayPort
from application.use_cases.grant_subscription import GrantSubscriptionUseCase
from application.use_cases.settle_payment import SettlePaymentUseCase
from application.use_cases.start_purchase import StartPurchaseUseCase
from application.use_cases.process_webhook import WebhookProcessor
from application.use_cases.resolve_order_status import ResolveOrderStatusUseCase
from application.use_cases.resume_payment import ResumePaymentUseCase, CancelPaymentUseCase
from application.use_cases.finalize_subscription import FinalizeSubscriptionUseCase
from application.use_cases.replay_webhook import ReplayWebhookUseCase, ReplayScope
from application.use_cases.sync_subscriptions import SubscriptionSyncService
from infrastructure.auth.jwt_service import decode_access_token
from infrastructure.payment.cashfree_gateway import CashfreeGateway
from infrastructure.persistence.database import get_session, async_session_factory, session_scope
from infrastructure.persistence.models.user import User
from infrastructure.persistence.repositories.catalog_repository import SqlCatalogRepository
from infrastructure.persistence.repositories.invoice_ledger import SqlInvoiceLedger
from infrastructure.persistence.repositories.subscription_repository import SqlSubscriptionRepository
from infrastructure.persistence.repositories.transaction import SqlTransactionManager
from infrastructure.persistence.repositories.webhook_event_repository import SqlWebhookEventRepository

security = HTTPBearer(auto_error=False)


def get_app_settings() -> Settings:
    return settings


def get_session_factory() -> async_sessionmaker:
    return async_session_factory


@lru_cache()
def _cashfree_gateway() -> CashfreeGateway:
    return CashfreeGateway.from_settings()


def get_gateway() -> PaymentGatewayPort:
    return _cashfree_gateway()


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    session: AsyncSession = Depends(get_session)
) -> User:
    """현재 인증된 사용자 반환"""
    if credentials is None:
        raise UnauthenticatedError()

    user_id = decode_access_token(credentials.credentials)
    if user_id is None:
        raise UnauthenticatedError()

    result = await session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise UnauthenticatedError()
    if not user.is_active:
        raise ForbiddenError("비활성화된 계정입니다.")
    return user


def to_customer(user: User) -> CustomerEntity:
    return CustomerEntity(id=user.id, name=user.username, email=user.email, phone=user.phone,
                          org_id=user.org_id, role=user.role.value)


async def get_current_customer(current_user: User = Depends(get_current_user)) -> CustomerEntity:
    return to_customer(current_user)


async def get_admin_user(current_user: User = Depends(get_current_user)) -> User:
    """관리자 사용자 확인"""
    if current_user.role != UserRole.ADMIN:
        raise ForbiddenError("관리자 권한이 필요합니다.")
    return current_user


# ---- 유스케이스 조립 ----

def build_settlement(session: AsyncSession, app_settings: Settings) -> SettlePaymentUseCase:
    subscriptions = SqlSubscriptionRepository(session)
    grant = GrantSubscriptionUseCase(SqlCatalogRepository(session), subscriptions,
                                     validity_days=app_settings.SUBSCRIPTION_VALIDITY_DAYS)
    return SettlePaymentUseCase(SqlInvoiceLedger(session), grant)


def build_webhook_processor(session: AsyncSession, gateway: PaymentGatewayPort,
                            app_settings: Settings) -> WebhookProcessor:
    return WebhookProcessor(
        gateway=gateway,
        ledger=SqlInvoiceLedger(session),
        settlement=build_settlement(session, app_settings),
        events=SqlWebhookEventRepository(session),
        tx=SqlTransactionManager(session),
        allow_unsigned=app_settings.webhook_allow_unsigned,
    )


def get_start_purchase(session: AsyncSession = Depends(get_session),
                       gateway: PaymentGatewayPort = Depends(get_gateway)) -> StartPurchaseUseCase:
    return StartPurchaseUseCase(SqlCatalogRepository(session), SqlInvoiceLedger(session),
                                SqlSubscriptionRepository(session), gateway)


def get_webhook_processor(session: AsyncSession = Depends(get_session),
                          gateway: PaymentGatewayPort = Depends(get_gateway),
                          app_settings: Settings = Depends(get_app_settings)) -> WebhookProcessor:
    return build_webhook_processor(session, gateway, app_settings)


def get_order_resolver(session: AsyncSession = Depends(get_session),
                       gateway: PaymentGatewayPort = Depends(get_gateway),
                       app_settings: Settings = Depends(get_app_settings)) -> ResolveOrderStatusUseCase:
    return ResolveOrderStatusUseCase(gateway, SqlInvoiceLedger(session),
                                     build_settlement(session, app_settings),
                                     SqlTransactionManager(session))


def get_resume_payment(session: AsyncSession = Depends(get_session),
                       gateway: PaymentGatewayPort = Depends(get_gateway),
                       app_settings: Settings = Depends(get_app_settings)) -> ResumePaymentUseCase:
    return ResumePaymentUseCase(gateway, SqlInvoiceLedger(session), build_settlement(session, app_settings))


def get_cancel_payment(session: AsyncSession = Depends(get_session)) -> CancelPaymentUseCase:
    return CancelPaymentUseCase(SqlInvoiceLedger(session))


def get_finalize_subscription(session: AsyncSession = Depends(get_session),
                              gateway: PaymentGatewayPort = Depends(get_gateway),
                              app_settings: Settings = Depends(get_app_settings)) -> FinalizeSubscriptionUseCase:
    return FinalizeSubscriptionUseCase(gateway, SqlInvoiceLedger(session), SqlSubscriptionRepository(session),
                                       build_settlement(session, app_settings))


def get_sync_service(session: AsyncSession = Depends(get_session)) -> SubscriptionSyncService:
    return SubscriptionSyncService(SqlCatalogRepository(session), SqlSubscriptionRepository(session))


def get_replay_webhook(factory: async_sessionmaker = Depends(get_session_factory),
                       gateway: PaymentGatewayPort = Depends(get_gateway),
                       app_settings: Settings = Depends(get_app_settings)) -> ReplayWebhookUseCase:
    """재생 1회마다 요청 세션과 독립된 세션을 연다"""

    @asynccontextmanager
    async def open_scope():
        async with session_scope(factory) as session:
            yield ReplayScope(
                processor=build_webhook_processor(session, gateway, app_settings),
                events=SqlWebhookEventRepository(session),
                subscriptions=SqlSubscriptionRepository(session),
            )

    return ReplayWebhookUseCase(open_scope, testing_enabled=app_settings.WEBHOOK_TESTING_ENABLED,
                                max_replays=app_settings.WEBHOOK_REPLAY_MAX)
