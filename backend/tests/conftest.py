import os

# 설정 로딩 전에 테스트용 DB 지정
os.environ.setdefault("DB_URL", "sqlite+aiosqlite://")

from decimal import Decimal
from types import SimpleNamespace

import pytest
import pytest_asyncio

from domain.entities.user import CustomerEntity
from domain.enums import PurchaseScope, UserRole
from application.use_cases.grant_subscription import GrantSubscriptionUseCase
from application.use_cases.settle_payment import SettlePaymentUseCase
from application.use_cases.start_purchase import StartPurchaseUseCase
from application.use_cases.process_webhook import WebhookProcessor
from application.use_cases.resolve_order_status import ResolveOrderStatusUseCase
from application.use_cases.resume_payment import ResumePaymentUseCase, CancelPaymentUseCase
from application.use_cases.finalize_subscription import FinalizeSubscriptionUseCase
from application.use_cases.sync_subscriptions import SubscriptionSyncService
from infrastructure.persistence.database import build_engine, build_session_factory, init_db, session_scope
from infrastructure.persistence.models import User, Course, Subject, PricingPlan
from infrastructure.persistence.repositories.catalog_repository import SqlCatalogRepository
from infrastructure.persistence.repositories.invoice_ledger import SqlInvoiceLedger
from infrastructure.persistence.repositories.subscription_repository import SqlSubscriptionRepository
from infrastructure.persistence.repositories.transaction import SqlTransactionManager
from infrastructure.persistence.repositories.webhook_event_repository import SqlWebhookEventRepository
from tests.fakes import FakeGateway

STUDENT_ID = 1
OTHER_STUDENT_ID = 2
ADMIN_ID = 3
COURSE_ID = 10
SUBJECT_IDS = [101, 102, 103]
STANDALONE_SUBJECT_ID = 104
COURSE_PLAN_ID = 1
FREE_SUBJECT_PLAN_ID = 2
SUBJECT_PLAN_ID = 3


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """테스트마다 새 메모리 DB"""
    engine = build_engine("sqlite+aiosqlite://")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return build_session_factory(db_engine)


async def seed_catalog(session_factory) -> SimpleNamespace:
    """사용자 3명, 과목 3개짜리 강좌 1개, 단독 과목 1개, 가격 플랜 3개"""
    async with session_scope(session_factory) as session:
        session.add_all([
            User(id=STUDENT_ID, email="student@example.com", username="student", phone="9000000001"),
            User(id=OTHER_STUDENT_ID, email="other@example.com", username="other"),
            User(id=ADMIN_ID, email="admin@example.com", username="admin", role=UserRole.ADMIN),
        ])
        subjects = [Subject(id=sid, name=f"Subject {sid}") for sid in SUBJECT_IDS]
        standalone = Subject(id=STANDALONE_SUBJECT_ID, name="Standalone")
        session.add_all(subjects + [standalone])
        session.add(Course(id=COURSE_ID, name="Physics", subjects=subjects))
        await session.flush()
        session.add_all([
            PricingPlan(id=COURSE_PLAN_ID, name="Physics Full Course", scope=PurchaseScope.COURSE,
                        amount=Decimal("499.00"), course_id=COURSE_ID),
            PricingPlan(id=FREE_SUBJECT_PLAN_ID, name="Standalone Free", scope=PurchaseScope.SUBJECT,
                        amount=Decimal("0"), subject_id=STANDALONE_SUBJECT_ID),
            PricingPlan(id=SUBJECT_PLAN_ID, name="Mechanics", scope=PurchaseScope.SUBJECT,
                        amount=Decimal("199.00"), subject_id=SUBJECT_IDS[0]),
        ])
    return SimpleNamespace(course_id=COURSE_ID, subject_ids=list(SUBJECT_IDS),
                           standalone_subject_id=STANDALONE_SUBJECT_ID)


@pytest_asyncio.fixture
async def seeded(session_factory):
    return await seed_catalog(session_factory)


@pytest_asyncio.fixture
async def session(session_factory, seeded):
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def student():
    return CustomerEntity(id=STUDENT_ID, name="student", email="student@example.com", phone="9000000001")


@pytest.fixture
def other_student():
    return CustomerEntity(id=OTHER_STUDENT_ID, name="other", email="other@example.com")


@pytest.fixture
def admin():
    return CustomerEntity(id=ADMIN_ID, name="admin", email="admin@example.com", role=UserRole.ADMIN.value)


def build_services(session, gateway, allow_unsigned: bool = False) -> SimpleNamespace:
    """한 세션 위에서 유스케이스 전체를 조립"""
    catalog = SqlCatalogRepository(session)
    ledger = SqlInvoiceLedger(session)
    subscriptions = SqlSubscriptionRepository(session)
    events = SqlWebhookEventRepository(session)
    tx = SqlTransactionManager(session)
    grant = GrantSubscriptionUseCase(catalog, subscriptions, validity_days=365)
    settlement = SettlePaymentUseCase(ledger, grant)
    return SimpleNamespace(
        catalog=catalog,
        ledger=ledger,
        subscriptions=subscriptions,
        events=events,
        tx=tx,
        grant=grant,
        settlement=settlement,
        start=StartPurchaseUseCase(catalog, ledger, subscriptions, gateway),
        processor=WebhookProcessor(gateway, ledger, settlement, events, tx, allow_unsigned=allow_unsigned),
        resolver=ResolveOrderStatusUseCase(gateway, ledger, settlement, tx),
        resume=ResumePaymentUseCase(gateway, ledger, settlement),
        cancel=CancelPaymentUseCase(ledger),
        finalize=FinalizeSubscriptionUseCase(gateway, ledger, subscriptions, settlement),
        sync=SubscriptionSyncService(catalog, subscriptions),
    )


@pytest.fixture
def services(session, gateway):
    return build_services(session, gateway)
