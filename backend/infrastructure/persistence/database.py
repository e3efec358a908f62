"""
데이터베이스 연결 및 세션 관리

새 import 경로: from infrastructure.persistence.database import Base, get_session
"""
import os
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, AsyncEngine, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from config import settings

os.makedirs("./data", exist_ok=True)
os.makedirs("./logs", exist_ok=True)


def build_engine(url: str, echo: bool = False, busy_timeout: float = None) -> AsyncEngine:
    """비동기 엔진 생성

    SQLite 는 pysqlite 드라이버의 자체 트랜잭션 처리 때문에 SAVEPOINT 가
    제대로 동작하지 않는다. 드라이버 트랜잭션을 끄고 BEGIN 을 직접 발행한다.

    트랜잭션은 BEGIN IMMEDIATE 로 시작해 처음부터 쓰기 잠금을 잡는다. 동시에 들어온
    트랜잭션은 busy timeout 동안 순서대로 대기한다.
    """
    if not url.startswith("sqlite"):
        return create_async_engine(url, echo=echo, future=True, pool_size=5, max_overflow=10)

    options = {"echo": echo, "future": True}
    connect_args = {"timeout": busy_timeout if busy_timeout is not None else settings.DB_BUSY_TIMEOUT}
    if ":memory:" in url or url.rstrip("/").endswith("sqlite+aiosqlite:"):
        # 메모리 DB 는 연결마다 별도 DB 가 되므로 연결 하나를 공유 (테스트 전용, 동시 세션 불가)
        connect_args["check_same_thread"] = False
        options["poolclass"] = StaticPool
    engine = create_async_engine(url, connect_args=connect_args, **options)

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False
    )


engine = build_engine(settings.DB_URL, echo=settings.DEBUG and settings.LOG_LEVEL == "TRACE",
                      busy_timeout=settings.DB_BUSY_TIMEOUT)
async_session_factory = build_session_factory(engine)

Base = declarative_base()


async def init_db(bind: AsyncEngine = None):
    """데이터베이스 초기화"""
    # 모든 모델을 메타데이터에 등록
    import infrastructure.persistence.models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """비동기 세션 의존성"""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def session_scope(factory: async_sessionmaker = None):
    """컨텍스트 매니저 형태의 세션 (요청 세션과 독립된 작업용)"""
    async with (factory or async_session_factory)() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
