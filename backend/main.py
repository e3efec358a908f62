"""
교육 플랫폼 결제/구독 서비스 - FastAPI 메인 애플리케이션
"""
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from config import settings
from infrastructure.persistence.database import init_db
from api.errors import register_exception_handlers
from api.routers import health, payment, webhook, subscription

# 로깅 설정
os.makedirs("./logs", exist_ok=True)
logger.add(
    settings.LOG_FILE,
    rotation="10 MB",
    retention="30 days",
    level=settings.LOG_LEVEL
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """애플리케이션 수명 주기 관리"""
    logger.info("서비스 시작...")
    await init_db()
    logger.info(f"데이터베이스 초기화 완료 (Cashfree {settings.CASHFREE_ENVIRONMENT})")
    if settings.WEBHOOK_ALLOW_UNSIGNED:
        if settings.is_production:
            logger.warning("WEBHOOK_ALLOW_UNSIGNED 설정은 운영 환경에서 무시됩니다.")
        else:
            logger.warning("webhook 서명 우회가 활성화되어 있습니다 (비운영 환경 전용)")

    yield

    logger.info("서비스 종료...")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="강좌/과목 구매 → 결제 → 구독 부여",
    lifespan=lifespan
)

# CORS 설정
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(health.router)
app.include_router(payment.router)
app.include_router(webhook.router)
app.include_router(subscription.router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)
