"""헬스 체크 라우터"""
from fastapi import APIRouter
from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from config import settings
from infrastructure.persistence.database import engine

router = APIRouter(tags=["시스템"])


@router.get("/health")
async def health_check():
    database = "ok"
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"헬스 체크 DB 연결 실패: {e}")
        database = "unavailable"

    return {
        "status": "healthy" if database == "ok" else "degraded",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "database": database,
        "gateway": settings.CASHFREE_ENVIRONMENT,
    }


@router.get("/")
async def root():
    return {"service": settings.APP_NAME, "docs": "/docs", "health": "/health"}
