"""도메인 예외 → HTTP 응답 변환"""
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from loguru import logger

from domain.exceptions import DomainError
from api.schemas.common import ErrorResponse

_STATUS_BY_CODE = {
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "UNAUTHENTICATED": status.HTTP_401_UNAUTHORIZED,
    "FORBIDDEN": status.HTTP_403_FORBIDDEN,
    "ALREADY_SUBSCRIBED": status.HTTP_409_CONFLICT,
    "INVALID_STATE": status.HTTP_409_CONFLICT,
    "INVALID_SCOPE": status.HTTP_400_BAD_REQUEST,
    "INVALID_SIGNATURE": status.HTTP_401_UNAUTHORIZED,
    "MISSING_CORRELATION": status.HTTP_400_BAD_REQUEST,
    "SUBSCRIPTION_CONFLICT": status.HTTP_409_CONFLICT,
    "GATEWAY_UNAVAILABLE": status.HTTP_503_SERVICE_UNAVAILABLE,
    "GATEWAY_ERROR": status.HTTP_502_BAD_GATEWAY,
    "INTERNAL_INCONSISTENCY": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_for(error: DomainError) -> int:
    return _STATUS_BY_CODE.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} → {exc.code}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} → {exc.code}: {exc.message}")

    headers = {"WWW-Authenticate": "Bearer"} if exc.code == "UNAUTHENTICATED" else None
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(code=exc.code, message=exc.message).model_dump(),
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)
