"""액세스 토큰 검증

토큰 발급은 인증 서비스 담당. 여기서는 같은 비밀키로 서명된 액세스 토큰에서 사용자 ID만
꺼낸다. issue_access_token 은 관리 도구와 테스트용.
"""
from datetime import datetime, timedelta
from typing import Optional
from jose import JWTError, jwt
from loguru import logger

from config import settings

TOKEN_TYPE = "access"


def issue_access_token(user_id: int, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    claims = {"sub": str(user_id), "type": TOKEN_TYPE, "exp": expire}
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Optional[int]:
    """유효한 액세스 토큰이면 사용자 ID, 아니면 None"""
    try:
        claims = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        logger.debug(f"토큰 검증 실패: {e}")
        return None

    if claims.get("type") != TOKEN_TYPE:
        return None
    try:
        return int(claims.get("sub"))
    except (TypeError, ValueError):
        return None
