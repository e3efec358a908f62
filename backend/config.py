"""
교육 플랫폼 결제/구독 서비스 설정
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """애플리케이션 설정"""

    # 앱 기본 설정
    APP_NAME: str = "교육 플랫폼 결제 서비스"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True

    # 서버 설정
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # 데이터베이스 설정
    DB_URL: str = "sqlite+aiosqlite:///./data/commerce.db"
    DB_BUSY_TIMEOUT: float = 30.0  # 초. SQLite 쓰기 잠금 대기 시간

    # JWT 설정 (토큰 발급은 인증 서비스 담당, 여기서는 검증만)
    SECRET_KEY: str = "your-super-secret-key-change-in-production-32chars"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24  # 24시간

    # Cashfree PG 설정
    CASHFREE_APP_ID: str = ""
    CASHFREE_SECRET_KEY: str = ""
    CASHFREE_ENVIRONMENT: str = "sandbox"  # sandbox | production
    CASHFREE_API_VERSION: str = "2025-01-01"
    GATEWAY_TIMEOUT: float = 15.0  # 초
    ALLOWED_PAYMENT_METHODS: str = "upi,cc,dc,nb"

    # 리다이렉트/콜백 URL
    FRONTEND_URL: str = "http://localhost:5173"
    BACKEND_URL: str = "http://localhost:8000"

    # 구독 설정
    DEFAULT_CURRENCY: str = "INR"
    SUBSCRIPTION_VALIDITY_DAYS: int = 365

    # Webhook 설정
    # 비운영 환경에서만 서명 실패 후에도 처리를 계속한다. 운영 환경에서는 무시된다.
    WEBHOOK_ALLOW_UNSIGNED: bool = False
    # 저장된 webhook 재처리(replay) 엔드포인트 활성화
    WEBHOOK_TESTING_ENABLED: bool = False
    WEBHOOK_REPLAY_MAX: int = 20

    # CORS 설정
    CORS_ORIGINS: list = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    # 로깅 설정
    LOG_LEVEL: str = "DEBUG"
    LOG_FILE: str = "./logs/app.log"

    class Config:
        env_file = ".env.backend"
        case_sensitive = True
        env_file_encoding = "utf-8"

    @property
    def is_production(self) -> bool:
        return self.CASHFREE_ENVIRONMENT.lower() == "production"

    @property
    def gateway_api_base(self) -> str:
        if self.is_production:
            return "https://api.cashfree.com/pg"
        return "https://sandbox.cashfree.com/pg"

    @property
    def webhook_allow_unsigned(self) -> bool:
        """서명 우회 허용 여부 (운영 환경에서는 항상 False)"""
        return self.WEBHOOK_ALLOW_UNSIGNED and not self.is_production


@lru_cache()
def get_settings() -> Settings:
    """설정 싱글톤 반환"""
    return Settings()


# 설정 인스턴스
settings = get_settings()
