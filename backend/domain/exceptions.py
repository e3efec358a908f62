"""도메인 예외

모든 예외는 안정적인 기계 판독용 코드(code)와 사람이 읽을 메시지를 가진다.
HTTP 상태 코드 매핑은 API 레이어(api/errors.py)에서 담당한다.
"""


class DomainError(Exception):
    """도메인 레이어 기본 예외"""
    code = "DOMAIN_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(DomainError):
    code = "NOT_FOUND"

    def __init__(self, what: str, ref=None):
        suffix = f": {ref}" if ref is not None else ""
        super().__init__(f"{what}을(를) 찾을 수 없습니다{suffix}")


class UnauthenticatedError(DomainError):
    code = "UNAUTHENTICATED"

    def __init__(self):
        super().__init__("유효하지 않은 인증 정보입니다.")


class ForbiddenError(DomainError):
    code = "FORBIDDEN"

    def __init__(self, message: str = "권한이 없습니다."):
        super().__init__(message)


class AlreadySubscribedError(DomainError):
    code = "ALREADY_SUBSCRIBED"

    def __init__(self, scope: str):
        super().__init__(f"이미 활성화된 구독이 있습니다 ({scope.lower()})")


class InvalidStateError(DomainError):
    code = "INVALID_STATE"


class InvalidScopeError(DomainError):
    code = "INVALID_SCOPE"

    def __init__(self, scope: str):
        super().__init__(f"구독 대상을 확인할 수 없습니다: {scope}")


class InvalidSignatureError(DomainError):
    code = "INVALID_SIGNATURE"

    def __init__(self):
        super().__init__("유효하지 않은 webhook 서명입니다.")


class MissingCorrelationError(DomainError):
    """webhook이 이 시스템이 알지 못하는 주문을 가리킬 때"""
    code = "MISSING_CORRELATION"


class InternalInconsistencyError(DomainError):
    code = "INTERNAL_INCONSISTENCY"


class GatewayError(DomainError):
    """결제 게이트웨이가 요청을 거절했을 때"""
    code = "GATEWAY_ERROR"


class GatewayUnavailableError(GatewayError):
    """네트워크 오류 또는 타임아웃"""
    code = "GATEWAY_UNAVAILABLE"


class SubscriptionConflictError(DomainError):
    """구독 저장 시 유니크 제약 위반 (동시 요청 경합)"""
    code = "SUBSCRIPTION_CONFLICT"
