"""Cashfree PG API 클라이언트"""
import base64
import hashlib
import hmac
from typing import Dict, Any, Optional, List
from urllib.parse import quote

import httpx
from loguru import logger

from config import settings
from application.ports.payment_gateway import (
    PaymentGatewayPort, GatewayOrderRequest, GatewayOrder, GatewayOrderState,
)
from domain.exceptions import GatewayError, GatewayUnavailableError


class CashfreeGateway(PaymentGatewayPort):
    def __init__(self, app_id: str, secret_key: str, api_base: str,
                 api_version: str = "2025-01-01", timeout: float = 15.0,
                 frontend_url: str = "http://localhost:5173",
                 backend_url: str = "http://localhost:8000",
                 payment_methods: str = "upi,cc,dc,nb",
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.app_id = app_id
        self.secret_key = secret_key
        self.api_base = api_base.rstrip("/")
        self.api_version = api_version
        self.timeout = timeout
        self.frontend_url = frontend_url
        self.backend_url = backend_url
        self.payment_methods = payment_methods
        self._transport = transport
        if not app_id or not secret_key:
            logger.warning("Cashfree 인증 정보가 설정되지 않았습니다. CASHFREE_APP_ID / CASHFREE_SECRET_KEY 확인")

    @classmethod
    def from_settings(cls, transport: Optional[httpx.AsyncBaseTransport] = None) -> "CashfreeGateway":
        return cls(
            app_id=settings.CASHFREE_APP_ID,
            secret_key=settings.CASHFREE_SECRET_KEY,
            api_base=settings.gateway_api_base,
            api_version=settings.CASHFREE_API_VERSION,
            timeout=settings.GATEWAY_TIMEOUT,
            frontend_url=settings.FRONTEND_URL,
            backend_url=settings.BACKEND_URL,
            payment_methods=settings.ALLOWED_PAYMENT_METHODS,
            transport=transport,
        )

    def _get_headers(self) -> Dict[str, str]:
        return {
            "x-api-version": self.api_version,
            "x-client-id": self.app_id,
            "x-client-secret": self.secret_key,
            "Content-Type": "application/json",
        }

    async def _request(self, method: str, path: str, action: str,
                       payload: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.api_base}{path}"
        async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
            try:
                response = await client.request(method, url, headers=self._get_headers(), json=payload)
                response.raise_for_status()
                return response.json()
            except httpx.HTTPStatusError as e:
                logger.error(f"Cashfree {action} 실패 ({e.response.status_code}): {e.response.text}")
                raise GatewayError(f"{action} 실패: {e.response.text}") from e
            except httpx.TimeoutException as e:
                logger.error(f"Cashfree {action} 타임아웃: {url}")
                raise GatewayUnavailableError(f"{action} 타임아웃") from e
            except httpx.RequestError as e:
                logger.error(f"Cashfree {action} 연결 오류: {e}")
                raise GatewayUnavailableError(f"{action} 연결 오류: {e}") from e

    async def create_order(self, request: GatewayOrderRequest) -> GatewayOrder:
        customer = request.customer
        payload = {
            "order_id": request.order_id,
            "order_amount": float(request.amount),
            "order_currency": request.currency,
            "customer_details": {
                "customer_id": str(customer.id),
                "customer_name": customer.name or "Customer",
                "customer_email": customer.email,
                "customer_phone": customer.gateway_phone,
            },
            "order_meta": {
                "return_url": f"{self.frontend_url}/#/payment/status?order_id={request.order_id}",
                "notify_url": f"{self.backend_url}/api/payment/webhook",
                "payment_methods": self.payment_methods,
            },
            # order_tags 값은 문자열만 허용
            "order_tags": {key: str(value) for key, value in request.metadata.items()},
        }
        logger.info(f"Cashfree 주문 생성: {request.order_id} {request.amount} {request.currency}")
        data = await self._request("POST", "/orders", "주문 생성", payload)
        return GatewayOrder(
            order_id=data.get("order_id", request.order_id),
            session_token=data.get("payment_session_id"),
        )

    async def get_order_status(self, order_id: str) -> GatewayOrderState:
        path = f"/orders/{quote(order_id, safe='')}"
        order = await self._request("GET", path, "주문 조회")
        payments = await self._request("GET", f"{path}/payments", "결제 내역 조회")
        payment = self._pick_payment(payments if isinstance(payments, list) else [])
        return GatewayOrderState(
            order_id=order.get("order_id", order_id),
            order_status=order.get("order_status") or "UNKNOWN",
            session_token=order.get("payment_session_id"),
            payment_status=payment.get("payment_status") if payment else None,
            payment_id=str(payment["cf_payment_id"]) if payment and payment.get("cf_payment_id") else None,
            payment_method=payment.get("payment_method") if payment else None,
            raw={"order": order, "payments": payments},
        )

    @staticmethod
    def _pick_payment(payments: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        for payment in payments:
            if payment.get("payment_status") == "SUCCESS":
                return payment
        return payments[0] if payments else None

    def verify_signature(self, signature: Optional[str], timestamp: Optional[str],
                         raw_body: bytes) -> bool:
        """base64(HMAC-SHA256(secret, timestamp + raw_body)) 비교. 오류 시 항상 False"""
        if not signature or not timestamp or not raw_body or not self.secret_key:
            logger.error("서명 검증 불가: signature/timestamp/본문/비밀키 누락")
            return False
        try:
            signed = timestamp.encode() + raw_body
            digest = hmac.new(self.secret_key.encode(), signed, hashlib.sha256).digest()
            expected = base64.b64encode(digest).decode()
            return hmac.compare_digest(expected, signature)
        except (TypeError, ValueError) as e:
            logger.error(f"서명 검증 오류: {e}")
            return False
