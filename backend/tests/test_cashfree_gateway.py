import base64
import hashlib
import hmac
import json
from decimal import Decimal

import httpx
import pytest

from application.ports.payment_gateway import GatewayOrderRequest
from domain.entities.user import CustomerEntity
from domain.exceptions import GatewayError, GatewayUnavailableError
from infrastructure.payment.cashfree_gateway import CashfreeGateway

API_BASE = "https://sandbox.cashfree.com/pg"
SECRET = "test-secret"


def make_gateway(handler) -> CashfreeGateway:
    return CashfreeGateway(
        app_id="app-123",
        secret_key=SECRET,
        api_base=API_BASE,
        frontend_url="https://app.example.com",
        backend_url="https://api.example.com",
        transport=httpx.MockTransport(handler),
    )


def sign(timestamp: str, body: bytes, secret: str = SECRET) -> str:
    digest = hmac.new(secret.encode(), timestamp.encode() + body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode()


def order_request(**overrides) -> GatewayOrderRequest:
    values = dict(
        order_id="ORD-20261019120000-abcd1234",
        amount=Decimal("499.00"),
        currency="INR",
        customer=CustomerEntity(id=7, name="Asha", email="asha@example.com"),
        metadata={"invoiceId": 12, "type": "course"},
    )
    values.update(overrides)
    return GatewayOrderRequest(**values)


async def test_create_order_sends_payload_and_headers():
    # --- ARRANGE ---
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["request"] = request
        return httpx.Response(200, json={
            "order_id": "ORD-20261019120000-abcd1234",
            "cf_order_id": 998877,
            "payment_session_id": "session_xyz",
        })

    gateway = make_gateway(handler)

    # --- ACT ---
    order = await gateway.create_order(order_request())

    # --- ASSERT ---
    request = captured["request"]
    assert request.method == "POST"
    assert str(request.url) == f"{API_BASE}/orders"
    assert request.headers["x-client-id"] == "app-123"
    assert request.headers["x-client-secret"] == SECRET
    assert request.headers["x-api-version"] == "2025-01-01"

    body = json.loads(request.content)
    assert body["order_amount"] == 499.0
    assert body["order_currency"] == "INR"
    assert body["customer_details"]["customer_id"] == "7"
    # 전화번호가 없으면 기본값을 보낸다
    assert body["customer_details"]["customer_phone"] == "9999999999"
    assert body["order_meta"]["return_url"].startswith("https://app.example.com/#/payment/status?order_id=")
    assert body["order_meta"]["notify_url"] == "https://api.example.com/api/payment/webhook"
    assert body["order_tags"] == {"invoiceId": "12", "type": "course"}

    assert order.session_token == "session_xyz"


async def test_get_order_status_picks_successful_payment():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/payments"):
            return httpx.Response(200, json=[
                {"cf_payment_id": 1, "payment_status": "FAILED", "payment_method": {"card": {}}},
                {"cf_payment_id": 2, "payment_status": "SUCCESS", "payment_method": {"upi": {"upi_id": "a@b"}}},
            ])
        return httpx.Response(200, json={"order_id": "ORD-1", "order_status": "PAID", "cf_order_id": 5})

    status = await make_gateway(handler).get_order_status("ORD-1")

    assert status.order_status == "PAID"
    assert status.payment_status == "SUCCESS"
    assert status.payment_id == "2"
    assert status.payment_method == {"upi": {"upi_id": "a@b"}}


async def test_get_order_status_without_payments():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/payments"):
            return httpx.Response(200, json=[])
        return httpx.Response(200, json={"order_id": "ORD-2", "order_status": "ACTIVE",
                                         "payment_session_id": "session_2"})

    status = await make_gateway(handler).get_order_status("ORD-2")

    assert status.order_status == "ACTIVE"
    assert status.session_token == "session_2"
    assert status.payment_id is None


async def test_rejected_request_raises_gateway_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"message": "order_amount invalid", "code": "order_amount_invalid"})

    with pytest.raises(GatewayError) as exc_info:
        await make_gateway(handler).create_order(order_request())

    assert not isinstance(exc_info.value, GatewayUnavailableError)
    assert exc_info.value.code == "GATEWAY_ERROR"


async def test_connection_error_raises_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(GatewayUnavailableError):
        await make_gateway(handler).get_order_status("ORD-3")


async def test_timeout_raises_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(GatewayUnavailableError):
        await make_gateway(handler).create_order(order_request())


def test_verify_signature_accepts_valid_signature():
    gateway = make_gateway(lambda request: httpx.Response(200))
    body = b'{"type":"PAYMENT_SUCCESS_WEBHOOK"}'

    assert gateway.verify_signature(sign("1700000000", body), "1700000000", body) is True


@pytest.mark.parametrize("signature,timestamp,body", [
    (None, "1700000000", b"{}"),
    ("abc", None, b"{}"),
    ("abc", "1700000000", b""),
])
def test_verify_signature_rejects_missing_inputs(signature, timestamp, body):
    gateway = make_gateway(lambda request: httpx.Response(200))

    assert gateway.verify_signature(signature, timestamp, body) is False


def test_verify_signature_rejects_tampered_body():
    gateway = make_gateway(lambda request: httpx.Response(200))
    body = b'{"amount":499}'
    signature = sign("1700000000", body)

    assert gateway.verify_signature(signature, "1700000000", b'{"amount":1}') is False
    assert gateway.verify_signature(signature, "1700000001", body) is False
    assert gateway.verify_signature(sign("1700000000", body, "other-secret"), "1700000000", body) is False


def test_verify_signature_without_secret_fails_closed():
    gateway = CashfreeGateway(app_id="", secret_key="", api_base=API_BASE)
    body = b"{}"

    assert gateway.verify_signature(sign("1", body, ""), "1", body) is False
