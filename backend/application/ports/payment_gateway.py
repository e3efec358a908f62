"""결제 게이트웨이 포트"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Dict, Any

from domain.entities.user import CustomerEntity


@dataclass
class GatewayOrderRequest:
    order_id: str
    amount: Decimal
    currency: str
    customer: CustomerEntity
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class GatewayOrder:
    order_id: str
    session_token: Optional[str]


@dataclass
class GatewayOrderState:
    order_id: str
    order_status: str
    session_token: Optional[str] = None
    payment_status: Optional[str] = None
    payment_id: Optional[str] = None
    payment_method: Optional[Dict[str, Any]] = None
    raw: Dict[str, Any] = field(default_factory=dict)


class PaymentGatewayPort(ABC):
    @abstractmethod
    async def create_order(self, request: GatewayOrderRequest) -> GatewayOrder: ...
    @abstractmethod
    async def get_order_status(self, order_id: str) -> GatewayOrderState: ...
    @abstractmethod
    def verify_signature(self, signature: Optional[str], timestamp: Optional[str],
                         raw_body: bytes) -> bool: ...
