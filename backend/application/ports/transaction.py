"""트랜잭션 경계 포트"""
from abc import ABC, abstractmethod
from typing import AsyncContextManager


class TransactionManager(ABC):
    @abstractmethod
    def savepoint(self) -> AsyncContextManager:
        """블록 안에서 예외가 나면 블록의 쓰기만 되돌린다"""
