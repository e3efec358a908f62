"""SAVEPOINT 기반 트랜잭션 경계"""
from contextlib import asynccontextmanager
from sqlalchemy.ext.asyncio import AsyncSession

from application.ports.transaction import TransactionManager


class SqlTransactionManager(TransactionManager):
    def __init__(self, session: AsyncSession):
        self._session = session

    @asynccontextmanager
    async def savepoint(self):
        async with self._session.begin_nested():
            yield
