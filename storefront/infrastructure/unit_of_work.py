import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront.application.interfaces import (
    InventoryLedger, CartRepository, OrderRepository, OutboxRepository
)
from storefront.infrastructure.repositories import (
    SQLAlchemyInventoryLedger,
    SQLAlchemyCartRepository,
    SQLAlchemyOrderRepository,
    SQLAlchemyOutboxRepository
)

logger = logging.getLogger(__name__)


class UnitOfWork:
    """Opens one session (one transaction) per `async with uow() as u` block.

    Stock reservations, the order, its outbox event and the cart deletion of a
    checkout all go through the same `Transaction`, so nothing survives unless
    `commit()` is reached.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def __call__(self) -> AsyncIterator["Transaction"]:
        async with self._session_factory() as session:
            transaction = Transaction(session)
            try:
                yield transaction
            except Exception:
                await session.rollback()
                raise
            if not transaction.committed:
                await session.rollback()


class Transaction:
    inventory: InventoryLedger
    carts: CartRepository
    orders: OrderRepository
    outbox: OutboxRepository

    def __init__(self, session: AsyncSession):
        self._session = session
        self.committed = False
        self.inventory = SQLAlchemyInventoryLedger(session)
        self.carts = SQLAlchemyCartRepository(session)
        self.orders = SQLAlchemyOrderRepository(session)
        self.outbox = SQLAlchemyOutboxRepository(session)

    async def commit(self):
        await self._session.commit()
        self.committed = True

    async def rollback(self):
        await self._session.rollback()
        logger.debug("Transaction rolled back")
