from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, List
from storefront.domain.models import Cart, Order, Product


class InventoryLedger(ABC):
    @abstractmethod
    async def get(self, product_id: str) -> Optional[Product]:
        pass

    @abstractmethod
    async def get_many(self, product_ids: List[str]) -> dict:
        pass

    @abstractmethod
    async def add(self, product: Product) -> None:
        pass

    @abstractmethod
    async def reserve(self, product_id: str, quantity: int) -> int:
        pass

    @abstractmethod
    async def release(self, product_id: str, quantity: int) -> int:
        pass


class CartRepository(ABC):
    @abstractmethod
    async def get_by_user(self, user_id: str) -> Optional[Cart]:
        pass

    @abstractmethod
    async def save(self, cart: Cart) -> Cart:
        pass

    @abstractmethod
    async def delete_by_user(self, user_id: str) -> bool:
        pass


class OrderRepository(ABC):
    @abstractmethod
    async def get_by_id(self, order_id: str) -> Optional[Order]:
        pass

    @abstractmethod
    async def get_by_user(self, user_id: str) -> List[Order]:
        pass

    @abstractmethod
    async def get_all(self) -> List[Order]:
        pass

    @abstractmethod
    async def get_by_idempotency_key(self, user_id: str, key: str) -> Optional[Order]:
        pass

    @abstractmethod
    async def create(self, order: Order) -> None:
        pass

    @abstractmethod
    async def mark_fulfilled(self, order_id: str, fulfilled_at: datetime) -> bool:
        pass


class OutboxRepository(ABC):
    @abstractmethod
    async def create(self, event_type: str, event_data: dict, order_id: str) -> str:
        pass

    @abstractmethod
    async def get_pending(self, limit: int = 10) -> List[dict]:
        pass

    @abstractmethod
    async def mark_as_published(self, event_id: str) -> None:
        pass


class EventPublisher(ABC):
    @abstractmethod
    async def publish(self, event_type: str, order_id: str, payload: dict) -> bool:
        pass
