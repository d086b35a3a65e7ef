import os
from dotenv import load_dotenv

load_dotenv()


class Settings:
    # Database
    POSTGRES_CONNECTION_STRING: str = os.getenv("POSTGRES_CONNECTION_STRING", "")
    SQLITE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./storefront.db")

    # API
    API_TOKEN: str = os.getenv("API_TOKEN", "")

    # Cart
    MAX_CART_ITEMS: int = int(os.getenv("MAX_CART_ITEMS", "20"))

    # Kafka
    KAFKA_BOOTSTRAP_SERVERS: str = os.getenv("KAFKA_BOOTSTRAP_SERVERS", "localhost:9092")
    KAFKA_ORDER_TOPIC: str = os.getenv("KAFKA_ORDER_TOPIC", "storefront.order-events")
    OUTBOX_POLL_INTERVAL: float = float(os.getenv("OUTBOX_POLL_INTERVAL", "3"))

    @property
    def DATABASE_URL(self) -> str:
        """Async URL used by the application"""
        if not self.POSTGRES_CONNECTION_STRING:
            return self.SQLITE_URL
        return self.POSTGRES_CONNECTION_STRING.replace("postgres://", "postgresql+asyncpg://")

    @property
    def SYNC_DATABASE_URL(self) -> str:
        """Sync URL used by Alembic"""
        if not self.POSTGRES_CONNECTION_STRING:
            return self.SQLITE_URL.replace("sqlite+aiosqlite://", "sqlite://")
        return self.POSTGRES_CONNECTION_STRING.replace("postgres://", "postgresql://")


settings = Settings()
