import asyncio
import logging

from storefront.database import AsyncSessionLocal
from storefront.infrastructure.unit_of_work import UnitOfWork
from storefront.infrastructure.kafka_producer import KafkaProducerClient
from storefront.application.process_outbox import ProcessOutboxEventsUseCase
from storefront.config import settings

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


async def outbox_worker():
    """Publishes order events from the outbox to Kafka"""
    kafka_producer = KafkaProducerClient(settings.KAFKA_BOOTSTRAP_SERVERS, settings.KAFKA_ORDER_TOPIC)
    await kafka_producer.start()
    logger.info("Outbox worker started")

    use_case = ProcessOutboxEventsUseCase(
        unit_of_work=UnitOfWork(AsyncSessionLocal),
        publisher=kafka_producer
    )
    try:
        while True:
            try:
                published = await use_case(limit=10)
                if published:
                    logger.info(f"Published {published} outbox events")
                await asyncio.sleep(settings.OUTBOX_POLL_INTERVAL)

            except Exception as e:
                logger.error(f"Outbox worker error: {e}", exc_info=True)
                await asyncio.sleep(10)
    finally:
        await kafka_producer.stop()


async def main():
    await outbox_worker()


if __name__ == "__main__":
    asyncio.run(main())
