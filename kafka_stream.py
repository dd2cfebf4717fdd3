import asyncio
import logging
import os
from typing import Optional

from aiokafka import AIOKafkaConsumer
from pydantic import ValidationError

from models import LogSubmission

logger = logging.getLogger(__name__)

DEFAULT_TOPIC = os.getenv("KAFKA_TOPIC", "log-batches")


def decode_submission(raw: bytes) -> Optional[LogSubmission]:
    """Decode one Kafka message value; None for anything malformed."""
    try:
        return LogSubmission.model_validate_json(raw)
    except ValidationError as exc:
        logger.warning("Dropping malformed log submission: %s", exc.errors()[:3])
        return None


async def start_kafka_consumer(submission_queue: asyncio.Queue) -> Optional[asyncio.Task]:
    brokers = os.getenv("KAFKA_BROKERS")
    if not brokers:
        return None  # Kafka disabled

    group_id = os.getenv("KAFKA_GROUP_ID", "log-sleuth")
    consumer = AIOKafkaConsumer(
        DEFAULT_TOPIC,
        bootstrap_servers=brokers,
        group_id=group_id,
        enable_auto_commit=True,
        auto_offset_reset=os.getenv("KAFKA_AUTO_OFFSET_RESET", "earliest"),
    )
    await consumer.start()
    logger.info("Consuming log submissions from %s on %s", DEFAULT_TOPIC, brokers)

    async def _consume():
        try:
            async for msg in consumer:
                submission = decode_submission(msg.value)
                if submission is None:
                    continue
                try:
                    submission_queue.put_nowait(submission)
                except asyncio.QueueFull:
                    logger.warning("Ingest queue full; dropping submission for %s", submission.owner_id)
        finally:
            await consumer.stop()

    return asyncio.create_task(_consume())
