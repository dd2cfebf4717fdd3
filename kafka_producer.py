"""Publish a sample log batch to the ingest topic.

    KAFKA_BROKERS=localhost:9092 python kafka_producer.py [path/to/file.log]
"""
import asyncio
import os
import sys
from typing import Optional

from aiokafka import AIOKafkaProducer

from kafka_stream import DEFAULT_TOPIC
from models import LogSubmission

SAMPLE_LOG = """\
2025-08-09 12:00:01 INFO  api-gateway: GET /health 200
2025-08-09 12:00:03 WARN  api-gateway: upstream latency 2300ms for /orders
2025-08-09 12:00:05 ERROR db-service: Query timeout after 30000ms - SELECT * FROM orders
2025-08-09 12:00:07 INFO  sshd[411]: Failed login for root from 203.0.113.5 port 52211
2025-08-09 12:00:08 INFO  sshd[411]: Failed login for root from 203.0.113.5 port 52212
"""


def build_sample(log_content: str = SAMPLE_LOG, owner_id: str = "demo-user") -> bytes:
    """Validate a submission and encode it the way the consumer expects (camelCase JSON)."""
    submission = LogSubmission(
        owner_id=owner_id,
        title="Sample gateway and sshd logs",
        log_content=log_content,
        tags=["sample", "kafka"],
    )
    return submission.model_dump_json(by_alias=True).encode("utf-8")


async def main(path: Optional[str] = None):
    log_content = SAMPLE_LOG
    if path:
        with open(path, encoding="utf-8", errors="replace") as fh:
            log_content = fh.read()
    payload = build_sample(log_content, os.getenv("SAMPLE_OWNER_ID", "demo-user"))

    producer = AIOKafkaProducer(bootstrap_servers=os.getenv("KAFKA_BROKERS", "localhost:9092"))
    await producer.start()
    try:
        await producer.send_and_wait(DEFAULT_TOPIC, payload)
        print(f"Sent {len(payload)} bytes to {DEFAULT_TOPIC}")
    finally:
        await producer.stop()


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else None))
