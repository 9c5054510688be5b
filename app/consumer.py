"""Event stream consumer.

Subscribes to the activity and change topics and writes each record to the
log. It performs no business logic; the log is the record.
"""

from __future__ import annotations

import json
import logging
import signal
import sys
from typing import Any, Optional

from kafka import KafkaConsumer
from kafka.errors import KafkaError

from app.config import Settings, settings
from app.logging_config import configure_logging
from app.services.events import DATABASE_CHANGE_TOPIC, USER_ACTIVITY_TOPIC

LOGGER = logging.getLogger("app.consumer")

TIDB_CHANGE_TOPIC = "tidb_changes"
TOPICS = (USER_ACTIVITY_TOPIC, DATABASE_CHANGE_TOPIC, TIDB_CHANGE_TOPIC)
CONSUMER_GROUP = "my-album-shelf-consumer-group"
DEFAULT_BROKER = "localhost:9092"


def _decode(value: Optional[bytes]) -> Optional[dict[str, Any]]:
    if not value:
        return None
    return json.loads(value.decode("utf-8"))


def process_user_activity(payload: dict, partition: int, offset: int) -> None:
    LOGGER.info(
        "User activity processed: category=USER_ACTIVITY user_id=%s action=%s "
        "ip=%s ts=%s partition=%s offset=%s",
        payload.get("userId"),
        payload.get("action"),
        payload.get("ipAddress"),
        payload.get("ts"),
        partition,
        offset,
    )


def process_database_change(payload: dict, partition: int, offset: int) -> None:
    LOGGER.info(
        "Database change processed: category=DB_CHANGE operation=%s table=%s "
        "ts=%s partition=%s offset=%s",
        payload.get("operation"),
        payload.get("table"),
        payload.get("ts"),
        partition,
        offset,
    )


def process_tidb_change(payload: dict, partition: int, offset: int) -> None:
    LOGGER.info(
        "TiCDC change processed: category=TICDC type=%s database=%s table=%s "
        "ts=%s partition=%s offset=%s",
        payload.get("type"),
        payload.get("database"),
        payload.get("table"),
        payload.get("ts"),
        partition,
        offset,
    )


HANDLERS = {
    USER_ACTIVITY_TOPIC: process_user_activity,
    DATABASE_CHANGE_TOPIC: process_database_change,
    TIDB_CHANGE_TOPIC: process_tidb_change,
}


def handle_message(topic: str, value: Optional[bytes], partition: int, offset: int) -> bool:
    """Log one message. Returns False when it was skipped."""
    handler = HANDLERS.get(topic)
    if handler is None:
        LOGGER.warning(
            "Received message from unknown topic %s partition=%s offset=%s",
            topic,
            partition,
            offset,
        )
        return False
    try:
        payload = _decode(value)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        LOGGER.error(
            "Error processing message topic=%s partition=%s offset=%s: %s",
            topic,
            partition,
            offset,
            exc,
        )
        return False
    if not isinstance(payload, dict):
        LOGGER.warning(
            "Skipping message that is not a JSON object topic=%s partition=%s offset=%s",
            topic,
            partition,
            offset,
        )
        return False
    handler(payload, partition, offset)
    return True


def build_consumer(config: Settings) -> KafkaConsumer:
    broker = config.kafka_broker or DEFAULT_BROKER
    LOGGER.info("Starting Kafka consumer on %s", broker)
    consumer = KafkaConsumer(
        *TOPICS,
        bootstrap_servers=[broker],
        client_id="my-album-shelf-consumer",
        group_id=CONSUMER_GROUP,
        auto_offset_reset="latest",
        session_timeout_ms=30000,
        heartbeat_interval_ms=3000,
        retry_backoff_ms=100,
    )
    LOGGER.info("Subscribed to topics %s", ", ".join(TOPICS))
    return consumer


def run(config: Settings = settings) -> int:
    configure_logging(config)
    try:
        consumer = build_consumer(config)
    except KafkaError as exc:
        LOGGER.error("Failed to start consumer: %s", exc)
        return 1

    def _shutdown(signum, frame):
        LOGGER.info("Shutting down consumer gracefully...")
        consumer.close()
        sys.exit(0)

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    try:
        for message in consumer:
            handle_message(message.topic, message.value, message.partition, message.offset)
    finally:
        consumer.close()
    return 0


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
