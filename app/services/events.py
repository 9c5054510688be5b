from __future__ import annotations

import json
import logging
import queue
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from kafka import KafkaProducer
from kafka.errors import KafkaError

from app.config import Settings, settings

LOGGER = logging.getLogger(__name__)

USER_ACTIVITY_TOPIC = "user_activities"
DATABASE_CHANGE_TOPIC = "database_changes"

_STOP = object()


class EventCategory(str, Enum):
    USER_ACTIVITY = "USER_ACTIVITY"
    DATABASE_CHANGE = "DATABASE_CHANGE"


_TOPICS = {
    EventCategory.USER_ACTIVITY: USER_ACTIVITY_TOPIC,
    EventCategory.DATABASE_CHANGE: DATABASE_CHANGE_TOPIC,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class EventRecord:
    category: EventCategory
    action: str
    account_id: Optional[int] = None
    client_address: Optional[str] = None
    extra: dict = field(default_factory=dict)
    ts: datetime = field(default_factory=_utcnow)

    @property
    def topic(self) -> str:
        return _TOPICS[self.category]

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "ts": self.ts.isoformat(),
            "category": self.category.value,
        }
        if self.category is EventCategory.DATABASE_CHANGE:
            payload["operation"] = self.action
        else:
            payload["action"] = self.action
            payload["userId"] = self.account_id
            payload["ipAddress"] = self.client_address
        payload.update(self.extra)
        return payload


def user_activity(
    action: str,
    account_id: Optional[int],
    client_address: Optional[str] = None,
    **extra: Any,
) -> EventRecord:
    return EventRecord(
        category=EventCategory.USER_ACTIVITY,
        action=action,
        account_id=account_id,
        client_address=client_address,
        extra=extra,
    )


def database_change(operation: str, table: str, **extra: Any) -> EventRecord:
    return EventRecord(
        category=EventCategory.DATABASE_CHANGE,
        action=operation,
        extra={"table": table, **extra},
    )


class NullPublisher:
    """Stands in for the producer when no broker is configured."""

    def send(self, topic: str, payload: dict) -> None:
        LOGGER.debug("Event stream disabled; skipping send to %s", topic)

    def close(self) -> None:
        return None


class KafkaPublisher:
    def __init__(self, config: Settings) -> None:
        self._broker = config.kafka_broker
        self._producer = KafkaProducer(
            bootstrap_servers=[self._broker],
            client_id=config.kafka_client_id,
            retries=config.kafka_retries,
            retry_backoff_ms=config.kafka_retry_backoff_ms,
            value_serializer=lambda value: json.dumps(value, default=str).encode("utf-8"),
        )
        LOGGER.info("Kafka producer connected to %s", self._broker)

    def send(self, topic: str, payload: dict) -> None:
        future = self._producer.send(topic, value=payload)
        future.add_callback(_log_delivered, topic)
        future.add_errback(_log_send_error, topic)

    def close(self) -> None:
        try:
            self._producer.flush(timeout=5)
        finally:
            self._producer.close(timeout=5)
        LOGGER.info("Kafka producer disconnected")


def _log_delivered(topic: str, metadata) -> None:
    LOGGER.debug(
        "Event delivered to %s partition=%s offset=%s",
        topic,
        getattr(metadata, "partition", None),
        getattr(metadata, "offset", None),
    )


def _log_send_error(topic: str, exc: BaseException) -> None:
    LOGGER.warning("Event delivery to %s failed: %s", topic, exc)


def build_publisher(config: Settings):
    if not config.events_enabled:
        LOGGER.info("Event stream disabled (KAFKA_BROKER not set)")
        return NullPublisher()
    try:
        return KafkaPublisher(config)
    except KafkaError as exc:
        LOGGER.warning(
            "Kafka connect failed, continuing without event stream: %s", exc
        )
        return NullPublisher()


class EventEmitter:
    """Fire-and-forget event publishing.

    ``publish`` only enqueues. A daemon thread drains the queue into the
    active publisher, so a slow or unreachable broker never reaches the
    caller. Delivery is at most once and unordered across calls.
    """

    def __init__(self, config: Settings, publisher=None) -> None:
        self._config = config
        self.publisher = publisher or NullPublisher()
        self._queue: queue.Queue = queue.Queue(maxsize=config.event_queue_size)
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self, publisher=None) -> None:
        with self._lock:
            if self.running:
                return
            self.publisher = publisher or build_publisher(self._config)
            self._thread = threading.Thread(
                target=self._drain, name="event-emitter", daemon=True
            )
            self._thread.start()

    def publish(self, record: EventRecord) -> None:
        try:
            self._queue.put_nowait(record)
        except queue.Full:
            LOGGER.warning(
                "Event queue full; dropping %s %s", record.category.value, record.action
            )

    def close(self, timeout: float = 5.0) -> None:
        with self._lock:
            thread = self._thread
            self._thread = None
        if thread is not None:
            try:
                self._queue.put(_STOP, timeout=timeout)
            except queue.Full:
                LOGGER.warning("Event queue full at shutdown; pending events dropped")
            thread.join(timeout)
        try:
            self.publisher.close()
        except Exception:
            LOGGER.exception("Failed to close event publisher")

    def _drain(self) -> None:
        while True:
            record = self._queue.get()
            try:
                if record is _STOP:
                    return
                self._send(record)
            finally:
                self._queue.task_done()

    def _send(self, record: EventRecord) -> None:
        try:
            self.publisher.send(record.topic, record.to_payload())
        except Exception:
            LOGGER.warning(
                "Failed to emit %s %s", record.category.value, record.action, exc_info=True
            )


event_emitter = EventEmitter(settings)
