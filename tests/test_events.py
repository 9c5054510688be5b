import logging
import threading
import time

import pytest
from kafka.errors import NoBrokersAvailable

from app.config import Settings
from app.services import events
from app.services.events import (
    DATABASE_CHANGE_TOPIC,
    USER_ACTIVITY_TOPIC,
    EventCategory,
    EventEmitter,
    KafkaPublisher,
    NullPublisher,
    build_publisher,
    database_change,
    user_activity,
)


class RecordingPublisher:
    def __init__(self):
        self.sent = []
        self.closed = False

    def send(self, topic, payload):
        self.sent.append((topic, payload))

    def close(self):
        self.closed = True


class BlockedPublisher(RecordingPublisher):
    """Simulates a broker that never answers until released."""

    def __init__(self):
        super().__init__()
        self.release = threading.Event()

    def send(self, topic, payload):
        self.release.wait(timeout=10)
        super().send(topic, payload)


class FailingPublisher(RecordingPublisher):
    def send(self, topic, payload):
        super().send(topic, payload)
        raise ConnectionError("broker unreachable")


@pytest.fixture
def emitter_settings():
    return Settings(kafka_broker="", event_queue_size=100)


def test_user_activity_payload():
    record = user_activity("LOGIN", 5, "10.1.2.3", email="a@x.com")

    payload = record.to_payload()

    assert record.topic == USER_ACTIVITY_TOPIC
    assert payload["category"] == "USER_ACTIVITY"
    assert payload["action"] == "LOGIN"
    assert payload["userId"] == 5
    assert payload["ipAddress"] == "10.1.2.3"
    assert payload["email"] == "a@x.com"
    assert "ts" in payload


def test_database_change_payload():
    record = database_change("INSERT", "albums", userId=5, albumId=9)

    payload = record.to_payload()

    assert record.category is EventCategory.DATABASE_CHANGE
    assert record.topic == DATABASE_CHANGE_TOPIC
    assert payload["operation"] == "INSERT"
    assert payload["table"] == "albums"
    assert payload["albumId"] == 9
    assert "action" not in payload


def test_published_records_reach_the_publisher(emitter_settings):
    publisher = RecordingPublisher()
    emitter = EventEmitter(emitter_settings)
    emitter.start(publisher)

    emitter.publish(user_activity("LOGIN", 1))
    emitter.publish(database_change("INSERT", "user_tokens", userId=1))
    emitter.close()

    topics = sorted(topic for topic, _ in publisher.sent)
    assert topics == [DATABASE_CHANGE_TOPIC, USER_ACTIVITY_TOPIC]
    assert publisher.closed is True


def test_publish_does_not_wait_for_a_stalled_broker(emitter_settings):
    publisher = BlockedPublisher()
    emitter = EventEmitter(emitter_settings)
    emitter.start(publisher)

    started = time.perf_counter()
    for _ in range(5):
        emitter.publish(user_activity("LOGIN", 1))
    elapsed = time.perf_counter() - started

    publisher.release.set()
    emitter.close()

    assert elapsed < 0.5
    assert len(publisher.sent) == 5


def test_send_failures_are_logged_and_swallowed(emitter_settings, caplog):
    caplog.set_level(logging.WARNING, logger="app.services.events")
    publisher = FailingPublisher()
    emitter = EventEmitter(emitter_settings)
    emitter.start(publisher)

    emitter.publish(user_activity("LOGIN", 1))
    emitter.publish(user_activity("LOGOUT", 1))
    emitter.close()

    assert len(publisher.sent) == 2
    assert "Failed to emit USER_ACTIVITY LOGIN" in caplog.text


def test_full_queue_drops_instead_of_blocking(caplog):
    caplog.set_level(logging.WARNING, logger="app.services.events")
    emitter = EventEmitter(Settings(kafka_broker="", event_queue_size=1))

    emitter.publish(user_activity("LOGIN", 1))
    emitter.publish(user_activity("LOGIN", 2))

    assert "Event queue full" in caplog.text


def test_null_publisher_used_without_broker(emitter_settings):
    assert isinstance(build_publisher(emitter_settings), NullPublisher)


def test_emitter_started_without_broker_is_a_no_op(emitter_settings):
    emitter = EventEmitter(emitter_settings)
    emitter.start()

    emitter.publish(user_activity("LOGIN", 1))
    emitter.close()

    assert isinstance(emitter.publisher, NullPublisher)


def test_unreachable_broker_falls_back_to_null_publisher(monkeypatch):
    def _no_brokers(**kwargs):
        raise NoBrokersAvailable()

    monkeypatch.setattr(events, "KafkaProducer", _no_brokers)

    publisher = build_publisher(Settings(kafka_broker="kafka:9092"))

    assert isinstance(publisher, NullPublisher)


class _FakeFuture:
    def __init__(self):
        self.callbacks = []
        self.errbacks = []

    def add_callback(self, fn, *args):
        self.callbacks.append((fn, args))
        return self

    def add_errback(self, fn, *args):
        self.errbacks.append((fn, args))
        return self


class _FakeProducer:
    instances = []

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.sent = []
        self.futures = []
        self.closed = False
        _FakeProducer.instances.append(self)

    def send(self, topic, value):
        self.sent.append((topic, value))
        future = _FakeFuture()
        self.futures.append(future)
        return future

    def flush(self, timeout=None):
        return None

    def close(self, timeout=None):
        self.closed = True


def test_kafka_publisher_sends_json_records(monkeypatch, caplog):
    caplog.set_level(logging.WARNING, logger="app.services.events")
    monkeypatch.setattr(events, "KafkaProducer", _FakeProducer)
    config = Settings(kafka_broker="kafka:9092", kafka_retries=3, kafka_retry_backoff_ms=50)

    publisher = build_publisher(config)
    publisher.send(USER_ACTIVITY_TOPIC, {"action": "LOGIN"})
    producer = _FakeProducer.instances[-1]

    assert isinstance(publisher, KafkaPublisher)
    assert producer.kwargs["bootstrap_servers"] == ["kafka:9092"]
    assert producer.kwargs["retries"] == 3
    assert producer.kwargs["value_serializer"]({"a": 1}) == b'{"a": 1}'
    assert producer.sent == [(USER_ACTIVITY_TOPIC, {"action": "LOGIN"})]

    errback, args = producer.futures[0].errbacks[0]
    errback(*args, RuntimeError("leader not available"))
    assert "Event delivery to user_activities failed" in caplog.text

    publisher.close()
    assert producer.closed is True
