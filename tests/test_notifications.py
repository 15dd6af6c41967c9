"""Notification gateway: queueing, retry and failure isolation"""

from unittest.mock import MagicMock

import requests

from sesmine.core.config import NotificationSettings
from sesmine.notifications.gateway import (
    EventKind,
    LogDelivery,
    NotificationEvent,
    NotificationGateway,
    WebhookDelivery,
    build_gateway,
    safe_notify,
)

from conftest import FailingNotifier


class FlakyBackend:
    def __init__(self, failures):
        self.failures = failures
        self.attempts = 0
        self.delivered = []

    def deliver(self, event):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise ConnectionError("temporarily unavailable")
        self.delivered.append(event)


def _gateway(backend, **kwargs):
    kwargs.setdefault("max_attempts", 3)
    return NotificationGateway(backend, backoff_seconds=0.001, max_backoff_seconds=0.01, **kwargs)


def test_retries_then_delivers():
    backend = FlakyBackend(failures=2)
    gateway = _gateway(backend)
    gateway.start()
    try:
        gateway.notify(EventKind.REQUEST_SUBMITTED, "p1", {"resource_id": "engineering-hub"})
        assert gateway.flush(5)
    finally:
        gateway.stop()
    assert backend.attempts == 3
    assert [e.payload for e in backend.delivered] == [{"resource_id": "engineering-hub"}]
    assert gateway.delivered == 1
    assert gateway.failed == 0


def test_gives_up_after_max_attempts():
    backend = FlakyBackend(failures=10)
    gateway = _gateway(backend, max_attempts=2)
    gateway.start()
    try:
        gateway.notify(EventKind.REQUEST_RESOLVED, "p1")
        gateway.notify(EventKind.REQUEST_RESOLVED, "p2")
        assert gateway.flush(5)
    finally:
        gateway.stop()
    assert backend.attempts == 4
    assert gateway.failed == 2
    assert gateway.delivered == 0


def test_full_queue_still_attempts_delivery():
    backend = FlakyBackend(0)
    gateway = _gateway(backend, queue_size=1)
    gateway.notify(EventKind.PRINCIPAL_UPDATED, "p1")
    gateway.notify(EventKind.PRINCIPAL_UPDATED, "p2")
    assert gateway.overflowed == 1

    gateway.start()
    gateway.stop(timeout=5)
    assert sorted(e.principal_id for e in backend.delivered) == ["p1", "p2"]
    assert gateway.delivered == 2


def test_overflow_failures_are_counted_not_raised():
    backend = FlakyBackend(failures=10)
    gateway = _gateway(backend, queue_size=1, max_attempts=2)
    gateway.notify(EventKind.REQUEST_SUBMITTED, "p1")
    gateway.notify(EventKind.REQUEST_SUBMITTED, "p2")
    gateway.start()
    try:
        assert gateway.flush(5)
    finally:
        gateway.stop()
    assert gateway.failed == 2
    assert backend.delivered == []


def test_stop_drains_queue():
    backend = FlakyBackend(0)
    gateway = _gateway(backend)
    for i in range(5):
        gateway.notify(EventKind.PRINCIPAL_LOGGED_IN, f"p{i}")
    gateway.start()
    gateway.stop(timeout=5)
    assert len(backend.delivered) == 5
    assert not gateway.running


def test_webhook_delivery_posts_event():
    session = MagicMock(spec=requests.Session)
    delivery = WebhookDelivery("https://hooks.example.com/sesmine", timeout_seconds=3, session=session)
    event = NotificationEvent(kind=EventKind.REQUEST_SUBMITTED, principal_id="p1", payload={"a": 1})

    delivery.deliver(event)

    session.post.assert_called_once()
    args, kwargs = session.post.call_args
    assert args == ("https://hooks.example.com/sesmine",)
    assert kwargs["json"]["kind"] == "request_submitted"
    assert kwargs["json"]["payload"] == {"a": 1}
    assert kwargs["timeout"] == 3
    session.post.return_value.raise_for_status.assert_called_once()


def test_build_gateway_selects_backend():
    assert isinstance(build_gateway(NotificationSettings()).backend, LogDelivery)
    webhook = build_gateway(NotificationSettings(backend="webhook", webhook_url="https://h.example.com"))
    assert isinstance(webhook.backend, WebhookDelivery)
    # Webhook without a URL falls back to logging.
    assert isinstance(build_gateway(NotificationSettings(backend="webhook")).backend, LogDelivery)


def test_safe_notify_swallows_notifier_errors():
    failing = FailingNotifier()
    safe_notify(failing, EventKind.PRINCIPAL_REGISTERED, "p1", {})
    assert failing.calls == 1
