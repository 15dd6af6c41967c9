"""
Notification gateway.

Core code calls notify(kind, principal_id, payload) and moves on: events go
onto a bounded queue and a daemon worker thread hands them to a delivery
backend, retrying with exponential backoff. When the queue is full the event
is dispatched on its own short-lived thread, so every event gets a delivery
attempt and notify() never blocks. Nothing raised by a backend ever reaches
the caller; after the last attempt the event is logged and dropped.
"""

from __future__ import annotations

import queue
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from threading import Event, Lock, Thread
from typing import Any, Dict, List, Optional, Protocol
from uuid import uuid4

import requests
from tenacity import RetryError, Retrying, stop_after_attempt, wait_exponential

from ..core.clock import utcnow
from ..utils.logger import get_logger

logger = get_logger(__name__)


class EventKind(str, Enum):
    PRINCIPAL_REGISTERED = "principal_registered"
    PRINCIPAL_LOGGED_IN = "principal_logged_in"
    PRINCIPAL_UPDATED = "principal_updated"
    REQUEST_SUBMITTED = "request_submitted"
    REQUEST_RESOLVED = "request_resolved"


@dataclass(frozen=True)
class NotificationEvent:
    kind: EventKind
    principal_id: str
    payload: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "principal_id": self.principal_id,
            "payload": self.payload,
            "created_at": self.created_at.isoformat(),
        }


class Notifier(Protocol):
    """The one capability core components depend on."""

    def notify(self, kind: EventKind, principal_id: str, payload: Optional[Dict[str, Any]] = None) -> None: ...


class DeliveryBackend(Protocol):
    def deliver(self, event: NotificationEvent) -> None: ...


class LogDelivery:
    """Writes events to the log. Default when no channel is configured."""

    def deliver(self, event: NotificationEvent) -> None:
        logger.info(
            "Notification",
            event_id=event.id,
            kind=event.kind.value,
            principal_id=event.principal_id,
            payload=event.payload,
        )


class WebhookDelivery:
    """POSTs each event as JSON to an external delivery service."""

    def __init__(self, url: str, timeout_seconds: float = 10.0, session: Optional[requests.Session] = None):
        self.url = url
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()

    def deliver(self, event: NotificationEvent) -> None:
        response = self.session.post(self.url, json=event.to_dict(), timeout=self.timeout_seconds)
        response.raise_for_status()


class NotificationGateway:
    """Queued, retrying, fire-and-forget Notifier."""

    def __init__(
        self,
        backend: DeliveryBackend,
        max_attempts: int = 3,
        backoff_seconds: float = 0.5,
        max_backoff_seconds: float = 8.0,
        queue_size: int = 1000,
    ):
        self.backend = backend
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.max_backoff_seconds = max_backoff_seconds
        self._queue: "queue.Queue[NotificationEvent]" = queue.Queue(maxsize=queue_size)
        self._stop_event = Event()
        self._worker: Optional[Thread] = None
        self.delivered = 0
        self.failed = 0
        self.overflowed = 0
        self._overflow: List[Thread] = []
        self._lock = Lock()

    @property
    def running(self) -> bool:
        return self._worker is not None and self._worker.is_alive()

    def notify(self, kind: EventKind, principal_id: str, payload: Optional[Dict[str, Any]] = None) -> None:
        event = NotificationEvent(kind=EventKind(kind), principal_id=principal_id, payload=dict(payload or {}))
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            self._dispatch_overflow(event)

    def _dispatch_overflow(self, event: NotificationEvent) -> None:
        thread = Thread(target=self._dispatch, args=(event,), daemon=True, name=f"notification-overflow-{event.id}")
        with self._lock:
            self._overflow = [t for t in self._overflow if t.is_alive()]
            self._overflow.append(thread)
            self.overflowed += 1
        thread.start()
        logger.warning(
            "Notification queue full, dispatching on overflow thread",
            event_id=event.id,
            kind=event.kind.value,
            principal_id=event.principal_id,
        )

    def start(self) -> None:
        if self.running:
            logger.warning("Notification worker already running")
            return
        self._stop_event.clear()
        self._worker = Thread(target=self._worker_loop, daemon=True, name="notification-gateway")
        self._worker.start()
        logger.info("Notification worker started", backend=type(self.backend).__name__)

    def stop(self, timeout: float = 5.0) -> None:
        """Drain what is queued (up to timeout), then stop the worker."""
        if not self.running:
            return
        self.flush(timeout)
        self._stop_event.set()
        self._worker.join(timeout=2)
        if self._worker.is_alive():
            logger.warning("Notification worker still alive after timeout, continuing shutdown")
        self._worker = None
        logger.info("Notification worker stopped", delivered=self.delivered, failed=self.failed)

    def flush(self, timeout: float = 5.0) -> bool:
        """Wait until every queued and overflow event has been handled. True if drained."""
        deadline = time.monotonic() + timeout
        while self._queue.unfinished_tasks and time.monotonic() < deadline:
            time.sleep(0.01)
        with self._lock:
            overflow = list(self._overflow)
        for thread in overflow:
            thread.join(timeout=max(0.0, deadline - time.monotonic()))
        with self._lock:
            self._overflow = [t for t in self._overflow if t.is_alive()]
            pending_overflow = len(self._overflow)
        return self._queue.unfinished_tasks == 0 and pending_overflow == 0

    def _worker_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                event = self._queue.get(timeout=0.1)
            except queue.Empty:
                continue
            try:
                self._dispatch(event)
            finally:
                self._queue.task_done()

    def _dispatch(self, event: NotificationEvent) -> None:
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff_seconds, max=self.max_backoff_seconds),
            reraise=False,
        )
        try:
            for attempt in retrying:
                with attempt:
                    self.backend.deliver(event)
        except RetryError as e:
            with self._lock:
                self.failed += 1
            logger.error(
                "Notification delivery failed",
                event_id=event.id,
                kind=event.kind.value,
                principal_id=event.principal_id,
                attempts=self.max_attempts,
                error=str(e.last_attempt.exception()),
            )
            return
        except Exception as e:
            with self._lock:
                self.failed += 1
            logger.error("Notification dispatch error", event_id=event.id, error=str(e))
            return
        with self._lock:
            self.delivered += 1


def build_gateway(settings) -> NotificationGateway:
    """Gateway for NotificationSettings: webhook delivery if configured, else log."""
    backend: DeliveryBackend
    if settings.backend == "webhook" and settings.webhook_url:
        backend = WebhookDelivery(settings.webhook_url, settings.timeout_seconds)
    else:
        backend = LogDelivery()
    return NotificationGateway(
        backend,
        max_attempts=settings.max_attempts,
        backoff_seconds=settings.backoff_seconds,
        max_backoff_seconds=settings.max_backoff_seconds,
        queue_size=settings.queue_size,
    )


def safe_notify(
    notifier: Notifier, kind: EventKind, principal_id: str, payload: Optional[Dict[str, Any]] = None
) -> None:
    """notify() for core code paths: a failing notifier is logged, never raised."""
    try:
        notifier.notify(kind, principal_id, payload)
    except Exception as e:
        logger.error(
            "Notification could not be queued",
            kind=EventKind(kind).value,
            principal_id=principal_id,
            error=str(e),
        )
