"""Queue-backed notification dispatcher and its delivery sinks.

``notify`` only enqueues; a background task drains the queue and hands each
event to a sink exactly once. Delivery failures are logged and dropped.
Callers that write inside a transaction stage their events in
``PendingNotifications`` and publish them after the commit.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod

import httpx

from leadflow.application.ports.notification_port import (
    NotificationEvent,
    NotificationPort,
    notify_safely,
)

logger = logging.getLogger(__name__)


class NotificationSink(ABC):
    @abstractmethod
    async def deliver(self, event: NotificationEvent) -> None:
        ...


class LoggingNotificationSink(NotificationSink):
    """Fallback sink when no webhook is configured."""

    async def deliver(self, event: NotificationEvent) -> None:
        logger.info("Notification %s: %s", event.kind.value, event.payload)


class WebhookNotificationSink(NotificationSink):
    def __init__(self, url: str, client: httpx.AsyncClient):
        self._url = url
        self._client = client

    async def deliver(self, event: NotificationEvent) -> None:
        response = await self._client.post(self._url, json=event.to_dict())
        response.raise_for_status()


class QueueNotificationDispatcher(NotificationPort):
    def __init__(self, sink: NotificationSink, maxsize: int = 1000):
        self._sink = sink
        self._queue: asyncio.Queue[NotificationEvent] = asyncio.Queue(maxsize=maxsize)
        self._task: asyncio.Task | None = None
        self.delivered = 0
        self.failed = 0
        self.dropped = 0

    def notify(self, event: NotificationEvent) -> None:
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "Notification queue full (%d), dropping %s event",
                self._queue.maxsize, event.kind.value,
            )

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._drain())
            logger.info("Notification dispatcher started")

    async def stop(self, timeout: float = 5.0) -> None:
        """Give queued events ``timeout`` seconds to flush, then stop the worker."""
        if self._task is None:
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout)
        except asyncio.TimeoutError:
            logger.warning("Notification dispatcher stopped with %d pending events", self.pending)
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info(
            "Notification dispatcher stopped (delivered=%d, failed=%d, dropped=%d)",
            self.delivered, self.failed, self.dropped,
        )

    async def _drain(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self._sink.deliver(event)
                self.delivered += 1
            except asyncio.CancelledError:
                raise
            except Exception:
                self.failed += 1
                logger.exception("Failed to deliver %s notification", event.kind.value)
            finally:
                self._queue.task_done()


class PendingNotifications(NotificationPort):
    """Holds one unit of work's events until its transaction commits.

    ``publish`` hands them to the real dispatcher; ``discard`` drops them when
    the transaction is rolled back, so nobody hears about writes that never
    happened.
    """

    def __init__(self, target: NotificationPort):
        self._target = target
        self._events: list[NotificationEvent] = []

    def notify(self, event: NotificationEvent) -> None:
        self._events.append(event)

    @property
    def pending(self) -> list[NotificationEvent]:
        return list(self._events)

    def publish(self) -> int:
        events, self._events = self._events, []
        for event in events:
            notify_safely(self._target, event)
        return len(events)

    def discard(self) -> int:
        events, self._events = self._events, []
        if events:
            logger.info("Discarding %d notifications of a rolled back transaction", len(events))
        return len(events)
