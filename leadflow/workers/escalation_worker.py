"""
Escalation Worker
Periodically escalates assignments nobody answered before their deadline.

Run as separate process:
    python -m leadflow.workers.escalation_worker
"""

from __future__ import annotations

import asyncio
import logging
import signal
from datetime import timedelta

import httpx

from leadflow.adapters.notifications.dispatcher import PendingNotifications
from leadflow.adapters.persistence.database import async_session_factory, engine
from leadflow.application.locks import KeyedLocks
from leadflow.config import settings
from leadflow.infrastructure.wiring import (
    build_notification_dispatcher,
    build_onboarding_adapter,
    build_services,
    sql_repositories,
)

logger = logging.getLogger(__name__)


class EscalationWorker:
    """
    Runs one escalation sweep per interval, one DB transaction per sweep.

    A failing sweep is rolled back and retried on the next tick; too many
    failures in a row stop the worker.
    """

    MAX_CONSECUTIVE_ERRORS = 10

    def __init__(
        self,
        interval_seconds: float,
        cooldown: timedelta,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.interval_seconds = interval_seconds
        self.cooldown = cooldown
        self.running = False
        self._stop = asyncio.Event()
        self._locks = KeyedLocks()
        self._http = http_client or httpx.AsyncClient(timeout=settings.http_timeout_seconds)

        self._dispatcher = build_notification_dispatcher(self._http)
        self._onboarding = build_onboarding_adapter(self._http)

        # Stats
        self.sweeps = 0
        self.escalated = 0
        self.failed = 0

    async def sweep_once(self) -> int:
        """Run one sweep in one transaction; its notifications go out only after commit."""
        outbox = PendingNotifications(self._dispatcher)
        async with async_session_factory() as session:
            services = build_services(
                sql_repositories(session),
                notifier=outbox,
                onboarding=self._onboarding,
                locks=self._locks,
                escalation_cooldown=self.cooldown,
            )
            try:
                results = await services.sweep.execute()
                await session.commit()
            except Exception:
                await session.rollback()
                outbox.discard()
                raise

        outbox.publish()
        self.sweeps += 1
        self.escalated += sum(1 for r in results if r.error is None)
        self.failed += sum(1 for r in results if r.error is not None)
        return len(results)

    async def run(self) -> None:
        self.running = True
        self._dispatcher.start()
        consecutive_errors = 0
        logger.info(
            "Escalation Worker started - sweeping every %ss", self.interval_seconds
        )

        while self.running and not self._stop.is_set():
            try:
                handled = await self.sweep_once()
                if handled:
                    logger.info("Escalation sweep handled %d assignments", handled)
                consecutive_errors = 0
            except asyncio.CancelledError:
                logger.info("Worker received cancellation signal")
                break
            except Exception:
                consecutive_errors += 1
                logger.exception("Escalation sweep failed (%d in a row)", consecutive_errors)
                if consecutive_errors >= self.MAX_CONSECUTIVE_ERRORS:
                    logger.critical("Too many consecutive errors, stopping worker")
                    break

            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                pass

        await self.shutdown()

    def stop(self) -> None:
        self.running = False
        self._stop.set()

    async def shutdown(self) -> None:
        self.running = False
        await self._dispatcher.stop()
        await self._http.aclose()
        logger.info(
            "Escalation Worker stopped (sweeps=%d, escalated=%d, failed=%d)",
            self.sweeps, self.escalated, self.failed,
        )


async def main() -> None:
    """Entry point for running the escalation worker as a separate process."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    worker = EscalationWorker(
        interval_seconds=settings.escalation_sweep_interval_seconds,
        cooldown=timedelta(minutes=settings.escalation_cooldown_minutes),
    )

    loop = asyncio.get_running_loop()

    def signal_handler():
        logger.info("Received shutdown signal")
        worker.stop()

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, signal_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    try:
        await worker.run()
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
