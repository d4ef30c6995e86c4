"""FastAPI dependency injection: wires adapters into use cases."""

from __future__ import annotations

from datetime import timedelta

import httpx
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from leadflow.adapters.notifications.dispatcher import PendingNotifications
from leadflow.adapters.persistence.database import get_session
from leadflow.application.locks import KeyedLocks
from leadflow.config import settings
from leadflow.infrastructure.wiring import (
    Services,
    build_notification_dispatcher,
    build_onboarding_adapter,
    build_services,
    sql_repositories,
)

# Process-wide singletons: the per-key locks must be shared by every request
_locks = KeyedLocks()
http_client = httpx.AsyncClient(timeout=settings.http_timeout_seconds)
notification_dispatcher = build_notification_dispatcher(http_client)
onboarding_adapter = build_onboarding_adapter(http_client)


class UnitOfWork:
    """The request's transaction plus the notifications it produced."""

    def __init__(self, session: AsyncSession, notifications: PendingNotifications):
        self.session = session
        self.notifications = notifications

    async def commit(self) -> None:
        try:
            await self.session.commit()
        except Exception:
            self.notifications.discard()
            raise
        self.notifications.publish()


def get_notifications() -> PendingNotifications:
    """Per-request buffer; FastAPI hands the same instance to every dependant."""
    return PendingNotifications(notification_dispatcher)


def get_unit_of_work(
    session: AsyncSession = Depends(get_session),
    notifications: PendingNotifications = Depends(get_notifications),
) -> UnitOfWork:
    return UnitOfWork(session, notifications)


def get_services(
    session: AsyncSession = Depends(get_session),
    notifications: PendingNotifications = Depends(get_notifications),
) -> Services:
    return build_services(
        sql_repositories(session),
        notifier=notifications,
        onboarding=onboarding_adapter,
        locks=_locks,
        escalation_cooldown=timedelta(minutes=settings.escalation_cooldown_minutes),
    )
