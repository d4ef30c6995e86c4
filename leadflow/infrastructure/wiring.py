"""Wires repositories and collaborators into services and use cases.

Shared by the HTTP dependencies, the escalation worker and the tests, so the
object graph is built in exactly one place.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from datetime import timedelta
from functools import partial

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from leadflow.adapters.notifications.dispatcher import (
    LoggingNotificationSink,
    NotificationSink,
    QueueNotificationDispatcher,
    WebhookNotificationSink,
)
from leadflow.adapters.onboarding.webhook_adapter import (
    LoggingOnboardingAdapter,
    WebhookOnboardingAdapter,
)
from leadflow.adapters.persistence.database import savepoint
from leadflow.adapters.persistence.memory import (
    InMemoryAssignmentRepository,
    InMemoryDealRepository,
    InMemoryLeadRepository,
    InMemoryRoutingCounterRepository,
    InMemoryStore,
    InMemoryTeamMemberRepository,
    no_savepoint,
)
from leadflow.adapters.persistence.repositories import (
    SqlAssignmentRepository,
    SqlDealRepository,
    SqlLeadRepository,
    SqlRoutingCounterRepository,
    SqlTeamMemberRepository,
)
from leadflow.application.locks import KeyedLocks
from leadflow.application.ports.assignment_repo import AssignmentRepository
from leadflow.application.ports.deal_repo import DealRepository
from leadflow.application.ports.lead_repo import LeadRepository
from leadflow.application.ports.notification_port import NotificationPort
from leadflow.application.ports.onboarding_port import OnboardingPort
from leadflow.application.ports.routing_counter_repo import RoutingCounterRepository
from leadflow.application.ports.team_member_repo import TeamMemberRepository
from leadflow.application.services.assignment_tracker import AssignmentTracker
from leadflow.application.services.deal_pipeline import DealPipeline
from leadflow.application.services.team_directory import TeamDirectory
from leadflow.application.use_cases.escalate_assignment import EscalateAssignmentUseCase
from leadflow.application.use_cases.reassign_lead import ReassignLeadUseCase
from leadflow.application.use_cases.route_lead import RouteLeadUseCase
from leadflow.application.use_cases.sweep_escalations import EscalationSweepUseCase
from leadflow.config import settings
from leadflow.domain.value_objects.timestamps import Clock, utcnow

logger = logging.getLogger(__name__)


@dataclass
class Repositories:
    members: TeamMemberRepository
    leads: LeadRepository
    assignments: AssignmentRepository
    deals: DealRepository
    counters: RoutingCounterRepository
    # Opens a nested transaction; a failure inside it undoes only its own writes
    savepoint: Callable[[], AbstractAsyncContextManager[None]]


@dataclass
class Services:
    repos: Repositories
    directory: TeamDirectory
    tracker: AssignmentTracker
    pipeline: DealPipeline
    route_lead: RouteLeadUseCase
    reassign_lead: ReassignLeadUseCase
    escalate: EscalateAssignmentUseCase
    sweep: EscalationSweepUseCase


def sql_repositories(session: AsyncSession) -> Repositories:
    return Repositories(
        members=SqlTeamMemberRepository(session),
        leads=SqlLeadRepository(session),
        assignments=SqlAssignmentRepository(session),
        deals=SqlDealRepository(session),
        counters=SqlRoutingCounterRepository(session),
        savepoint=partial(savepoint, session),
    )


def memory_repositories(store: InMemoryStore | None = None) -> Repositories:
    store = store or InMemoryStore()
    return Repositories(
        members=InMemoryTeamMemberRepository(store),
        leads=InMemoryLeadRepository(store),
        assignments=InMemoryAssignmentRepository(store),
        deals=InMemoryDealRepository(store),
        counters=InMemoryRoutingCounterRepository(store),
        savepoint=no_savepoint,
    )


def build_services(
    repos: Repositories,
    notifier: NotificationPort,
    onboarding: OnboardingPort,
    locks: KeyedLocks | None = None,
    clock: Clock = utcnow,
    escalation_cooldown: timedelta = timedelta(minutes=120),
) -> Services:
    locks = locks or KeyedLocks()
    tracker = AssignmentTracker(repos.assignments, repos.members, notifier, locks, clock)
    pipeline = DealPipeline(
        repos.deals, repos.leads, repos.members, onboarding, notifier, locks, clock
    )
    reassign = ReassignLeadUseCase(
        repos.leads, repos.members, repos.assignments, tracker, notifier, locks, clock
    )
    escalate = EscalateAssignmentUseCase(repos.members, tracker, reassign, notifier, clock)
    return Services(
        repos=repos,
        directory=TeamDirectory(repos.members, repos.assignments),
        tracker=tracker,
        pipeline=pipeline,
        route_lead=RouteLeadUseCase(
            repos.members, repos.leads, repos.assignments, repos.counters,
            tracker, pipeline, notifier, locks, clock,
        ),
        reassign_lead=reassign,
        escalate=escalate,
        sweep=EscalationSweepUseCase(
            tracker, escalate, escalation_cooldown, clock, savepoint=repos.savepoint
        ),
    )


def build_notification_dispatcher(http_client: httpx.AsyncClient) -> QueueNotificationDispatcher:
    """Webhook sink when NOTIFICATION_WEBHOOK_URL is set, log-only otherwise."""
    sink: NotificationSink
    if settings.notification_webhook_url:
        sink = WebhookNotificationSink(settings.notification_webhook_url, http_client)
        logger.info("Delivering notifications to webhook")
    else:
        sink = LoggingNotificationSink()
    return QueueNotificationDispatcher(sink, maxsize=settings.notification_queue_size)


def build_onboarding_adapter(http_client: httpx.AsyncClient) -> OnboardingPort:
    if settings.onboarding_webhook_url:
        return WebhookOnboardingAdapter(settings.onboarding_webhook_url, http_client)
    return LoggingOnboardingAdapter()
