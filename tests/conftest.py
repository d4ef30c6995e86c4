"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from leadflow.adapters.persistence.memory import InMemoryStore
from leadflow.application.ports.notification_port import NotificationEvent, NotificationPort
from leadflow.application.ports.onboarding_port import OnboardingPort
from leadflow.domain.entities.lead import Lead
from leadflow.domain.entities.team_member import TeamMember
from leadflow.domain.value_objects.enums import Department, LeadSource, Role
from leadflow.infrastructure.wiring import build_services, memory_repositories

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


# ─── Fakes ───────────────────────────────────────────────────────────


class FixedClock:
    """Clock pinned to a settable instant."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class RecordingNotifier(NotificationPort):
    def __init__(self, fail: bool = False):
        self.events: list[NotificationEvent] = []
        self.fail = fail

    def notify(self, event):
        if self.fail:
            raise RuntimeError("dispatcher down")
        self.events.append(event)

    def kinds(self) -> list[str]:
        return [e.kind.value for e in self.events]


class RecordingOnboarding(OnboardingPort):
    def __init__(self, fail: bool = False):
        self.calls: list[tuple[int, int, int]] = []
        self.fail = fail

    async def start_onboarding(self, deal, lead, member):
        if self.fail:
            raise RuntimeError("onboarding service unavailable")
        self.calls.append((deal.id, lead.id, member.id))


# ─── Fixtures ────────────────────────────────────────────────────────


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def onboarding():
    return RecordingOnboarding()


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def repos(store):
    return memory_repositories(store)


@pytest.fixture
def services(repos, notifier, onboarding, clock):
    return build_services(repos, notifier, onboarding, clock=clock)


@pytest.fixture
def hire(repos):
    """Save a team member straight into the store."""

    async def _hire(
        name: str = "Alex Advisor",
        role: Role = Role.ADVISOR,
        department: Department = Department.INSURANCE,
        **kwargs,
    ) -> TeamMember:
        email = kwargs.pop("email", f"{name.lower().replace(' ', '.')}@example.com")
        member = TeamMember(
            id=None, name=name, email=email, role=role, department=department, **kwargs
        )
        return await repos.members.save(member)

    return _hire


@pytest.fixture
def add_lead(repos):
    """Save a scored lead the way the intake service would."""

    async def _add(
        score: int = 30,
        source: LeadSource = LeadSource.INSURANCE,
        name: str = "Jamie Prospect",
        **kwargs,
    ) -> Lead:
        lead = Lead(
            id=None,
            name=name,
            email=kwargs.pop("email", "jamie@example.com"),
            source=source,
            lead_score=score,
            **kwargs,
        )
        return await repos.leads.add(lead)

    return _add
