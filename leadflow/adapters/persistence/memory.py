"""In-memory repository implementations.

Used for tests and for embedding the routing core without a database. Every
read and write deep-copies, so callers never share mutable state with the
store. Row locks (``for_update``) are no-ops here: a single event loop plus
the use cases' per-key locks already serialize the read-modify-write paths.
"""

from __future__ import annotations

import copy
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from itertools import count

from leadflow.application.ports.assignment_repo import AssignmentRepository
from leadflow.application.ports.deal_repo import DealRepository
from leadflow.application.ports.lead_repo import LeadRepository
from leadflow.application.ports.routing_counter_repo import RoutingCounterRepository
from leadflow.application.ports.team_member_repo import TeamMemberRepository
from leadflow.domain.entities.assignment import Assignment
from leadflow.domain.entities.deal import Deal
from leadflow.domain.entities.lead import Lead
from leadflow.domain.entities.routing_counter import RoutingCounter
from leadflow.domain.entities.team_member import TeamMember
from leadflow.domain.value_objects.enums import (
    DealStatus,
    Department,
    RoutingType,
)


@dataclass
class InMemoryStore:
    """Shared tables so several repositories see the same data."""

    members: dict[int, TeamMember] = field(default_factory=dict)
    leads: dict[int, Lead] = field(default_factory=dict)
    assignments: dict[int, Assignment] = field(default_factory=dict)
    deals: dict[int, Deal] = field(default_factory=dict)
    counters: dict[tuple[Department, RoutingType], RoutingCounter] = field(default_factory=dict)
    _ids: dict[str, count] = field(default_factory=dict)

    def next_id(self, table: str) -> int:
        return next(self._ids.setdefault(table, count(1)))


@asynccontextmanager
async def no_savepoint() -> AsyncIterator[None]:
    """Writes land immediately; there is nothing to roll back."""
    yield


class InMemoryTeamMemberRepository(TeamMemberRepository):
    def __init__(self, store: InMemoryStore):
        self._store = store

    async def save(self, member: TeamMember) -> TeamMember:
        if member.id is None:
            member.id = self._store.next_id("members")
        self._store.members[member.id] = copy.deepcopy(member)
        return member

    async def get_by_id(self, member_id: int) -> TeamMember | None:
        return copy.deepcopy(self._store.members.get(member_id))

    async def get_active(self, department: Department | None = None) -> list[TeamMember]:
        return [
            copy.deepcopy(m)
            for _, m in sorted(self._store.members.items())
            if m.is_active and (department is None or m.department == department)
        ]

    async def get_active_managers(self, department: Department) -> list[TeamMember]:
        return [m for m in await self.get_active(department) if m.is_manager()]

    async def set_active(self, member_id: int, is_active: bool) -> None:
        member = self._store.members.get(member_id)
        if member is not None:
            member.is_active = is_active

    async def record_assignment(self, member_id: int, at: datetime) -> None:
        member = self._store.members.get(member_id)
        if member is not None:
            member.record_assignment(at)

    async def increment_load(self, member_id: int) -> None:
        member = self._store.members.get(member_id)
        if member is not None:
            member.current_lead_count += 1

    async def release_load(self, member_id: int) -> None:
        member = self._store.members.get(member_id)
        if member is not None:
            member.release_lead()


class InMemoryLeadRepository(LeadRepository):
    def __init__(self, store: InMemoryStore):
        self._store = store

    async def add(self, lead: Lead) -> Lead:
        """Stand-in for the intake service writing a scored lead."""
        if lead.id is None:
            lead.id = self._store.next_id("leads")
        self._store.leads[lead.id] = copy.deepcopy(lead)
        return lead

    async def get_by_id(self, lead_id: int, for_update: bool = False) -> Lead | None:
        return copy.deepcopy(self._store.leads.get(lead_id))


class InMemoryAssignmentRepository(AssignmentRepository):
    def __init__(self, store: InMemoryStore):
        self._store = store

    async def save(self, assignment: Assignment) -> Assignment:
        if assignment.id is None:
            assignment.id = self._store.next_id("assignments")
        self._store.assignments[assignment.id] = copy.deepcopy(assignment)
        return assignment

    async def update(self, assignment: Assignment) -> Assignment:
        self._store.assignments[assignment.id] = copy.deepcopy(assignment)
        return assignment

    async def get_by_id(self, assignment_id: int, for_update: bool = False) -> Assignment | None:
        return copy.deepcopy(self._store.assignments.get(assignment_id))

    async def get_latest_for_lead(self, lead_id: int, for_update: bool = False) -> Assignment | None:
        history = await self.get_by_lead(lead_id)
        return history[-1] if history else None

    async def get_by_lead(self, lead_id: int) -> list[Assignment]:
        return [
            copy.deepcopy(a)
            for _, a in sorted(self._store.assignments.items())
            if a.lead_id == lead_id
        ]

    async def get_by_member(self, member_id: int) -> list[Assignment]:
        return [
            copy.deepcopy(a)
            for _, a in sorted(self._store.assignments.items(), reverse=True)
            if a.assigned_to_id == member_id
        ]

    async def get_overdue(self, now: datetime) -> list[Assignment]:
        overdue = [
            a
            for a in self._store.assignments.values()
            if a.is_overdue(now)
        ]
        return [copy.deepcopy(a) for a in sorted(overdue, key=lambda a: (a.response_deadline, a.id))]


class InMemoryDealRepository(DealRepository):
    def __init__(self, store: InMemoryStore):
        self._store = store

    async def save(self, deal: Deal) -> Deal:
        if deal.id is None:
            deal.id = self._store.next_id("deals")
        self._store.deals[deal.id] = copy.deepcopy(deal)
        return deal

    async def update(self, deal: Deal) -> Deal:
        self._store.deals[deal.id] = copy.deepcopy(deal)
        return deal

    async def get_by_id(self, deal_id: int, for_update: bool = False) -> Deal | None:
        return copy.deepcopy(self._store.deals.get(deal_id))

    async def get_active(
        self, pipeline: Department, member_id: int | None = None
    ) -> list[Deal]:
        return [
            copy.deepcopy(d)
            for _, d in sorted(self._store.deals.items(), reverse=True)
            if d.pipeline == pipeline
            and d.status == DealStatus.ACTIVE
            and (member_id is None or d.assigned_to_id == member_id)
        ]

    async def get_by_member(self, member_id: int) -> list[Deal]:
        return [
            copy.deepcopy(d)
            for _, d in sorted(self._store.deals.items(), reverse=True)
            if d.assigned_to_id == member_id
        ]

    async def get_followups_between(
        self, start: datetime | None, end: datetime, member_id: int | None = None
    ) -> list[Deal]:
        due = [
            d
            for d in self._store.deals.values()
            if d.is_overdue(end)
            and (start is None or d.next_followup_at >= start)
            and (member_id is None or d.assigned_to_id == member_id)
        ]
        return [copy.deepcopy(d) for d in sorted(due, key=lambda d: (d.next_followup_at, d.id))]


class InMemoryRoutingCounterRepository(RoutingCounterRepository):
    def __init__(self, store: InMemoryStore):
        self._store = store

    async def lock(self, department: Department, routing_type: RoutingType) -> RoutingCounter:
        key = (department, routing_type)
        counter = self._store.counters.get(key)
        if counter is None:
            counter = RoutingCounter(
                id=self._store.next_id("counters"),
                department=department,
                routing_type=routing_type,
            )
            self._store.counters[key] = counter
        return copy.deepcopy(counter)

    async def save(self, counter: RoutingCounter) -> RoutingCounter:
        self._store.counters[(counter.department, counter.routing_type)] = copy.deepcopy(counter)
        return counter
