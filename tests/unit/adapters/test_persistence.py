"""Tests for the persistence adapters: SQL mappers and the in-memory store."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import DBAPIError, OperationalError

from leadflow.adapters.persistence.models import DealModel, TeamMemberModel
from leadflow.adapters.persistence.repositories import (
    _deal_to_domain,
    _deal_values,
    SqlLeadRepository,
    _member_to_domain,
    _translate_conflicts,
)
from leadflow.domain.entities.deal import StageHistoryEntry
from leadflow.domain.entities.team_member import TeamMember
from leadflow.domain.errors import ConcurrentUpdateError
from leadflow.domain.value_objects.enums import (
    DealPriority,
    DealStatus,
    Department,
    Role,
    RoutingType,
)

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class _PgError(Exception):
    def __init__(self, pgcode: str):
        super().__init__(f"pg error {pgcode}")
        self.pgcode = pgcode


class _NoRows:
    def scalar_one_or_none(self):
        return None


class _RecordingSession:
    def __init__(self):
        self.statements = []

    async def execute(self, statement):
        self.statements.append(statement)
        return _NoRows()


# ─── SQL mappers ─────────────────────────────────────────────────────


def test_member_model_to_domain():
    model = TeamMemberModel(
        id=3, name="Alice", email="alice@example.com", phone=None, role="manager",
        department="recruiting", territories=["TX", "OK"], specializations=None,
        max_leads_per_day=12, current_lead_count=2, is_active=True, last_assigned_at=T0,
    )
    member = _member_to_domain(model)
    assert member.role == Role.MANAGER
    assert member.department == Department.RECRUITING
    assert member.territories == {"TX", "OK"}
    assert member.specializations == set()


def test_deal_stage_history_survives_json_column():
    model = DealModel(
        id=1, lead_id=2, assigned_to_id=3, title="Pat - Retirement Planning Session",
        pipeline="insurance", stage="Engaged", value=1_000_000, priority="high",
        status="active", source="retirement", tags=["HotLead"], notes=None,
        stage_history=[
            {"stage": "New", "timestamp": T0.isoformat(), "notes": "Deal created from hot lead (score 80)"},
            {"stage": "Engaged", "timestamp": (T0 + timedelta(hours=1)).isoformat(), "notes": None},
        ],
        next_followup_at=T0 + timedelta(hours=25), last_contacted_at=None,
        onboarding_triggered_at=None, created_at=T0, updated_at=T0,
    )

    deal = _deal_to_domain(model)

    assert deal.priority == DealPriority.HIGH
    assert deal.status == DealStatus.ACTIVE
    assert deal.stage_history == [
        StageHistoryEntry("New", T0, "Deal created from hot lead (score 80)"),
        StageHistoryEntry("Engaged", T0 + timedelta(hours=1), None),
    ]
    assert _deal_values(deal)["stage_history"] == model.stage_history


@pytest.mark.parametrize("code", ["40001", "40P01", "55P03"])
def test_lock_failures_become_concurrent_update(code):
    with pytest.raises(ConcurrentUpdateError):
        with _translate_conflicts():
            raise OperationalError("SELECT 1", {}, _PgError(code))


def test_other_database_errors_propagate():
    with pytest.raises(DBAPIError):
        with _translate_conflicts():
            raise DBAPIError("SELECT 1", {}, _PgError("23505"))


@pytest.mark.asyncio
async def test_lead_read_for_update_locks_the_row():
    session = _RecordingSession()
    repo = SqlLeadRepository(session)

    assert await repo.get_by_id(7, for_update=True) is None
    await repo.get_by_id(7)

    locked, plain = (str(s.compile(dialect=postgresql.dialect())) for s in session.statements)
    assert "FOR UPDATE" in locked
    assert "FOR UPDATE" not in plain


# ─── In-memory store ─────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_reads_are_copies(repos):
    member = await repos.members.save(
        TeamMember(id=None, name="Sam", email="sam@example.com", role=Role.ADVISOR,
                   department=Department.INSURANCE)
    )
    loaded = await repos.members.get_by_id(member.id)
    loaded.current_lead_count = 40
    assert (await repos.members.get_by_id(member.id)).current_lead_count == 0


@pytest.mark.asyncio
async def test_release_load_floors_at_zero(repos):
    member = await repos.members.save(
        TeamMember(id=None, name="Sam", email="sam@example.com", role=Role.ADVISOR,
                   department=Department.INSURANCE)
    )
    await repos.members.release_load(member.id)
    await repos.members.increment_load(member.id)
    await repos.members.release_load(member.id)
    await repos.members.release_load(member.id)
    assert (await repos.members.get_by_id(member.id)).current_lead_count == 0


@pytest.mark.asyncio
async def test_counter_created_on_first_lock(repos):
    counter = await repos.counters.lock(Department.RECRUITING, RoutingType.ROUND_ROBIN)
    assert counter.last_assigned_member_id is None
    assert counter.assignment_count == 0

    counter.record_assignment(9, T0)
    await repos.counters.save(counter)

    again = await repos.counters.lock(Department.RECRUITING, RoutingType.ROUND_ROBIN)
    assert again.id == counter.id
    assert again.last_assigned_member_id == 9
