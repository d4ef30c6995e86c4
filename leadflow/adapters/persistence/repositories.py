"""SQLAlchemy repository implementations."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from leadflow.adapters.persistence.models import (
    DealModel,
    LeadAssignmentModel,
    LeadModel,
    RoutingCounterModel,
    TeamMemberModel,
)
from leadflow.application.ports.assignment_repo import AssignmentRepository
from leadflow.application.ports.deal_repo import DealRepository
from leadflow.application.ports.lead_repo import LeadRepository
from leadflow.application.ports.routing_counter_repo import RoutingCounterRepository
from leadflow.application.ports.team_member_repo import TeamMemberRepository
from leadflow.domain.entities.assignment import Assignment
from leadflow.domain.entities.deal import Deal, StageHistoryEntry
from leadflow.domain.entities.lead import Lead
from leadflow.domain.entities.routing_counter import RoutingCounter
from leadflow.domain.entities.team_member import TeamMember
from leadflow.domain.errors import ConcurrentUpdateError
from leadflow.domain.value_objects.enums import (
    AssignmentPriority,
    AssignmentReason,
    AssignmentStatus,
    DealPriority,
    DealStatus,
    Department,
    LeadSource,
    Role,
    RoutingType,
)

# serialization_failure, deadlock_detected, lock_not_available
_RETRYABLE_SQLSTATES = frozenset({"40001", "40P01", "55P03"})


@contextmanager
def _translate_conflicts() -> Iterator[None]:
    """Surface lock/serialization failures as ConcurrentUpdateError."""
    try:
        yield
    except DBAPIError as exc:
        orig = exc.orig
        code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
        if code in _RETRYABLE_SQLSTATES:
            raise ConcurrentUpdateError(str(orig)) from exc
        raise


# ─── Mappers ─────────────────────────────────────────────────────────


def _member_to_domain(m: TeamMemberModel) -> TeamMember:
    return TeamMember(
        id=m.id,
        name=m.name,
        email=m.email,
        phone=m.phone,
        role=Role(m.role),
        department=Department(m.department),
        territories=set(m.territories) if m.territories else set(),
        specializations=set(m.specializations) if m.specializations else set(),
        max_leads_per_day=m.max_leads_per_day,
        current_lead_count=m.current_lead_count,
        is_active=m.is_active,
        last_assigned_at=m.last_assigned_at,
    )


def _lead_to_domain(m: LeadModel) -> Lead:
    return Lead(
        id=m.id,
        name=m.name,
        email=m.email,
        phone=m.phone,
        source=LeadSource(m.source),
        lead_score=m.lead_score,
        interests=list(m.interests or []),
        tags=list(m.tags or []),
    )


def _assignment_to_domain(m: LeadAssignmentModel) -> Assignment:
    return Assignment(
        id=m.id,
        lead_id=m.lead_id,
        assigned_to_id=m.assigned_to_id,
        assigned_by_id=m.assigned_by_id,
        assignment_reason=AssignmentReason(m.assignment_reason),
        priority=AssignmentPriority(m.priority),
        status=AssignmentStatus(m.status),
        response_deadline=m.response_deadline,
        escalation_level=m.escalation_level,
        escalated_at=m.escalated_at,
        contact_attempts=m.contact_attempts,
        first_contacted_at=m.first_contacted_at,
        last_contacted_at=m.last_contacted_at,
        completed_at=m.completed_at,
        notes=m.notes,
        created_at=m.created_at,
        updated_at=m.updated_at,
    )


def _assignment_values(a: Assignment) -> dict:
    return dict(
        status=a.status.value,
        priority=a.priority.value,
        escalation_level=a.escalation_level,
        escalated_at=a.escalated_at,
        contact_attempts=a.contact_attempts,
        first_contacted_at=a.first_contacted_at,
        last_contacted_at=a.last_contacted_at,
        completed_at=a.completed_at,
        notes=a.notes,
        updated_at=a.updated_at,
    )


def _history_to_json(history: list[StageHistoryEntry]) -> list[dict]:
    return [
        {"stage": h.stage, "timestamp": h.timestamp.isoformat(), "notes": h.notes}
        for h in history
    ]


def _history_from_json(raw: list[dict] | None) -> list[StageHistoryEntry]:
    return [
        StageHistoryEntry(
            stage=h["stage"],
            timestamp=datetime.fromisoformat(h["timestamp"]),
            notes=h.get("notes"),
        )
        for h in raw or []
    ]


def _deal_to_domain(m: DealModel) -> Deal:
    return Deal(
        id=m.id,
        lead_id=m.lead_id,
        assigned_to_id=m.assigned_to_id,
        title=m.title,
        pipeline=Department(m.pipeline),
        stage=m.stage,
        value=m.value,
        priority=DealPriority(m.priority),
        status=DealStatus(m.status),
        source=LeadSource(m.source),
        tags=list(m.tags or []),
        notes=m.notes,
        stage_history=_history_from_json(m.stage_history),
        next_followup_at=m.next_followup_at,
        last_contacted_at=m.last_contacted_at,
        onboarding_triggered_at=m.onboarding_triggered_at,
        created_at=m.created_at,
        updated_at=m.updated_at,
    )


def _deal_values(d: Deal) -> dict:
    return dict(
        stage=d.stage,
        value=d.value,
        priority=d.priority.value,
        status=d.status.value,
        tags=list(d.tags),
        notes=d.notes,
        stage_history=_history_to_json(d.stage_history),
        next_followup_at=d.next_followup_at,
        last_contacted_at=d.last_contacted_at,
        onboarding_triggered_at=d.onboarding_triggered_at,
        updated_at=d.updated_at,
    )


def _counter_to_domain(m: RoutingCounterModel) -> RoutingCounter:
    return RoutingCounter(
        id=m.id,
        department=Department(m.department),
        routing_type=RoutingType(m.routing_type),
        last_assigned_member_id=m.last_assigned_member_id,
        assignment_count=m.assignment_count,
        reset_at=m.reset_at,
        updated_at=m.updated_at,
    )


# ─── Repositories ────────────────────────────────────────────────────


class SqlTeamMemberRepository(TeamMemberRepository):
    def __init__(self, session: AsyncSession):
        self._s = session

    async def save(self, member: TeamMember) -> TeamMember:
        m = TeamMemberModel(
            name=member.name,
            email=member.email,
            phone=member.phone,
            role=member.role.value,
            department=member.department.value,
            territories=sorted(member.territories),
            specializations=sorted(member.specializations),
            max_leads_per_day=member.max_leads_per_day,
            current_lead_count=member.current_lead_count,
            is_active=member.is_active,
            last_assigned_at=member.last_assigned_at,
        )
        self._s.add(m)
        await self._s.flush()
        member.id = m.id
        return member

    async def get_by_id(self, member_id: int) -> TeamMember | None:
        m = await self._s.get(TeamMemberModel, member_id, populate_existing=True)
        return _member_to_domain(m) if m else None

    async def get_active(self, department: Department | None = None) -> list[TeamMember]:
        stmt = select(TeamMemberModel).where(TeamMemberModel.is_active.is_(True))
        if department is not None:
            stmt = stmt.where(TeamMemberModel.department == department.value)
        result = await self._s.execute(
            stmt.order_by(TeamMemberModel.id).execution_options(populate_existing=True)
        )
        return [_member_to_domain(m) for m in result.scalars()]

    async def get_active_managers(self, department: Department) -> list[TeamMember]:
        result = await self._s.execute(
            select(TeamMemberModel)
            .where(
                TeamMemberModel.is_active.is_(True),
                TeamMemberModel.department == department.value,
                TeamMemberModel.role == Role.MANAGER.value,
            )
            .order_by(TeamMemberModel.id)
            .execution_options(populate_existing=True)
        )
        return [_member_to_domain(m) for m in result.scalars()]

    async def set_active(self, member_id: int, is_active: bool) -> None:
        await self._s.execute(
            update(TeamMemberModel)
            .where(TeamMemberModel.id == member_id)
            .values(is_active=is_active)
        )
        await self._s.flush()

    async def record_assignment(self, member_id: int, at: datetime) -> None:
        with _translate_conflicts():
            await self._s.execute(
                update(TeamMemberModel)
                .where(TeamMemberModel.id == member_id)
                .values(
                    current_lead_count=TeamMemberModel.current_lead_count + 1,
                    last_assigned_at=at,
                )
            )
            await self._s.flush()

    async def increment_load(self, member_id: int) -> None:
        with _translate_conflicts():
            await self._s.execute(
                update(TeamMemberModel)
                .where(TeamMemberModel.id == member_id)
                .values(current_lead_count=TeamMemberModel.current_lead_count + 1)
            )
            await self._s.flush()

    async def release_load(self, member_id: int) -> None:
        with _translate_conflicts():
            await self._s.execute(
                update(TeamMemberModel)
                .where(TeamMemberModel.id == member_id)
                .values(
                    current_lead_count=func.greatest(TeamMemberModel.current_lead_count - 1, 0)
                )
            )
            await self._s.flush()


class SqlLeadRepository(LeadRepository):
    def __init__(self, session: AsyncSession):
        self._s = session

    async def get_by_id(self, lead_id: int, for_update: bool = False) -> Lead | None:
        stmt = select(LeadModel).where(LeadModel.id == lead_id)
        if for_update:
            stmt = stmt.with_for_update()
        with _translate_conflicts():
            result = await self._s.execute(stmt.execution_options(populate_existing=True))
        m = result.scalar_one_or_none()
        return _lead_to_domain(m) if m else None


class SqlAssignmentRepository(AssignmentRepository):
    def __init__(self, session: AsyncSession):
        self._s = session

    async def save(self, assignment: Assignment) -> Assignment:
        m = LeadAssignmentModel(
            lead_id=assignment.lead_id,
            assigned_to_id=assignment.assigned_to_id,
            assigned_by_id=assignment.assigned_by_id,
            assignment_reason=assignment.assignment_reason.value,
            response_deadline=assignment.response_deadline,
            created_at=assignment.created_at,
            **_assignment_values(assignment),
        )
        self._s.add(m)
        await self._s.flush()
        assignment.id = m.id
        return assignment

    async def update(self, assignment: Assignment) -> Assignment:
        with _translate_conflicts():
            await self._s.execute(
                update(LeadAssignmentModel)
                .where(LeadAssignmentModel.id == assignment.id)
                .values(**_assignment_values(assignment))
            )
            await self._s.flush()
        return assignment

    async def get_by_id(self, assignment_id: int, for_update: bool = False) -> Assignment | None:
        stmt = select(LeadAssignmentModel).where(LeadAssignmentModel.id == assignment_id)
        return await self._one(stmt, for_update)

    async def get_latest_for_lead(self, lead_id: int, for_update: bool = False) -> Assignment | None:
        stmt = (
            select(LeadAssignmentModel)
            .where(LeadAssignmentModel.lead_id == lead_id)
            .order_by(LeadAssignmentModel.id.desc())
            .limit(1)
        )
        return await self._one(stmt, for_update)

    async def get_by_lead(self, lead_id: int) -> list[Assignment]:
        result = await self._s.execute(
            select(LeadAssignmentModel)
            .where(LeadAssignmentModel.lead_id == lead_id)
            .order_by(LeadAssignmentModel.id)
            .execution_options(populate_existing=True)
        )
        return [_assignment_to_domain(m) for m in result.scalars()]

    async def get_by_member(self, member_id: int) -> list[Assignment]:
        result = await self._s.execute(
            select(LeadAssignmentModel)
            .where(LeadAssignmentModel.assigned_to_id == member_id)
            .order_by(LeadAssignmentModel.id.desc())
            .execution_options(populate_existing=True)
        )
        return [_assignment_to_domain(m) for m in result.scalars()]

    async def get_overdue(self, now: datetime) -> list[Assignment]:
        result = await self._s.execute(
            select(LeadAssignmentModel)
            .where(
                LeadAssignmentModel.status == AssignmentStatus.ASSIGNED.value,
                LeadAssignmentModel.response_deadline < now,
            )
            .order_by(LeadAssignmentModel.response_deadline, LeadAssignmentModel.id)
            .execution_options(populate_existing=True)
        )
        return [_assignment_to_domain(m) for m in result.scalars()]

    async def _one(self, stmt, for_update: bool) -> Assignment | None:
        if for_update:
            stmt = stmt.with_for_update()
        with _translate_conflicts():
            result = await self._s.execute(stmt.execution_options(populate_existing=True))
        m = result.scalar_one_or_none()
        return _assignment_to_domain(m) if m else None


class SqlDealRepository(DealRepository):
    def __init__(self, session: AsyncSession):
        self._s = session

    async def save(self, deal: Deal) -> Deal:
        m = DealModel(
            lead_id=deal.lead_id,
            assigned_to_id=deal.assigned_to_id,
            title=deal.title,
            pipeline=deal.pipeline.value,
            source=deal.source.value,
            created_at=deal.created_at,
            **_deal_values(deal),
        )
        self._s.add(m)
        await self._s.flush()
        deal.id = m.id
        return deal

    async def update(self, deal: Deal) -> Deal:
        with _translate_conflicts():
            await self._s.execute(
                update(DealModel).where(DealModel.id == deal.id).values(**_deal_values(deal))
            )
            await self._s.flush()
        return deal

    async def get_by_id(self, deal_id: int, for_update: bool = False) -> Deal | None:
        stmt = select(DealModel).where(DealModel.id == deal_id)
        if for_update:
            stmt = stmt.with_for_update()
        with _translate_conflicts():
            result = await self._s.execute(stmt.execution_options(populate_existing=True))
        m = result.scalar_one_or_none()
        return _deal_to_domain(m) if m else None

    async def get_active(
        self, pipeline: Department, member_id: int | None = None
    ) -> list[Deal]:
        stmt = select(DealModel).where(
            DealModel.pipeline == pipeline.value,
            DealModel.status == DealStatus.ACTIVE.value,
        )
        if member_id is not None:
            stmt = stmt.where(DealModel.assigned_to_id == member_id)
        result = await self._s.execute(
            stmt.order_by(DealModel.created_at.desc(), DealModel.id.desc())
            .execution_options(populate_existing=True)
        )
        return [_deal_to_domain(m) for m in result.scalars()]

    async def get_by_member(self, member_id: int) -> list[Deal]:
        result = await self._s.execute(
            select(DealModel)
            .where(DealModel.assigned_to_id == member_id)
            .order_by(DealModel.id.desc())
            .execution_options(populate_existing=True)
        )
        return [_deal_to_domain(m) for m in result.scalars()]

    async def get_followups_between(
        self, start: datetime | None, end: datetime, member_id: int | None = None
    ) -> list[Deal]:
        stmt = select(DealModel).where(
            DealModel.status == DealStatus.ACTIVE.value,
            DealModel.next_followup_at.is_not(None),
            DealModel.next_followup_at < end,
        )
        if start is not None:
            stmt = stmt.where(DealModel.next_followup_at >= start)
        if member_id is not None:
            stmt = stmt.where(DealModel.assigned_to_id == member_id)
        result = await self._s.execute(
            stmt.order_by(DealModel.next_followup_at, DealModel.id)
            .execution_options(populate_existing=True)
        )
        return [_deal_to_domain(m) for m in result.scalars()]


class SqlRoutingCounterRepository(RoutingCounterRepository):
    def __init__(self, session: AsyncSession):
        self._s = session

    async def lock(self, department: Department, routing_type: RoutingType) -> RoutingCounter:
        with _translate_conflicts():
            # Concurrent first-time creators collapse onto one row
            await self._s.execute(
                insert(RoutingCounterModel)
                .values(
                    department=department.value,
                    routing_type=routing_type.value,
                    assignment_count=0,
                )
                .on_conflict_do_nothing(index_elements=["department", "routing_type"])
            )
            result = await self._s.execute(
                select(RoutingCounterModel)
                .where(
                    RoutingCounterModel.department == department.value,
                    RoutingCounterModel.routing_type == routing_type.value,
                )
                .with_for_update()
                .execution_options(populate_existing=True)
            )
        m = result.scalar_one_or_none()
        if m is None:
            raise ConcurrentUpdateError(
                f"Routing counter for {department.value}/{routing_type.value} vanished"
            )
        return _counter_to_domain(m)

    async def save(self, counter: RoutingCounter) -> RoutingCounter:
        with _translate_conflicts():
            await self._s.execute(
                update(RoutingCounterModel)
                .where(
                    RoutingCounterModel.department == counter.department.value,
                    RoutingCounterModel.routing_type == counter.routing_type.value,
                )
                .values(
                    last_assigned_member_id=counter.last_assigned_member_id,
                    assignment_count=counter.assignment_count,
                    reset_at=counter.reset_at,
                )
            )
            await self._s.flush()
        return counter
