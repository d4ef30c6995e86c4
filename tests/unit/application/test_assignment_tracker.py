"""Tests for AssignmentTracker."""

from __future__ import annotations

from datetime import timedelta

import pytest

from leadflow.domain.errors import AlreadyTerminalError, AssignmentNotFoundError
from leadflow.domain.value_objects.enums import (
    AssignmentPriority,
    AssignmentReason,
    AssignmentStatus,
    Department,
    LeadSource,
    Role,
)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "source,score,hours",
    [
        (LeadSource.INSURANCE, 80, 2),
        (LeadSource.RETIREMENT, 74, 24),
        (LeadSource.QUIZ, 10, 24),
        (LeadSource.RECRUITING, 90, 4),
    ],
)
async def test_deadline_fixed_at_creation(services, hire, add_lead, clock, source, score, hours):
    department = Department.RECRUITING if source == LeadSource.RECRUITING else Department.INSURANCE
    member = await hire("Sam", department=department)
    lead = await add_lead(score=score, source=source)

    assignment = await services.tracker.create(lead, member, AssignmentReason.MANUAL)

    assert assignment.response_deadline == clock() + timedelta(hours=hours)
    assert assignment.escalation_level == 0
    assert assignment.escalated_at is None


@pytest.mark.asyncio
async def test_create_with_escalation_level_stamps_escalated_at(services, hire, add_lead, clock):
    member = await hire("Mia Manager", role=Role.MANAGER)
    lead = await add_lead()
    assignment = await services.tracker.create(
        lead, member, AssignmentReason.ESCALATION, escalation_level=1
    )
    assert assignment.escalated_at == clock()


@pytest.mark.asyncio
async def test_sweep_returns_only_assigned_past_deadline(services, hire, add_lead, clock):
    member = await hire("Sam")
    hot = await services.tracker.create(
        await add_lead(score=80, email="hot@example.com"), member, AssignmentReason.MANUAL
    )
    cold = await services.tracker.create(
        await add_lead(score=10, email="cold@example.com"), member, AssignmentReason.MANUAL
    )
    contacted = await services.tracker.create(
        await add_lead(score=90, email="called@example.com"), member, AssignmentReason.MANUAL
    )
    await services.tracker.mark_contacted(contacted.id)

    clock.advance(hours=2)
    assert await services.tracker.sweep_overdue() == []

    clock.advance(seconds=1)
    overdue = await services.tracker.sweep_overdue()
    assert [a.id for a in overdue] == [hot.id]

    clock.advance(hours=23)
    assert [a.id for a in await services.tracker.sweep_overdue()] == [hot.id, cold.id]


@pytest.mark.asyncio
async def test_accept_and_contact(services, hire, add_lead, clock):
    member = await hire("Sam")
    assignment = await services.tracker.create(await add_lead(), member, AssignmentReason.MANUAL)

    accepted = await services.tracker.accept(assignment.id)
    assert accepted.status == AssignmentStatus.ACCEPTED

    clock.advance(minutes=30)
    contacted = await services.tracker.mark_contacted(assignment.id)
    assert contacted.status == AssignmentStatus.IN_PROGRESS
    assert contacted.contact_attempts == 1
    assert contacted.first_contacted_at == clock()

    clock.advance(minutes=30)
    again = await services.tracker.mark_contacted(assignment.id)
    assert again.contact_attempts == 2
    assert again.first_contacted_at == clock() - timedelta(minutes=30)


@pytest.mark.asyncio
async def test_complete_releases_load(services, hire, add_lead, repos):
    await hire("Sam")
    result = await services.route_lead.execute(await add_lead())
    assert (await repos.members.get_by_id(result.member.id)).current_lead_count == 1

    done = await services.tracker.complete(result.assignment.id)

    assert done.status == AssignmentStatus.COMPLETED
    assert done.completed_at is not None
    assert (await repos.members.get_by_id(result.member.id)).current_lead_count == 0


@pytest.mark.asyncio
async def test_transitions_on_completed_assignment_fail(services, hire, add_lead):
    member = await hire("Sam")
    assignment = await services.tracker.create(await add_lead(), member, AssignmentReason.MANUAL)
    await services.tracker.complete(assignment.id)

    with pytest.raises(AlreadyTerminalError):
        await services.tracker.mark_contacted(assignment.id)
    with pytest.raises(AlreadyTerminalError):
        await services.tracker.complete(assignment.id)


@pytest.mark.asyncio
async def test_unknown_assignment(services):
    with pytest.raises(AssignmentNotFoundError):
        await services.tracker.accept(404)


@pytest.mark.asyncio
async def test_escalate_in_place_raises_priority(services, hire, add_lead, notifier):
    member = await hire("Sam")
    assignment = await services.tracker.create(await add_lead(), member, AssignmentReason.MANUAL)

    escalated = await services.tracker.escalate_in_place(assignment.id, 1)

    assert escalated.escalation_level == 1
    assert escalated.priority == AssignmentPriority.URGENT
    assert escalated.status == AssignmentStatus.ASSIGNED
    assert "no manager available" in escalated.notes
    assert notifier.events[-1].payload["reassigned"] is False


@pytest.mark.asyncio
async def test_flag_for_review(services, hire, add_lead, notifier):
    member = await hire("Sam")
    assignment = await services.tracker.create(await add_lead(), member, AssignmentReason.MANUAL)

    flagged = await services.tracker.flag_for_review(assignment.id)

    assert flagged.escalation_level == 3
    assert flagged.needs_review()
    assert flagged.assigned_to_id == member.id
    assert notifier.kinds()[-1] == "escalation_review_required"


# ─── Escalation status ───────────────────────────────────────────────


@pytest.mark.asyncio
async def test_escalation_status_follows_sweep_levels(services, hire, add_lead, clock):
    member = await hire("Sam")
    assignment = await services.tracker.create(await add_lead(), member, AssignmentReason.MANUAL)

    on_time = await services.tracker.escalation_status(assignment.id)
    assert not on_time.is_overdue
    assert on_time.hours_overdue == 0.0
    assert on_time.next_action == "none"

    clock.advance(hours=27, minutes=30)
    late = await services.tracker.escalation_status(assignment.id)
    assert late.is_overdue
    assert late.hours_overdue == 3.5
    assert late.next_action == "escalate"

    await services.tracker.escalate_in_place(assignment.id, 2)
    assert (await services.tracker.escalation_status(assignment.id)).next_action == "flag_for_review"

    await services.tracker.flag_for_review(assignment.id)
    flagged = await services.tracker.escalation_status(assignment.id)
    assert flagged.needs_review
    assert flagged.next_action == "none"


@pytest.mark.asyncio
async def test_escalation_status_of_contacted_assignment(services, hire, add_lead, clock):
    member = await hire("Sam")
    assignment = await services.tracker.create(await add_lead(), member, AssignmentReason.MANUAL)
    await services.tracker.mark_contacted(assignment.id)

    clock.advance(days=3)
    status = await services.tracker.escalation_status(assignment.id)

    assert status.status == AssignmentStatus.IN_PROGRESS
    assert not status.is_overdue
    assert status.next_action == "none"


@pytest.mark.asyncio
async def test_escalation_status_unknown_assignment(services):
    with pytest.raises(AssignmentNotFoundError):
        await services.tracker.escalation_status(123)
