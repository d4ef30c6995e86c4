"""Tests for ReassignLeadUseCase and EscalateAssignmentUseCase."""

from __future__ import annotations

import pytest

from leadflow.domain.errors import (
    AlreadyTerminalError,
    AssignmentNotFoundError,
    MemberNotFoundError,
)
from leadflow.domain.value_objects.enums import (
    AssignmentPriority,
    AssignmentReason,
    AssignmentStatus,
    Department,
    Role,
)


# ─── Reassignment ────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_reassign_closes_old_record_and_moves_load(services, hire, add_lead, repos):
    alice = await hire("Alice")
    bob = await hire("Bob")
    lead = await add_lead()
    routed = await services.route_lead.execute(lead)
    assert routed.member.id == alice.id

    result = await services.reassign_lead.execute(lead.id, bob.id, notes="Alice on leave")

    assert result.previous.status == AssignmentStatus.REASSIGNED
    assert result.assignment.assigned_to_id == bob.id
    assert result.assignment.assignment_reason == AssignmentReason.MANUAL
    assert result.assignment.status == AssignmentStatus.ASSIGNED
    assert (await repos.members.get_by_id(alice.id)).current_lead_count == 0
    assert (await repos.members.get_by_id(bob.id)).current_lead_count == 1


@pytest.mark.asyncio
async def test_reassign_twice_keeps_one_live_record(services, hire, add_lead):
    await hire("Alice")
    bob = await hire("Bob")
    carol = await hire("Carol")
    lead = await add_lead()
    await services.route_lead.execute(lead)

    await services.reassign_lead.execute(lead.id, bob.id)
    await services.reassign_lead.execute(lead.id, carol.id)

    history = await services.tracker.lead_history(lead.id)
    statuses = [a.status for a in history]
    assert statuses.count(AssignmentStatus.REASSIGNED) == 2
    assert sum(a.is_live() for a in history) == 1
    assert history[-1].assigned_to_id == carol.id


@pytest.mark.asyncio
async def test_reassign_keeps_escalation_level(services, hire, add_lead):
    await hire("Alice")
    bob = await hire("Bob")
    lead = await add_lead()
    routed = await services.route_lead.execute(lead)
    await services.tracker.escalate_in_place(routed.assignment.id, 1)

    result = await services.reassign_lead.execute(lead.id, bob.id)
    assert result.assignment.escalation_level == 1

    with pytest.raises(ValueError, match="cannot decrease"):
        await services.reassign_lead.execute(lead.id, bob.id, escalation_level=0)


@pytest.mark.asyncio
async def test_reassign_unknown_member_leaves_state_untouched(services, hire, add_lead, repos):
    await hire("Alice")
    lead = await add_lead()
    routed = await services.route_lead.execute(lead)

    with pytest.raises(MemberNotFoundError):
        await services.reassign_lead.execute(lead.id, 999)

    latest = await repos.assignments.get_latest_for_lead(lead.id)
    assert latest.id == routed.assignment.id
    assert latest.status == AssignmentStatus.ASSIGNED


@pytest.mark.asyncio
async def test_reassign_unrouted_lead(services, hire, add_lead):
    bob = await hire("Bob")
    lead = await add_lead()
    with pytest.raises(AssignmentNotFoundError):
        await services.reassign_lead.execute(lead.id, bob.id)


@pytest.mark.asyncio
async def test_reassign_completed_assignment_is_terminal(services, hire, add_lead):
    await hire("Alice")
    bob = await hire("Bob")
    lead = await add_lead()
    routed = await services.route_lead.execute(lead)
    await services.tracker.complete(routed.assignment.id)

    with pytest.raises(AlreadyTerminalError):
        await services.reassign_lead.execute(lead.id, bob.id)


@pytest.mark.asyncio
async def test_reassign_rejects_routing_reasons(services, hire, add_lead):
    bob = await hire("Bob")
    lead = await add_lead()
    with pytest.raises(ValueError, match="manual or escalation"):
        await services.reassign_lead.execute(lead.id, bob.id, reason=AssignmentReason.TERRITORY)


# ─── Escalation ──────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_escalate_reassigns_to_lowest_id_manager(services, hire, add_lead, notifier):
    advisor = await hire("Alice")
    first_manager = await hire("Mia Manager", role=Role.MANAGER)
    await hire("Max Manager", role=Role.MANAGER)
    await hire("Rex Recruiting Manager", role=Role.MANAGER, department=Department.RECRUITING)
    lead = await add_lead()
    routed = await services.route_lead.execute(lead)
    assert routed.member.id == advisor.id

    outcome = await services.escalate.execute(routed.assignment.id, 1)

    assert outcome.reassigned
    assert outcome.member.id == first_manager.id
    assert outcome.assignment.assignment_reason == AssignmentReason.ESCALATION
    assert outcome.assignment.escalation_level == 1
    old = await services.tracker.get_assignment(routed.assignment.id)
    assert old.status == AssignmentStatus.REASSIGNED
    assert notifier.kinds()[-2:] == ["lead_reassigned", "lead_escalated"]


@pytest.mark.asyncio
async def test_escalate_in_place_without_manager(services, hire, add_lead):
    await hire("Alice")
    # A manager in another department does not count
    await hire("Rex Recruiting Manager", role=Role.MANAGER, department=Department.RECRUITING)
    lead = await add_lead()
    routed = await services.route_lead.execute(lead)

    outcome = await services.escalate.execute(routed.assignment.id, 1)

    assert outcome.escalated and not outcome.reassigned
    assert outcome.assignment.id == routed.assignment.id
    assert outcome.assignment.priority == AssignmentPriority.URGENT
    assert outcome.assignment.escalation_level == 1


@pytest.mark.asyncio
async def test_manager_assignee_is_not_escalated_to_self(services, hire, add_lead):
    await hire("Mia Manager", role=Role.MANAGER)
    lead = await add_lead()
    routed = await services.route_lead.execute(lead)

    outcome = await services.escalate.execute(routed.assignment.id, 1)
    assert not outcome.reassigned


@pytest.mark.asyncio
async def test_escalate_terminal_assignment(services, hire, add_lead):
    await hire("Alice")
    routed = await services.route_lead.execute(await add_lead())
    await services.tracker.complete(routed.assignment.id)

    with pytest.raises(AlreadyTerminalError):
        await services.escalate.execute(routed.assignment.id, 1)


@pytest.mark.asyncio
async def test_escalate_stale_assignment_after_reassignment(services, hire, add_lead):
    await hire("Alice")
    bob = await hire("Bob")
    lead = await add_lead()
    routed = await services.route_lead.execute(lead)
    await services.reassign_lead.execute(lead.id, bob.id)

    with pytest.raises(AlreadyTerminalError):
        await services.escalate.execute(routed.assignment.id, 1)


@pytest.mark.asyncio
async def test_escalate_lower_level_rejected(services, hire, add_lead):
    await hire("Alice")
    routed = await services.route_lead.execute(await add_lead())
    await services.escalate.execute(routed.assignment.id, 2)

    with pytest.raises(ValueError):
        await services.escalate.execute(routed.assignment.id, 1)


# ─── Manual escalation ───────────────────────────────────────────────


@pytest.mark.asyncio
async def test_manual_escalation_records_reason_and_actor(services, hire, add_lead):
    await hire("Alice")
    manager = await hire("Mia Manager", role=Role.MANAGER)
    lead = await add_lead()
    routed = await services.route_lead.execute(lead)

    outcome = await services.escalate.execute(
        routed.assignment.id, reason="Client called twice", escalated_by_id=manager.id
    )

    assert outcome.reassigned
    assert outcome.assignment.escalation_level == 1
    assert outcome.assignment.assigned_by_id == manager.id
    expected = f"MANUAL ESCALATION: Client called twice / By: Mia Manager (member {manager.id})"
    assert outcome.assignment.notes == expected
    old = await services.tracker.get_assignment(routed.assignment.id)
    assert expected in old.notes


@pytest.mark.asyncio
async def test_manual_escalation_in_place_goes_one_level_up(services, hire, add_lead):
    await hire("Alice")
    lead = await add_lead()
    routed = await services.route_lead.execute(lead)
    await services.escalate.execute(routed.assignment.id, 1)

    outcome = await services.escalate.execute(routed.assignment.id, reason="Still silent")

    assert not outcome.reassigned
    assert outcome.assignment.escalation_level == 2
    assert outcome.assignment.notes.endswith("MANUAL ESCALATION: Still silent / By: unknown")


@pytest.mark.asyncio
async def test_manual_escalation_by_unknown_member(services, hire, add_lead):
    await hire("Alice")
    routed = await services.route_lead.execute(await add_lead())

    with pytest.raises(MemberNotFoundError):
        await services.escalate.execute(routed.assignment.id, reason="?", escalated_by_id=404)
    untouched = await services.tracker.get_assignment(routed.assignment.id)
    assert untouched.escalation_level == 0
