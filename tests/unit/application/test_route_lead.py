"""Tests for RouteLeadUseCase with in-memory repositories."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from leadflow.domain.entities.lead import Lead
from leadflow.domain.errors import (
    LeadAlreadyAssignedError,
    LeadNotFoundError,
    NoAvailableMemberError,
)
from leadflow.domain.value_objects.enums import (
    AssignmentPriority,
    AssignmentReason,
    AssignmentStatus,
    Department,
    DealPriority,
    LeadSource,
    Role,
    RoutingType,
)


@pytest.mark.asyncio
async def test_routes_to_first_member_round_robin(services, hire, add_lead, clock):
    alice = await hire("Alice")
    await hire("Bob")
    lead = await add_lead(score=30)

    result = await services.route_lead.execute(lead)

    assert result.member.id == alice.id
    assert result.assignment.assignment_reason == AssignmentReason.ROUND_ROBIN
    assert result.assignment.status == AssignmentStatus.ASSIGNED
    assert result.assignment.priority == AssignmentPriority.NORMAL
    assert result.assignment.response_deadline == clock() + timedelta(hours=24)
    assert result.deal is None


@pytest.mark.asyncio
async def test_rotation_is_fair(services, hire, add_lead, repos):
    members = [await hire(f"Advisor {i}") for i in range(3)]
    chosen = []
    for i in range(7):
        lead = await add_lead(email=f"lead{i}@example.com")
        chosen.append((await services.route_lead.execute(lead)).member.id)

    ids = [m.id for m in members]
    assert chosen == [ids[0], ids[1], ids[2], ids[0], ids[1], ids[2], ids[0]]

    counter = await repos.counters.lock(Department.INSURANCE, RoutingType.ROUND_ROBIN)
    assert counter.last_assigned_member_id == ids[0]
    assert counter.assignment_count == 7


@pytest.mark.asyncio
async def test_member_load_and_timestamp_updated(services, hire, add_lead, repos, clock):
    alice = await hire("Alice")
    await services.route_lead.execute(await add_lead())

    stored = await repos.members.get_by_id(alice.id)
    assert stored.current_lead_count == 1
    assert stored.last_assigned_at == clock()


@pytest.mark.asyncio
async def test_inactive_members_are_skipped(services, hire, add_lead):
    away = await hire("Away", is_active=False)
    here = await hire("Here")

    result = await services.route_lead.execute(await add_lead())
    assert result.member.id == here.id != away.id


@pytest.mark.asyncio
async def test_recruiting_source_goes_to_recruiting(services, hire, add_lead, clock):
    await hire("Insurance Advisor")
    recruiter = await hire("Rita Recruiter", role=Role.RECRUITER, department=Department.RECRUITING)

    lead = await add_lead(score=10, source=LeadSource.RECRUITING)
    result = await services.route_lead.execute(lead)

    assert result.member.id == recruiter.id
    assert result.assignment.response_deadline == clock() + timedelta(hours=4)


@pytest.mark.asyncio
async def test_no_available_member(services, hire, add_lead, notifier):
    await hire("Rita Recruiter", role=Role.RECRUITER, department=Department.RECRUITING)

    with pytest.raises(NoAvailableMemberError, match="insurance"):
        await services.route_lead.execute(await add_lead(source=LeadSource.QUIZ))
    assert notifier.events == []


@pytest.mark.asyncio
async def test_cold_lead_gets_no_deal(services, hire, add_lead, repos):
    alice = await hire("Alice")
    result = await services.route_lead.execute(await add_lead(score=49))

    assert result.deal is None
    assert await repos.deals.get_by_member(alice.id) == []


@pytest.mark.asyncio
async def test_hot_lead_gets_deal_in_department_pipeline(services, hire, add_lead, clock):
    await hire("Alice")
    lead = await add_lead(score=50, tags=["Quiz"])

    result = await services.route_lead.execute(lead)

    deal = result.deal
    assert deal is not None
    assert deal.pipeline == Department.INSURANCE
    assert deal.stage == "New"
    assert deal.priority == DealPriority.MEDIUM
    assert deal.value == 500_000
    assert deal.next_followup_at == clock() + timedelta(hours=2)
    assert deal.tags == ["Quiz", "HotLead", "Score:50"]
    assert deal.stage_history[0].notes == "Deal created from hot lead (score 50)"
    assert deal.assigned_to_id == result.member.id
    assert result.assignment.priority == AssignmentPriority.HIGH


@pytest.mark.asyncio
async def test_hot_recruiting_lead_opens_recruiting_deal(services, hire, add_lead):
    await hire("Rita Recruiter", role=Role.RECRUITER, department=Department.RECRUITING)
    result = await services.route_lead.execute(
        await add_lead(score=80, source=LeadSource.RECRUITING)
    )
    assert result.deal.pipeline == Department.RECRUITING
    assert result.deal.title.endswith("Distributor Opportunity Discussion")
    assert result.assignment.priority == AssignmentPriority.URGENT


@pytest.mark.asyncio
async def test_lead_with_live_assignment_is_rejected(services, hire, add_lead):
    await hire("Alice")
    lead = await add_lead()
    first = await services.route_lead.execute(lead)

    with pytest.raises(LeadAlreadyAssignedError) as exc:
        await services.route_lead.execute(lead)
    assert exc.value.assignment_id == first.assignment.id


@pytest.mark.asyncio
async def test_completed_lead_can_be_routed_again(services, hire, add_lead):
    await hire("Alice")
    await hire("Bob")
    lead = await add_lead()
    first = await services.route_lead.execute(lead)
    await services.tracker.complete(first.assignment.id)

    second = await services.route_lead.execute(lead)
    assert second.member.id != first.member.id


@pytest.mark.asyncio
async def test_lead_assigned_notification(services, hire, add_lead, notifier):
    await hire("Alice")
    result = await services.route_lead.execute(await add_lead(score=60))

    assert notifier.kinds() == ["deal_created", "lead_assigned"]
    payload = notifier.events[-1].payload
    assert payload["assignment_id"] == result.assignment.id
    assert payload["assigned_to_email"] == "alice@example.com"
    assert payload["deal_id"] == result.deal.id


@pytest.mark.asyncio
async def test_notifier_failure_does_not_undo_routing(services, hire, add_lead, notifier, repos):
    await hire("Alice")
    notifier.fail = True
    lead = await add_lead()

    result = await services.route_lead.execute(lead)

    assert (await repos.assignments.get_latest_for_lead(lead.id)).id == result.assignment.id


@pytest.mark.asyncio
async def test_concurrent_routing_stays_fair(services, hire, add_lead, repos):
    members = [await hire(f"Advisor {i}") for i in range(3)]
    leads = [await add_lead(email=f"lead{i}@example.com") for i in range(9)]

    results = await asyncio.gather(*(services.route_lead.execute(lead) for lead in leads))

    counts = {m.id: 0 for m in members}
    for r in results:
        counts[r.member.id] += 1
    assert set(counts.values()) == {3}
    for m in members:
        assert (await repos.members.get_by_id(m.id)).current_lead_count == 3


@pytest.mark.asyncio
async def test_concurrent_routing_of_same_lead_assigns_once(services, hire, add_lead, repos):
    await hire("Alice")
    await hire("Bob")
    lead = await add_lead()

    outcomes = await asyncio.gather(
        services.route_lead.execute(lead),
        services.route_lead.execute(lead),
        return_exceptions=True,
    )

    assert sum(isinstance(o, LeadAlreadyAssignedError) for o in outcomes) == 1
    assert len(await repos.assignments.get_by_lead(lead.id)) == 1


@pytest.mark.asyncio
async def test_lead_row_is_locked_before_live_assignment_check(services, hire, add_lead, repos):
    await hire("Alice")
    lead = await add_lead()
    calls = []

    read_lead = repos.leads.get_by_id
    read_latest = repos.assignments.get_latest_for_lead

    async def locking_read(lead_id, for_update=False):
        calls.append(("lead", for_update))
        return await read_lead(lead_id, for_update)

    async def latest_read(lead_id, for_update=False):
        calls.append(("latest", for_update))
        return await read_latest(lead_id, for_update)

    repos.leads.get_by_id = locking_read
    repos.assignments.get_latest_for_lead = latest_read

    await services.route_lead.execute(lead)

    assert calls[0] == ("lead", True)
    assert calls[1][0] == "latest"


@pytest.mark.asyncio
async def test_routing_a_vanished_lead_is_not_found(services, hire, repos):
    await hire("Alice")
    ghost = Lead(id=999, name="Ghost", email="ghost@example.com", source=LeadSource.INSURANCE)

    with pytest.raises(LeadNotFoundError):
        await services.route_lead.execute(ghost)
    assert await repos.assignments.get_by_lead(999) == []
