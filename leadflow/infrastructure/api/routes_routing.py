"""Routing endpoints: route, reassign, assignment lifecycle, escalation sweep."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from leadflow.domain.errors import LeadNotFoundError
from leadflow.domain.value_objects.enums import AssignmentReason
from leadflow.infrastructure.api.dependencies import UnitOfWork, get_services, get_unit_of_work
from leadflow.infrastructure.api.serializers import (
    serialize_assignment,
    serialize_deal,
    serialize_member,
)
from leadflow.infrastructure.wiring import Services

router = APIRouter(tags=["routing"])


class ReassignRequest(BaseModel):
    new_member_id: int
    reason: AssignmentReason = AssignmentReason.MANUAL
    assigned_by_id: int | None = None
    notes: str | None = None


class EscalateRequest(BaseModel):
    level: int | None = None
    reason: str | None = None
    escalated_by_id: int | None = None


# ─── Leads ───────────────────────────────────────────────────────────


@router.post("/leads/{lead_id}/route")
async def route_lead(
    lead_id: int,
    services: Services = Depends(get_services),
    uow: UnitOfWork = Depends(get_unit_of_work),
):
    """Assign a scored lead to a team member (and open a deal if hot)."""
    lead = await services.repos.leads.get_by_id(lead_id)
    if lead is None:
        raise LeadNotFoundError(lead_id)

    result = await services.route_lead.execute(lead)
    await uow.commit()
    return {
        "member": serialize_member(result.member),
        "assignment": serialize_assignment(result.assignment),
        "deal": serialize_deal(result.deal) if result.deal else None,
    }


@router.post("/leads/{lead_id}/reassign")
async def reassign_lead(
    lead_id: int,
    body: ReassignRequest,
    services: Services = Depends(get_services),
    uow: UnitOfWork = Depends(get_unit_of_work),
):
    result = await services.reassign_lead.execute(
        lead_id,
        body.new_member_id,
        reason=body.reason,
        assigned_by_id=body.assigned_by_id,
        notes=body.notes,
    )
    await uow.commit()
    return {
        "member": serialize_member(result.member),
        "assignment": serialize_assignment(result.assignment),
        "previous_assignment": serialize_assignment(result.previous),
    }


@router.get("/leads/{lead_id}/assignments")
async def lead_assignments(lead_id: int, services: Services = Depends(get_services)):
    """Full assignment history of a lead, oldest first."""
    history = await services.tracker.lead_history(lead_id)
    return {
        "lead_id": lead_id,
        "total": len(history),
        "assignments": [serialize_assignment(a) for a in history],
    }


# ─── Assignments ─────────────────────────────────────────────────────


@router.get("/assignments/overdue")
async def overdue_assignments(services: Services = Depends(get_services)):
    overdue = await services.tracker.sweep_overdue()
    return {"total": len(overdue), "assignments": [serialize_assignment(a) for a in overdue]}


@router.post("/assignments/{assignment_id}/accept")
async def accept_assignment(
    assignment_id: int,
    services: Services = Depends(get_services),
    uow: UnitOfWork = Depends(get_unit_of_work),
):
    assignment = await services.tracker.accept(assignment_id)
    await uow.commit()
    return serialize_assignment(assignment)


@router.post("/assignments/{assignment_id}/contact")
async def mark_contacted(
    assignment_id: int,
    services: Services = Depends(get_services),
    uow: UnitOfWork = Depends(get_unit_of_work),
):
    assignment = await services.tracker.mark_contacted(assignment_id)
    await uow.commit()
    return serialize_assignment(assignment)


@router.post("/assignments/{assignment_id}/complete")
async def complete_assignment(
    assignment_id: int,
    services: Services = Depends(get_services),
    uow: UnitOfWork = Depends(get_unit_of_work),
):
    assignment = await services.tracker.complete(assignment_id)
    await uow.commit()
    return serialize_assignment(assignment)


@router.get("/assignments/{assignment_id}/escalation")
async def escalation_status(assignment_id: int, services: Services = Depends(get_services)):
    status = await services.tracker.escalation_status(assignment_id)
    return {
        "assignment_id": status.assignment_id,
        "status": status.status.value,
        "escalation_level": status.escalation_level,
        "is_overdue": status.is_overdue,
        "hours_overdue": status.hours_overdue,
        "needs_review": status.needs_review,
        "next_action": status.next_action,
    }


@router.post("/assignments/{assignment_id}/escalate")
async def escalate_assignment(
    assignment_id: int,
    body: EscalateRequest,
    services: Services = Depends(get_services),
    uow: UnitOfWork = Depends(get_unit_of_work),
):
    """Escalate now; with ``reason`` and ``escalated_by_id`` it is recorded as manual."""
    outcome = await services.escalate.execute(
        assignment_id,
        body.level,
        reason=body.reason,
        escalated_by_id=body.escalated_by_id,
    )
    await uow.commit()
    return {
        "escalated": outcome.escalated,
        "reassigned": outcome.reassigned,
        "assignment": serialize_assignment(outcome.assignment),
        "member": serialize_member(outcome.member) if outcome.member else None,
    }


@router.post("/escalations/sweep")
async def run_escalation_sweep(
    services: Services = Depends(get_services),
    uow: UnitOfWork = Depends(get_unit_of_work),
):
    """Run one escalation sweep now instead of waiting for the worker."""
    results = await services.sweep.execute()
    await uow.commit()
    return {
        "total": len(results),
        "failed": sum(1 for r in results if r.error),
        "results": [
            {
                "assignment_id": r.assignment_id,
                "escalation_level": r.escalation_level,
                "action": r.action,
                "reassigned_to": r.reassigned_to,
                "error": r.error,
            }
            for r in results
        ],
    }
