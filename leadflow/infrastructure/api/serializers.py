"""Domain object → API response dict converters."""

from __future__ import annotations

from datetime import datetime

from leadflow.domain.entities.assignment import Assignment
from leadflow.domain.entities.deal import Deal
from leadflow.domain.entities.team_member import TeamMember
from leadflow.domain.value_objects.pipeline import Pipeline


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def serialize_member(m: TeamMember) -> dict:
    return {
        "id": m.id,
        "name": m.name,
        "email": m.email,
        "phone": m.phone,
        "role": m.role.value,
        "department": m.department.value,
        "territories": sorted(m.territories),
        "specializations": sorted(m.specializations),
        "max_leads_per_day": m.max_leads_per_day,
        "current_lead_count": m.current_lead_count,
        "is_active": m.is_active,
        "last_assigned_at": _iso(m.last_assigned_at),
    }


def serialize_assignment(a: Assignment) -> dict:
    return {
        "id": a.id,
        "lead_id": a.lead_id,
        "assigned_to_id": a.assigned_to_id,
        "assigned_by_id": a.assigned_by_id,
        "assignment_reason": a.assignment_reason.value,
        "priority": a.priority.value,
        "status": a.status.value,
        "response_deadline": _iso(a.response_deadline),
        "escalation_level": a.escalation_level,
        "escalated_at": _iso(a.escalated_at),
        "contact_attempts": a.contact_attempts,
        "first_contacted_at": _iso(a.first_contacted_at),
        "last_contacted_at": _iso(a.last_contacted_at),
        "completed_at": _iso(a.completed_at),
        "notes": a.notes,
        "created_at": _iso(a.created_at),
    }


def serialize_deal(d: Deal) -> dict:
    return {
        "id": d.id,
        "lead_id": d.lead_id,
        "assigned_to_id": d.assigned_to_id,
        "title": d.title,
        "pipeline": d.pipeline.value,
        "stage": d.stage,
        "value": d.value,
        "priority": d.priority.value,
        "status": d.status.value,
        "source": d.source.value,
        "tags": list(d.tags),
        "notes": d.notes,
        "next_followup_at": _iso(d.next_followup_at),
        "last_contacted_at": _iso(d.last_contacted_at),
        "onboarding_triggered_at": _iso(d.onboarding_triggered_at),
        "stage_history": [
            {"stage": h.stage, "timestamp": _iso(h.timestamp), "notes": h.notes}
            for h in d.stage_history
        ],
        "created_at": _iso(d.created_at),
    }


def serialize_pipeline(p: Pipeline) -> dict:
    return {
        "department": p.department.value,
        "name": p.name,
        "stages": [
            {
                "name": s.name,
                "description": s.description,
                "followup_hours": s.followup_hours,
                "kind": s.kind.value,
                "next_actions": list(s.next_actions),
                "triggers_onboarding": s.triggers_onboarding,
            }
            for s in p.stages
        ],
    }
