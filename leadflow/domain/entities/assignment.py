"""Assignment entity: one routing decision handing a lead to a team member.

A reassignment never rewrites the owner of an existing record: the old record
is closed as ``reassigned`` and a fresh one is created, so the lead's history
stays auditable.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from leadflow.domain.errors import AlreadyTerminalError
from leadflow.domain.value_objects.enums import (
    AssignmentPriority,
    AssignmentReason,
    AssignmentStatus,
)

LIVE_STATUSES = frozenset(
    {AssignmentStatus.ASSIGNED, AssignmentStatus.ACCEPTED, AssignmentStatus.IN_PROGRESS}
)

# Level at which the sweep stops escalating and asks for a human
REVIEW_ESCALATION_LEVEL = 3


@dataclass
class Assignment:
    id: int | None
    lead_id: int
    assigned_to_id: int
    assignment_reason: AssignmentReason
    priority: AssignmentPriority
    response_deadline: datetime
    created_at: datetime
    assigned_by_id: int | None = None
    status: AssignmentStatus = AssignmentStatus.ASSIGNED
    escalation_level: int = 0
    escalated_at: datetime | None = None
    contact_attempts: int = 0
    first_contacted_at: datetime | None = None
    last_contacted_at: datetime | None = None
    completed_at: datetime | None = None
    notes: str | None = None
    updated_at: datetime | None = None

    def is_live(self) -> bool:
        return self.status in LIVE_STATUSES

    def is_overdue(self, now: datetime) -> bool:
        return self.status == AssignmentStatus.ASSIGNED and self.response_deadline < now

    def needs_review(self) -> bool:
        return self.escalation_level >= REVIEW_ESCALATION_LEVEL

    def next_escalation_action(self) -> str:
        """``"escalate"``, ``"flag_for_review"`` or ``"none"`` once a human owns it."""
        if not self.is_live() or self.needs_review():
            return "none"
        if self.escalation_level + 1 >= REVIEW_ESCALATION_LEVEL:
            return "flag_for_review"
        return "escalate"

    def hours_overdue(self, now: datetime) -> float:
        return max(0.0, (now - self.response_deadline).total_seconds() / 3600)

    def _ensure_live(self) -> None:
        if not self.is_live():
            raise AlreadyTerminalError("Assignment", self.id, self.status.value)

    def accept(self, at: datetime) -> None:
        self._ensure_live()
        if self.status == AssignmentStatus.ASSIGNED:
            self.status = AssignmentStatus.ACCEPTED
        self.updated_at = at

    def record_contact(self, at: datetime) -> None:
        self._ensure_live()
        self.contact_attempts += 1
        if self.first_contacted_at is None:
            self.first_contacted_at = at
        self.last_contacted_at = at
        self.status = AssignmentStatus.IN_PROGRESS
        self.updated_at = at

    def complete(self, at: datetime) -> None:
        self._ensure_live()
        self.status = AssignmentStatus.COMPLETED
        self.completed_at = at
        self.updated_at = at

    def mark_reassigned(self, at: datetime) -> None:
        self._ensure_live()
        self.status = AssignmentStatus.REASSIGNED
        self.updated_at = at

    def escalate(self, level: int, at: datetime, urgent: bool = False) -> None:
        """Record an escalation in place. Levels only ever go up."""
        self._ensure_live()
        if level < self.escalation_level:
            raise ValueError(
                f"Escalation level cannot decrease ({self.escalation_level} -> {level})"
            )
        self.escalation_level = level
        self.escalated_at = at
        if urgent:
            self.priority = AssignmentPriority.URGENT
        self.updated_at = at

    def add_note(self, note: str, at: datetime) -> None:
        line = f"{at.isoformat()}: {note}"
        self.notes = f"{self.notes}\n\n{line}" if self.notes else line
