"""AssignmentTracker: owns assignment state transitions and deadline arithmetic."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from leadflow.application.locks import KeyedLocks
from leadflow.application.ports.assignment_repo import AssignmentRepository
from leadflow.application.ports.notification_port import (
    NotificationEvent,
    NotificationKind,
    NotificationPort,
    notify_safely,
)
from leadflow.application.ports.team_member_repo import TeamMemberRepository
from leadflow.domain.entities.assignment import REVIEW_ESCALATION_LEVEL, Assignment
from leadflow.domain.entities.lead import Lead
from leadflow.domain.entities.team_member import TeamMember
from leadflow.domain.errors import AssignmentNotFoundError
from leadflow.domain.policies.response_sla import assignment_priority, response_window
from leadflow.domain.value_objects.enums import AssignmentReason, AssignmentStatus
from leadflow.domain.value_objects.timestamps import Clock, utcnow

logger = logging.getLogger(__name__)


@dataclass
class EscalationStatus:
    assignment_id: int
    status: AssignmentStatus
    escalation_level: int
    is_overdue: bool
    hours_overdue: float
    needs_review: bool
    next_action: str  # "escalate" | "flag_for_review" | "none"


class AssignmentTracker:
    def __init__(
        self,
        assignment_repo: AssignmentRepository,
        member_repo: TeamMemberRepository,
        notifier: NotificationPort,
        locks: KeyedLocks | None = None,
        clock: Clock = utcnow,
    ):
        self._assignments = assignment_repo
        self._members = member_repo
        self._notifier = notifier
        self._locks = locks or KeyedLocks()
        self._clock = clock

    async def create(
        self,
        lead: Lead,
        member: TeamMember,
        reason: AssignmentReason,
        escalation_level: int = 0,
        assigned_by_id: int | None = None,
        notes: str | None = None,
    ) -> Assignment:
        """Persist a fresh assignment with its SLA deadline and priority.

        The deadline is keyed by the lead's department and score tier and is
        fixed at creation time.
        """
        now = self._clock()
        assignment = Assignment(
            id=None,
            lead_id=lead.id,
            assigned_to_id=member.id,
            assigned_by_id=assigned_by_id,
            assignment_reason=reason,
            priority=assignment_priority(lead.lead_score),
            response_deadline=now + response_window(lead.department(), lead.lead_score),
            created_at=now,
            updated_at=now,
            escalation_level=escalation_level,
            escalated_at=now if escalation_level > 0 else None,
            notes=notes,
        )
        await self._assignments.save(assignment)
        logger.info(
            "Assignment %s: lead %s -> member %s (%s, %s, due %s)",
            assignment.id, lead.id, member.id, reason.value,
            assignment.priority.value, assignment.response_deadline.isoformat(),
        )
        return assignment

    async def get_assignment(self, assignment_id: int) -> Assignment:
        assignment = await self._assignments.get_by_id(assignment_id)
        if assignment is None:
            raise AssignmentNotFoundError(assignment_id)
        return assignment

    async def lead_history(self, lead_id: int) -> list[Assignment]:
        return await self._assignments.get_by_lead(lead_id)

    async def accept(self, assignment_id: int) -> Assignment:
        async with self._locks.hold(("assignment", assignment_id)):
            assignment = await self._load_for_update(assignment_id)
            assignment.accept(self._clock())
            await self._assignments.update(assignment)
        logger.info("Assignment %s accepted", assignment_id)
        return assignment

    async def mark_contacted(self, assignment_id: int) -> Assignment:
        async with self._locks.hold(("assignment", assignment_id)):
            assignment = await self._load_for_update(assignment_id)
            assignment.record_contact(self._clock())
            await self._assignments.update(assignment)
        logger.info(
            "Assignment %s contacted (attempt %d)", assignment_id, assignment.contact_attempts
        )
        return assignment

    async def complete(self, assignment_id: int) -> Assignment:
        async with self._locks.hold(("assignment", assignment_id)):
            assignment = await self._load_for_update(assignment_id)
            assignment.complete(self._clock())
            await self._assignments.update(assignment)
            await self._members.release_load(assignment.assigned_to_id)
        logger.info("Assignment %s completed", assignment_id)
        return assignment

    async def escalation_status(self, assignment_id: int) -> EscalationStatus:
        """How late an assignment is and what the next sweep will do with it."""
        assignment = await self.get_assignment(assignment_id)
        now = self._clock()
        overdue = assignment.is_overdue(now)
        return EscalationStatus(
            assignment_id=assignment.id,
            status=assignment.status,
            escalation_level=assignment.escalation_level,
            is_overdue=overdue,
            hours_overdue=round(assignment.hours_overdue(now), 2) if overdue else 0.0,
            needs_review=assignment.needs_review(),
            next_action=assignment.next_escalation_action() if overdue else "none",
        )

    async def sweep_overdue(self) -> list[Assignment]:
        """Assignments still ``assigned`` whose response deadline has passed."""
        overdue = await self._assignments.get_overdue(self._clock())
        logger.info("Found %d overdue assignments", len(overdue))
        return overdue

    async def escalate_in_place(
        self, assignment_id: int, level: int, note: str | None = None
    ) -> Assignment:
        """Escalate without reassignment: record the level and raise priority to urgent."""
        assignment = await self._escalate(
            assignment_id, level, "Escalated with no manager available", note
        )
        logger.warning(
            "Assignment %s escalated to level %d but no manager available",
            assignment_id, level,
        )
        self._notify_escalation(NotificationKind.LEAD_ESCALATED, assignment, reassigned=False)
        return assignment

    async def flag_for_review(self, assignment_id: int) -> Assignment:
        """Mark repeated failure for a human. Never reassigns."""
        assignment = await self._escalate(
            assignment_id,
            REVIEW_ESCALATION_LEVEL,
            "Flagged for manager review after repeated escalation",
        )
        logger.warning(
            "Assignment %s reached escalation level %d, manager intervention required",
            assignment_id, assignment.escalation_level,
        )
        self._notify_escalation(NotificationKind.ESCALATION_REVIEW_REQUIRED, assignment)
        return assignment

    async def _escalate(
        self, assignment_id: int, level: int, note: str, extra_note: str | None = None
    ) -> Assignment:
        async with self._locks.hold(("assignment", assignment_id)):
            assignment = await self._load_for_update(assignment_id)
            now = self._clock()
            assignment.escalate(level, now, urgent=True)
            assignment.add_note(f"{note} (level {level})", now)
            if extra_note:
                assignment.add_note(extra_note, now)
            await self._assignments.update(assignment)
        return assignment

    def _notify_escalation(
        self, kind: NotificationKind, assignment: Assignment, **extra
    ) -> None:
        notify_safely(
            self._notifier,
            NotificationEvent(
                kind=kind,
                payload={
                    "assignment_id": assignment.id,
                    "lead_id": assignment.lead_id,
                    "assigned_to_id": assignment.assigned_to_id,
                    "escalation_level": assignment.escalation_level,
                    **extra,
                },
                occurred_at=self._clock(),
            ),
        )

    async def _load_for_update(self, assignment_id: int) -> Assignment:
        assignment = await self._assignments.get_by_id(assignment_id, for_update=True)
        if assignment is None:
            raise AssignmentNotFoundError(assignment_id)
        return assignment
