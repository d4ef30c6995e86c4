"""EscalateAssignmentUseCase: hand an overdue lead to a manager, or escalate in place."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from leadflow.application.ports.notification_port import (
    NotificationEvent,
    NotificationKind,
    NotificationPort,
    notify_safely,
)
from leadflow.application.ports.team_member_repo import TeamMemberRepository
from leadflow.application.services.assignment_tracker import AssignmentTracker
from leadflow.application.use_cases.reassign_lead import ReassignLeadUseCase
from leadflow.domain.entities.assignment import Assignment
from leadflow.domain.entities.team_member import TeamMember
from leadflow.domain.errors import AlreadyTerminalError, MemberNotFoundError
from leadflow.domain.value_objects.enums import AssignmentReason
from leadflow.domain.value_objects.timestamps import Clock, utcnow

logger = logging.getLogger(__name__)


@dataclass
class EscalationOutcome:
    escalated: bool
    reassigned: bool
    assignment: Assignment
    member: TeamMember | None = None


class EscalateAssignmentUseCase:
    def __init__(
        self,
        member_repo: TeamMemberRepository,
        tracker: AssignmentTracker,
        reassign: ReassignLeadUseCase,
        notifier: NotificationPort,
        clock: Clock = utcnow,
    ):
        self._members = member_repo
        self._tracker = tracker
        self._reassign = reassign
        self._notifier = notifier
        self._clock = clock

    async def execute(
        self,
        assignment_id: int,
        level: int | None = None,
        reason: str | None = None,
        escalated_by_id: int | None = None,
    ) -> EscalationOutcome:
        """Escalate an assignment to ``level`` (one above the current level if omitted).

        The department is that of the current assignee. When another active
        manager exists there (lowest id first), the lead is reassigned to
        them with reason ``escalation``; otherwise the assignment is
        escalated in place and its priority raised to urgent.

        A manual escalation passes ``reason`` and ``escalated_by_id``; both are
        written to the assignment notes and the escalating member becomes the
        new assignment's ``assigned_by_id``.

        Returns:
            EscalationOutcome; ``assignment`` is the new record on
            reassignment, the escalated one otherwise.
        """
        current = await self._tracker.get_assignment(assignment_id)
        if not current.is_live():
            raise AlreadyTerminalError("Assignment", current.id, current.status.value)
        if level is None:
            level = current.escalation_level + 1
        if level < current.escalation_level:
            raise ValueError(
                f"Escalation level cannot decrease ({current.escalation_level} -> {level})"
            )

        assignee = await self._members.get_by_id(current.assigned_to_id)
        if assignee is None:
            raise MemberNotFoundError(current.assigned_to_id)
        manual_note = await self._manual_note(reason, escalated_by_id)

        managers = [
            m
            for m in await self._members.get_active_managers(assignee.department)
            if m.id != assignee.id
        ]
        if not managers:
            escalated = await self._tracker.escalate_in_place(assignment_id, level, manual_note)
            return EscalationOutcome(escalated=True, reassigned=False, assignment=escalated)

        manager = min(managers, key=lambda m: m.id)
        result = await self._reassign.execute(
            current.lead_id,
            manager.id,
            reason=AssignmentReason.ESCALATION,
            assigned_by_id=escalated_by_id,
            notes=manual_note or f"Escalated to level {level}: no response by deadline",
            escalation_level=level,
            expected_assignment_id=current.id,
        )
        logger.info(
            "Assignment %s escalated to level %d, lead %s reassigned to manager %s",
            assignment_id, level, current.lead_id, manager.id,
        )
        notify_safely(
            self._notifier,
            NotificationEvent(
                kind=NotificationKind.LEAD_ESCALATED,
                payload={
                    "assignment_id": result.assignment.id,
                    "previous_assignment_id": assignment_id,
                    "lead_id": current.lead_id,
                    "assigned_to_id": manager.id,
                    "escalation_level": level,
                    "reassigned": True,
                },
                occurred_at=self._clock(),
            ),
        )
        return EscalationOutcome(
            escalated=True, reassigned=True, assignment=result.assignment, member=result.member
        )

    async def _manual_note(self, reason: str | None, escalated_by_id: int | None) -> str | None:
        if reason is None and escalated_by_id is None:
            return None
        by = "unknown"
        if escalated_by_id is not None:
            escalator = await self._members.get_by_id(escalated_by_id)
            if escalator is None:
                raise MemberNotFoundError(escalated_by_id)
            by = f"{escalator.name} (member {escalator.id})"
        logger.info("Manual escalation by %s: %s", by, reason)
        return f"MANUAL ESCALATION: {reason or 'no reason given'} / By: {by}"
