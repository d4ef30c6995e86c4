"""ReassignLeadUseCase: close the lead's latest assignment and hand it to someone else."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from leadflow.application.locks import KeyedLocks
from leadflow.application.ports.assignment_repo import AssignmentRepository
from leadflow.application.ports.lead_repo import LeadRepository
from leadflow.application.ports.notification_port import (
    NotificationEvent,
    NotificationKind,
    NotificationPort,
    notify_safely,
)
from leadflow.application.ports.team_member_repo import TeamMemberRepository
from leadflow.application.services.assignment_tracker import AssignmentTracker
from leadflow.domain.entities.assignment import Assignment
from leadflow.domain.entities.team_member import TeamMember
from leadflow.domain.errors import (
    AlreadyTerminalError,
    AssignmentNotFoundError,
    LeadNotFoundError,
    MemberNotFoundError,
)
from leadflow.domain.value_objects.enums import AssignmentReason, AssignmentStatus
from leadflow.domain.value_objects.timestamps import Clock, utcnow

logger = logging.getLogger(__name__)

REASSIGN_REASONS = (AssignmentReason.MANUAL, AssignmentReason.ESCALATION)


@dataclass
class ReassignmentResult:
    member: TeamMember
    assignment: Assignment
    previous: Assignment


class ReassignLeadUseCase:
    def __init__(
        self,
        lead_repo: LeadRepository,
        member_repo: TeamMemberRepository,
        assignment_repo: AssignmentRepository,
        tracker: AssignmentTracker,
        notifier: NotificationPort,
        locks: KeyedLocks | None = None,
        clock: Clock = utcnow,
    ):
        self._leads = lead_repo
        self._members = member_repo
        self._assignments = assignment_repo
        self._tracker = tracker
        self._notifier = notifier
        self._locks = locks or KeyedLocks()
        self._clock = clock

    async def execute(
        self,
        lead_id: int,
        new_member_id: int,
        reason: AssignmentReason = AssignmentReason.MANUAL,
        assigned_by_id: int | None = None,
        notes: str | None = None,
        escalation_level: int | None = None,
        expected_assignment_id: int | None = None,
    ) -> ReassignmentResult:
        """Mark the latest assignment ``reassigned`` and create a fresh one.

        The new assignment keeps the previous escalation level unless a
        higher ``escalation_level`` is given. Everything is looked up before
        anything is written, so a failed call leaves no partial state.

        ``expected_assignment_id`` guards escalation: if another caller has
        already moved the lead on, the stale assignment is reported terminal.
        """
        reason = AssignmentReason(reason)
        if reason not in REASSIGN_REASONS:
            raise ValueError(f"Reassignment reason must be manual or escalation, got {reason.value}")

        async with self._locks.hold(("lead", lead_id)):
            lead = await self._leads.get_by_id(lead_id, for_update=True)
            if lead is None:
                raise LeadNotFoundError(lead_id)
            latest = await self._assignments.get_latest_for_lead(lead_id)
            if latest is None:
                raise AssignmentNotFoundError(lead_id)

            async with self._locks.hold(("assignment", latest.id)):
                latest = await self._assignments.get_by_id(latest.id, for_update=True)
                if latest is None:
                    raise AssignmentNotFoundError(lead_id)
                if expected_assignment_id is not None and latest.id != expected_assignment_id:
                    raise AlreadyTerminalError(
                        "Assignment", expected_assignment_id, AssignmentStatus.REASSIGNED.value
                    )

                member = await self._members.get_by_id(new_member_id)
                if member is None:
                    raise MemberNotFoundError(new_member_id)

                level = latest.escalation_level if escalation_level is None else escalation_level
                if level < latest.escalation_level:
                    raise ValueError(
                        f"Escalation level cannot decrease ({latest.escalation_level} -> {level})"
                    )

                now = self._clock()
                latest.mark_reassigned(now)
                latest.add_note(
                    f"Reassigned to member {member.id} ({reason.value})"
                    + (f": {notes}" if notes else ""),
                    now,
                )
                await self._assignments.update(latest)

                assignment = await self._tracker.create(
                    lead,
                    member,
                    reason,
                    escalation_level=level,
                    assigned_by_id=assigned_by_id,
                    notes=notes,
                )
                await self._members.release_load(latest.assigned_to_id)
                await self._members.increment_load(member.id)
                member.current_lead_count += 1

        logger.info(
            "Lead %s reassigned: member %s -> %s (%s, level %d)",
            lead_id, latest.assigned_to_id, member.id, reason.value, level,
        )
        notify_safely(
            self._notifier,
            NotificationEvent(
                kind=NotificationKind.LEAD_REASSIGNED,
                payload={
                    "lead_id": lead_id,
                    "assignment_id": assignment.id,
                    "previous_assignment_id": latest.id,
                    "previous_member_id": latest.assigned_to_id,
                    "assigned_to_id": member.id,
                    "reason": reason.value,
                    "escalation_level": level,
                },
                occurred_at=self._clock(),
            ),
        )
        return ReassignmentResult(member=member, assignment=assignment, previous=latest)
