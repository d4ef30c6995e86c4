"""RouteLeadUseCase: territory match, else round-robin, then assignment and deal."""

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
from leadflow.application.ports.routing_counter_repo import RoutingCounterRepository
from leadflow.application.ports.team_member_repo import TeamMemberRepository
from leadflow.application.services.assignment_tracker import AssignmentTracker
from leadflow.application.services.deal_pipeline import DealPipeline
from leadflow.domain.entities.assignment import Assignment
from leadflow.domain.entities.deal import Deal
from leadflow.domain.entities.lead import Lead
from leadflow.domain.entities.team_member import TeamMember
from leadflow.domain.errors import (
    LeadAlreadyAssignedError,
    LeadNotFoundError,
    NoAvailableMemberError,
)
from leadflow.domain.policies.round_robin import pick_next
from leadflow.domain.policies.territory import find_territory_member
from leadflow.domain.value_objects.enums import AssignmentReason, RoutingType
from leadflow.domain.value_objects.timestamps import Clock, utcnow

logger = logging.getLogger(__name__)


@dataclass
class RoutingResult:
    """Outcome of routing one lead."""

    member: TeamMember
    assignment: Assignment
    deal: Deal | None = None


class RouteLeadUseCase:
    """Orchestrates the routing of a single scored lead."""

    def __init__(
        self,
        member_repo: TeamMemberRepository,
        lead_repo: LeadRepository,
        assignment_repo: AssignmentRepository,
        counter_repo: RoutingCounterRepository,
        tracker: AssignmentTracker,
        pipeline: DealPipeline,
        notifier: NotificationPort,
        locks: KeyedLocks | None = None,
        clock: Clock = utcnow,
    ):
        self._members = member_repo
        self._leads = lead_repo
        self._assignments = assignment_repo
        self._counters = counter_repo
        self._tracker = tracker
        self._pipeline = pipeline
        self._notifier = notifier
        self._locks = locks or KeyedLocks()
        self._clock = clock

    async def execute(self, lead: Lead) -> RoutingResult:
        """Route a lead end-to-end.

        Pipeline:
        1. Department from lead source
        2. Territory match (falls through while leads carry no location)
        3. Round-robin pick under the department's counter lock
        4. Persist assignment (+ deal for hot leads)
        5. Bump member load and rotation
        6. Notify (fire-and-forget)

        Raises:
            LeadNotFoundError: the lead no longer exists.
            LeadAlreadyAssignedError: the lead still has a live assignment.
            NoAvailableMemberError: no active member in the department.
            ConcurrentUpdateError: the counter lock was lost; safe to retry.
        """
        department = lead.department()

        async with self._locks.hold(("lead", lead.id)):
            # Row lock serializes routing of this lead across processes
            if await self._leads.get_by_id(lead.id, for_update=True) is None:
                raise LeadNotFoundError(lead.id)
            latest = await self._assignments.get_latest_for_lead(lead.id)
            if latest is not None and latest.is_live():
                raise LeadAlreadyAssignedError(lead.id, latest.id)

            async with self._locks.hold(("routing", department)):
                candidates = await self._members.get_active(department)

                member = find_territory_member(lead, candidates)
                reason = AssignmentReason.TERRITORY
                counter = None
                if member is None:
                    if not candidates:
                        logger.warning(
                            "Lead %s: no active %s members, cannot route",
                            lead.id, department.value,
                        )
                        raise NoAvailableMemberError(department.value)
                    counter = await self._counters.lock(department, RoutingType.ROUND_ROBIN)
                    member = pick_next(candidates, counter.last_assigned_member_id)
                    reason = AssignmentReason.ROUND_ROBIN

                assignment = await self._tracker.create(lead, member, reason)

                deal = None
                if lead.is_hot():
                    deal = await self._pipeline.create_from_hot_lead(lead, member)

                now = self._clock()
                if counter is not None:
                    counter.record_assignment(member.id, now)
                    await self._counters.save(counter)
                await self._members.record_assignment(member.id, now)
                member.record_assignment(now)

        logger.info(
            "Lead %s routed to %s (%s, %s)%s",
            lead.id, member.email, department.value, reason.value,
            f", deal {deal.id}" if deal else "",
        )
        notify_safely(
            self._notifier,
            NotificationEvent(
                kind=NotificationKind.LEAD_ASSIGNED,
                payload={
                    "lead_id": lead.id,
                    "assignment_id": assignment.id,
                    "assigned_to_id": member.id,
                    "assigned_to_email": member.email,
                    "reason": reason.value,
                    "priority": assignment.priority.value,
                    "response_deadline": assignment.response_deadline.isoformat(),
                    "deal_id": deal.id if deal else None,
                },
                occurred_at=self._clock(),
            ),
        )
        return RoutingResult(member=member, assignment=assignment, deal=deal)
