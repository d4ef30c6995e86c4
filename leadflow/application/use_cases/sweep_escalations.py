"""EscalationSweepUseCase: escalate every overdue assignment one level."""

from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager, nullcontext
from dataclasses import dataclass
from datetime import timedelta

from leadflow.application.services.assignment_tracker import AssignmentTracker
from leadflow.application.use_cases.escalate_assignment import EscalateAssignmentUseCase
from leadflow.domain.entities.assignment import REVIEW_ESCALATION_LEVEL, Assignment
from leadflow.domain.errors import LeadflowError
from leadflow.domain.value_objects.timestamps import Clock, utcnow

logger = logging.getLogger(__name__)


@dataclass
class EscalationResult:
    """What the sweep did with one overdue assignment."""

    assignment_id: int
    escalation_level: int
    action: str  # "reassigned" | "escalated" | "flagged" | "failed"
    reassigned_to: int | None = None
    error: str | None = None


class EscalationSweepUseCase:
    def __init__(
        self,
        tracker: AssignmentTracker,
        escalate: EscalateAssignmentUseCase,
        cooldown: timedelta = timedelta(minutes=120),
        clock: Clock = utcnow,
        savepoint: Callable[[], AbstractAsyncContextManager] = nullcontext,
    ):
        self._tracker = tracker
        self._escalate = escalate
        self._cooldown = cooldown
        self._clock = clock
        self._savepoint = savepoint

    async def execute(self) -> list[EscalationResult]:
        """Sweep once.

        Level 1 = no contact by deadline, level 2 = still nothing after the
        first escalation, level 3 = flagged for a human and never touched
        again by the sweep.

        Each assignment is handled inside its own savepoint: a failed one is
        rolled back and reported, the ones before and after it still commit
        with the surrounding transaction.
        """
        overdue = await self._tracker.sweep_overdue()
        now = self._clock()
        results: list[EscalationResult] = []

        for assignment in overdue:
            action = assignment.next_escalation_action()
            if action == "none":
                continue
            if self._cooling_down(assignment, now):
                logger.debug(
                    "Assignment %s escalated at %s, still cooling down",
                    assignment.id, assignment.escalated_at,
                )
                continue

            try:
                async with self._savepoint():
                    results.append(await self._handle(assignment, action))
            except LeadflowError as exc:
                logger.exception("Escalation of assignment %s failed", assignment.id)
                results.append(
                    EscalationResult(
                        assignment_id=assignment.id,
                        escalation_level=assignment.escalation_level,
                        action="failed",
                        error=str(exc),
                    )
                )

        logger.info(
            "Escalation sweep: %d overdue, %d handled", len(overdue), len(results)
        )
        return results

    async def _handle(self, assignment: Assignment, action: str) -> EscalationResult:
        if action == "flag_for_review":
            await self._tracker.flag_for_review(assignment.id)
            return EscalationResult(assignment.id, REVIEW_ESCALATION_LEVEL, "flagged")

        next_level = assignment.escalation_level + 1
        outcome = await self._escalate.execute(assignment.id, next_level)
        return EscalationResult(
            assignment_id=assignment.id,
            escalation_level=next_level,
            action="reassigned" if outcome.reassigned else "escalated",
            reassigned_to=outcome.member.id if outcome.member else None,
        )

    def _cooling_down(self, assignment: Assignment, now) -> bool:
        return (
            assignment.escalated_at is not None
            and now - assignment.escalated_at < self._cooldown
        )
