"""Domain error taxonomy.

Every error is raised synchronously to the caller and never retried inside
the library. ``ConcurrentUpdateError`` is the only class a caller may blindly
retry (the whole ``RouteLead`` operation is idempotent on it).
"""

from __future__ import annotations


class LeadflowError(Exception):
    """Base class for all routing / pipeline errors."""


class NotFoundError(LeadflowError):
    entity = "Entity"

    def __init__(self, entity_id: int):
        self.entity_id = entity_id
        super().__init__(f"{self.entity} {entity_id} not found")


class MemberNotFoundError(NotFoundError):
    entity = "Team member"


class LeadNotFoundError(NotFoundError):
    entity = "Lead"


class AssignmentNotFoundError(NotFoundError):
    entity = "Assignment"


class DealNotFoundError(NotFoundError):
    entity = "Deal"


class NoAvailableMemberError(LeadflowError):
    def __init__(self, department: str):
        self.department = department
        super().__init__(f"No available {department} team members for assignment")


class InvalidStageError(LeadflowError):
    def __init__(self, stage: str, pipeline: str, detail: str | None = None):
        self.stage = stage
        self.pipeline = pipeline
        message = f"Invalid stage '{stage}' for {pipeline} pipeline"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class AlreadyFinalStageError(LeadflowError):
    def __init__(self, stage: str):
        self.stage = stage
        super().__init__(f"Deal is already at final stage '{stage}'")


class AlreadyTerminalError(LeadflowError):
    def __init__(self, entity: str, entity_id: int | None, status: str):
        self.entity = entity
        self.entity_id = entity_id
        self.status = status
        super().__init__(f"{entity} {entity_id} is already {status}")


class LeadAlreadyAssignedError(LeadflowError):
    def __init__(self, lead_id: int, assignment_id: int | None):
        self.lead_id = lead_id
        self.assignment_id = assignment_id
        super().__init__(
            f"Lead {lead_id} already has a live assignment ({assignment_id})"
        )


class ConcurrentUpdateError(LeadflowError):
    """A concurrent writer won the race; retry the whole operation."""
