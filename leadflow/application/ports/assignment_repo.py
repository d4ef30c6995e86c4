"""Port interface for assignment persistence."""

from abc import ABC, abstractmethod
from datetime import datetime

from leadflow.domain.entities.assignment import Assignment


class AssignmentRepository(ABC):
    @abstractmethod
    async def save(self, assignment: Assignment) -> Assignment:
        ...

    @abstractmethod
    async def update(self, assignment: Assignment) -> Assignment:
        ...

    @abstractmethod
    async def get_by_id(self, assignment_id: int, for_update: bool = False) -> Assignment | None:
        """Fetch one assignment; ``for_update`` holds a row lock until commit."""
        ...

    @abstractmethod
    async def get_latest_for_lead(self, lead_id: int, for_update: bool = False) -> Assignment | None:
        ...

    @abstractmethod
    async def get_by_lead(self, lead_id: int) -> list[Assignment]:
        """Full assignment history of a lead, oldest first."""
        ...

    @abstractmethod
    async def get_by_member(self, member_id: int) -> list[Assignment]:
        """Assignments of a member, newest first."""
        ...

    @abstractmethod
    async def get_overdue(self, now: datetime) -> list[Assignment]:
        """Assignments with status ``assigned`` and response_deadline < now."""
        ...
