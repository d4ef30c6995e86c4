"""Port interface for team member persistence."""

from abc import ABC, abstractmethod
from datetime import datetime

from leadflow.domain.entities.team_member import TeamMember
from leadflow.domain.value_objects.enums import Department


class TeamMemberRepository(ABC):
    @abstractmethod
    async def save(self, member: TeamMember) -> TeamMember:
        ...

    @abstractmethod
    async def get_by_id(self, member_id: int) -> TeamMember | None:
        ...

    @abstractmethod
    async def get_active(self, department: Department | None = None) -> list[TeamMember]:
        """Active members ordered by id (insertion order)."""
        ...

    @abstractmethod
    async def get_active_managers(self, department: Department) -> list[TeamMember]:
        ...

    @abstractmethod
    async def set_active(self, member_id: int, is_active: bool) -> None:
        ...

    @abstractmethod
    async def record_assignment(self, member_id: int, at: datetime) -> None:
        """Atomically bump current_lead_count and stamp last_assigned_at."""
        ...

    @abstractmethod
    async def increment_load(self, member_id: int) -> None:
        ...

    @abstractmethod
    async def release_load(self, member_id: int) -> None:
        """Atomically decrement current_lead_count, never below zero."""
        ...
