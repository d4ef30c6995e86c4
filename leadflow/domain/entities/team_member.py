"""TeamMember entity: an advisor, recruiter or manager who receives leads."""

from dataclasses import dataclass, field
from datetime import datetime

from leadflow.domain.value_objects.enums import Department, Role


@dataclass
class TeamMember:
    id: int | None
    name: str
    email: str
    role: Role
    department: Department
    phone: str | None = None
    territories: set[str] = field(default_factory=set)
    specializations: set[str] = field(default_factory=set)
    max_leads_per_day: int = 10
    current_lead_count: int = 0
    is_active: bool = True
    last_assigned_at: datetime | None = None

    def is_manager(self) -> bool:
        return self.role == Role.MANAGER

    def record_assignment(self, at: datetime) -> None:
        self.current_lead_count += 1
        self.last_assigned_at = at

    def release_lead(self) -> None:
        # Load never goes negative, even if counters were reset in between
        self.current_lead_count = max(0, self.current_lead_count - 1)
