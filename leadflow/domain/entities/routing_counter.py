"""RoutingCounter: the round-robin pointer for one department."""

from dataclasses import dataclass
from datetime import datetime

from leadflow.domain.value_objects.enums import Department, RoutingType


@dataclass
class RoutingCounter:
    id: int | None
    department: Department
    routing_type: RoutingType
    last_assigned_member_id: int | None = None
    assignment_count: int = 0
    reset_at: datetime | None = None
    updated_at: datetime | None = None

    def record_assignment(self, member_id: int, at: datetime) -> None:
        self.last_assigned_member_id = member_id
        self.assignment_count += 1
        self.updated_at = at
