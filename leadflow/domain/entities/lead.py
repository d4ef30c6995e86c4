"""Lead: an inbound prospect scored by the external scoring service."""

from dataclasses import dataclass, field

from leadflow.domain.value_objects.enums import Department, LeadSource

# A lead at or above this score is "hot" and gets a CRM deal
HOT_LEAD_THRESHOLD = 50


@dataclass
class Lead:
    id: int | None
    name: str
    email: str
    source: LeadSource
    lead_score: int = 0
    phone: str | None = None
    interests: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)

    def department(self) -> Department:
        if self.source == LeadSource.RECRUITING:
            return Department.RECRUITING
        return Department.INSURANCE

    def is_hot(self) -> bool:
        return self.lead_score >= HOT_LEAD_THRESHOLD
