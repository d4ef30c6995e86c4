"""Deal entity: a commercial opportunity moving through a department pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from leadflow.domain.value_objects.enums import (
    Department,
    DealPriority,
    DealStatus,
    LeadSource,
)


@dataclass(frozen=True)
class StageHistoryEntry:
    stage: str
    timestamp: datetime
    notes: str | None = None


@dataclass
class Deal:
    id: int | None
    lead_id: int
    assigned_to_id: int
    title: str
    pipeline: Department
    stage: str
    value: int  # cents
    priority: DealPriority
    source: LeadSource
    created_at: datetime
    tags: list[str] = field(default_factory=list)
    notes: str | None = None
    next_followup_at: datetime | None = None
    last_contacted_at: datetime | None = None
    stage_history: list[StageHistoryEntry] = field(default_factory=list)
    status: DealStatus = DealStatus.ACTIVE
    onboarding_triggered_at: datetime | None = None
    updated_at: datetime | None = None

    def is_closed(self) -> bool:
        return self.status in (DealStatus.WON, DealStatus.LOST)

    def is_overdue(self, now: datetime) -> bool:
        return (
            self.status == DealStatus.ACTIVE
            and self.next_followup_at is not None
            and self.next_followup_at < now
        )

    def enter_stage(
        self,
        stage: str,
        at: datetime,
        next_followup_at: datetime,
        history_note: str,
        notes: str | None = None,
        status: DealStatus | None = None,
    ) -> None:
        """Move to *stage* and append the transition to the history log."""
        self.stage_history.append(StageHistoryEntry(stage=stage, timestamp=at, notes=history_note))
        self.stage = stage
        self.next_followup_at = next_followup_at
        self.last_contacted_at = at
        self.updated_at = at
        if status is not None:
            self.status = status
        if notes:
            self.add_note(notes, at)

    def add_note(self, note: str, at: datetime) -> None:
        line = f"{at.isoformat()}: {note}"
        self.notes = f"{self.notes}\n\n{line}" if self.notes else line
