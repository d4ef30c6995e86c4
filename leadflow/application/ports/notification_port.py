"""Port interface for fire-and-forget notifications."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from leadflow.domain.value_objects.timestamps import utcnow

logger = logging.getLogger(__name__)


class NotificationKind(str, Enum):
    LEAD_ASSIGNED = "lead_assigned"
    LEAD_REASSIGNED = "lead_reassigned"
    LEAD_ESCALATED = "lead_escalated"
    ESCALATION_REVIEW_REQUIRED = "escalation_review_required"
    DEAL_CREATED = "deal_created"
    DEAL_STAGE_CHANGED = "deal_stage_changed"
    DEAL_CLOSED = "deal_closed"


@dataclass(frozen=True)
class NotificationEvent:
    kind: NotificationKind
    payload: dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "payload": self.payload,
            "occurred_at": self.occurred_at.isoformat(),
        }


class NotificationPort(ABC):
    @abstractmethod
    def notify(self, event: NotificationEvent) -> None:
        """Hand the event off for delivery. Must not block on delivery."""
        ...


def notify_safely(notifier: NotificationPort, event: NotificationEvent) -> None:
    """Dispatch an event; a dispatcher failure never undoes the state change."""
    try:
        notifier.notify(event)
    except Exception:
        logger.exception("Failed to dispatch %s notification", event.kind.value)
