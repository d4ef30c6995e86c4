"""Domain enums: pure Python, no external dependencies."""

from enum import Enum


class Department(str, Enum):
    INSURANCE = "insurance"
    RECRUITING = "recruiting"


class LeadSource(str, Enum):
    QUIZ = "quiz"
    INSURANCE = "insurance"
    RETIREMENT = "retirement"
    RECRUITING = "recruiting"
    NEWSLETTER = "newsletter"


class Role(str, Enum):
    ADVISOR = "advisor"
    RECRUITER = "recruiter"
    MANAGER = "manager"


class AssignmentReason(str, Enum):
    TERRITORY = "territory"
    ROUND_ROBIN = "round_robin"
    MANUAL = "manual"
    ESCALATION = "escalation"


class AssignmentPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class AssignmentStatus(str, Enum):
    ASSIGNED = "assigned"
    ACCEPTED = "accepted"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    REASSIGNED = "reassigned"


class DealPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class DealStatus(str, Enum):
    ACTIVE = "active"
    WON = "won"
    LOST = "lost"
    PAUSED = "paused"


class StageKind(str, Enum):
    OPEN = "open"
    WON = "won"
    POST_WIN = "post_win"
    LOST = "lost"


class RoutingType(str, Enum):
    ROUND_ROBIN = "round_robin"
    TERRITORY = "territory"
