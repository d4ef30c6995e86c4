"""ResponseSlaPolicy: response deadlines and priorities for new assignments."""

from datetime import timedelta

from leadflow.domain.value_objects.enums import AssignmentPriority, Department

URGENT_SCORE = 75
HIGH_SCORE = 50

RECRUITING_WINDOW = timedelta(hours=4)
INSURANCE_HOT_WINDOW = timedelta(hours=2)
INSURANCE_DEFAULT_WINDOW = timedelta(hours=24)


def response_window(department: Department, lead_score: int) -> timedelta:
    """Time the assignee has to make first contact.

    Business rules:
      1. recruiting → 4h regardless of score.
      2. insurance, score >= 75 → 2h.
      3. insurance otherwise → 24h.
    """
    if department == Department.RECRUITING:
        return RECRUITING_WINDOW
    if lead_score >= URGENT_SCORE:
        return INSURANCE_HOT_WINDOW
    return INSURANCE_DEFAULT_WINDOW


def assignment_priority(lead_score: int) -> AssignmentPriority:
    if lead_score >= URGENT_SCORE:
        return AssignmentPriority.URGENT
    if lead_score >= HIGH_SCORE:
        return AssignmentPriority.HIGH
    return AssignmentPriority.NORMAL
