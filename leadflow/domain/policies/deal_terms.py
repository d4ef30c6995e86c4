"""DealTermsPolicy: title, priority and estimated value of an auto-created deal."""

from __future__ import annotations

import math

from leadflow.domain.entities.lead import Lead
from leadflow.domain.value_objects.enums import DealPriority, LeadSource

# Base values in cents
BASE_VALUES: dict[LeadSource, int] = {
    LeadSource.INSURANCE: 500_000,
    LeadSource.RETIREMENT: 1_000_000,
    LeadSource.RECRUITING: 2_000_000,
    LeadSource.QUIZ: 300_000,
    LeadSource.NEWSLETTER: 250_000,
}
DEFAULT_BASE_VALUE = 500_000

DEAL_TITLES: dict[LeadSource, str] = {
    LeadSource.INSURANCE: "Life Insurance Consultation",
    LeadSource.RETIREMENT: "Retirement Planning Session",
    LeadSource.RECRUITING: "Distributor Opportunity Discussion",
    LeadSource.QUIZ: "Coverage Assessment Follow-up",
    LeadSource.NEWSLETTER: "Financial Planning Consultation",
}
DEFAULT_TITLE = "Financial Services Consultation"

PHONE_BONUS = 0.2
INTERESTS_BONUS = 0.1


def estimate_deal_value(lead: Lead) -> int:
    """Deterministic value estimate in cents.

    base(source) × clamp(score / 50, 0.5, 2.0) × (1 + 0.2 if phone + 0.1 if
    more than two interests), rounded half-up.
    """
    base = BASE_VALUES.get(lead.source, DEFAULT_BASE_VALUE)
    score_multiplier = max(0.5, min(2.0, lead.lead_score / 50))

    bonus = 1.0
    if lead.phone:
        bonus += PHONE_BONUS
    if len(lead.interests) > 2:
        bonus += INTERESTS_BONUS

    return math.floor(base * score_multiplier * bonus + 0.5)


def deal_priority(lead_score: int) -> DealPriority:
    if lead_score >= 75:
        return DealPriority.HIGH
    if lead_score >= 50:
        return DealPriority.MEDIUM
    return DealPriority.LOW


def deal_title(lead: Lead) -> str:
    return f"{lead.name} - {DEAL_TITLES.get(lead.source, DEFAULT_TITLE)}"
