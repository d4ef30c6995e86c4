"""Onboarding collaborator adapters: httpx webhook, or log-only fallback."""

from __future__ import annotations

import logging

import httpx

from leadflow.application.ports.onboarding_port import OnboardingPort
from leadflow.domain.entities.deal import Deal
from leadflow.domain.entities.lead import Lead
from leadflow.domain.entities.team_member import TeamMember
from leadflow.domain.value_objects.enums import Department

logger = logging.getLogger(__name__)


def onboarding_type(deal: Deal) -> str:
    return "insurance_client" if deal.pipeline == Department.INSURANCE else "distributor_recruit"


def build_onboarding_request(deal: Deal, lead: Lead, member: TeamMember) -> dict:
    return {
        "onboarding_type": onboarding_type(deal),
        "deal": {
            "id": deal.id,
            "title": deal.title,
            "pipeline": deal.pipeline.value,
            "stage": deal.stage,
            "value": deal.value,
        },
        "lead": {
            "id": lead.id,
            "name": lead.name,
            "email": lead.email,
            "phone": lead.phone,
        },
        "assigned_to": {
            "id": member.id,
            "name": member.name,
            "email": member.email,
        },
    }


class WebhookOnboardingAdapter(OnboardingPort):
    """POSTs the onboarding request to the onboarding service."""

    def __init__(self, url: str, client: httpx.AsyncClient):
        self._url = url
        self._client = client

    async def start_onboarding(self, deal: Deal, lead: Lead, member: TeamMember) -> None:
        response = await self._client.post(
            self._url, json=build_onboarding_request(deal, lead, member)
        )
        response.raise_for_status()
        logger.info(
            "Onboarding webhook accepted deal %s (%s, HTTP %d)",
            deal.id, onboarding_type(deal), response.status_code,
        )


class LoggingOnboardingAdapter(OnboardingPort):
    async def start_onboarding(self, deal: Deal, lead: Lead, member: TeamMember) -> None:
        logger.info(
            "Onboarding (%s) requested: deal %s '%s', lead %s <%s>, member %s",
            onboarding_type(deal), deal.id, deal.title, lead.name, lead.email, member.name,
        )
