"""Port interface for the onboarding workflow collaborator."""

from abc import ABC, abstractmethod

from leadflow.domain.entities.deal import Deal
from leadflow.domain.entities.lead import Lead
from leadflow.domain.entities.team_member import TeamMember


class OnboardingPort(ABC):
    @abstractmethod
    async def start_onboarding(self, deal: Deal, lead: Lead, member: TeamMember) -> None:
        """Kick off the onboarding sequence for a won deal."""
        ...
