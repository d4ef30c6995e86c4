"""Port interface for reading leads produced by the scoring service."""

from abc import ABC, abstractmethod

from leadflow.domain.entities.lead import Lead


class LeadRepository(ABC):
    @abstractmethod
    async def get_by_id(self, lead_id: int, for_update: bool = False) -> Lead | None:
        """Fetch one lead; ``for_update`` serializes routing of that lead until commit."""
        ...
