"""Port interface for CRM deal persistence."""

from abc import ABC, abstractmethod
from datetime import datetime

from leadflow.domain.entities.deal import Deal
from leadflow.domain.value_objects.enums import Department


class DealRepository(ABC):
    @abstractmethod
    async def save(self, deal: Deal) -> Deal:
        ...

    @abstractmethod
    async def update(self, deal: Deal) -> Deal:
        ...

    @abstractmethod
    async def get_by_id(self, deal_id: int, for_update: bool = False) -> Deal | None:
        ...

    @abstractmethod
    async def get_active(
        self, pipeline: Department, member_id: int | None = None
    ) -> list[Deal]:
        """Active deals of a pipeline, newest first."""
        ...

    @abstractmethod
    async def get_by_member(self, member_id: int) -> list[Deal]:
        ...

    @abstractmethod
    async def get_followups_between(
        self, start: datetime | None, end: datetime, member_id: int | None = None
    ) -> list[Deal]:
        """Active deals whose next follow-up falls in [start, end), soonest first."""
        ...
