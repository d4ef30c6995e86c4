"""Port interface for round-robin pointer persistence."""

from abc import ABC, abstractmethod

from leadflow.domain.entities.routing_counter import RoutingCounter
from leadflow.domain.value_objects.enums import Department, RoutingType


class RoutingCounterRepository(ABC):
    @abstractmethod
    async def lock(self, department: Department, routing_type: RoutingType) -> RoutingCounter:
        """Load the counter for update, creating it if missing.

        Implementations must keep the row locked (SELECT ... FOR UPDATE) until
        the surrounding transaction ends, so that reading the pointer and
        writing the next one can never be split across two round trips.
        Raises ConcurrentUpdateError when the lock or creation race is lost.
        """
        ...

    @abstractmethod
    async def save(self, counter: RoutingCounter) -> RoutingCounter:
        ...
