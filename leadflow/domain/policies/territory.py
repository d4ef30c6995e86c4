"""TerritoryPolicy: match a lead to a member covering its territory."""

from __future__ import annotations

from leadflow.domain.entities.lead import Lead
from leadflow.domain.entities.team_member import TeamMember


def find_territory_member(lead: Lead, members: list[TeamMember]) -> TeamMember | None:
    """Return the member whose territories cover the lead, if any.

    Leads carry no geographic attributes yet, so nothing can be matched and
    routing always falls through to round-robin.
    """
    # TODO: match on the lead's state once the intake form captures it
    return None
