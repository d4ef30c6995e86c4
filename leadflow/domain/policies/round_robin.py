"""RoundRobinPolicy: deterministic rotation over a department's active members."""

from __future__ import annotations

from datetime import datetime, timezone

from leadflow.domain.entities.team_member import TeamMember

_NEVER = datetime.min.replace(tzinfo=timezone.utc)


def order_candidates(candidates: list[TeamMember]) -> list[TeamMember]:
    """Longest-idle first: never-assigned members, then last_assigned_at ASC, then id ASC."""
    return sorted(
        candidates,
        key=lambda m: (m.last_assigned_at is not None, m.last_assigned_at or _NEVER, m.id),
    )


def pick_next(
    candidates: list[TeamMember], last_assigned_member_id: int | None
) -> TeamMember:
    """Pick the member right after the rotation pointer, wrapping around.

    1. Order candidates with :func:`order_candidates`.
    2. If the pointer is unset or no longer among the candidates (member
       deactivated, moved department), take the first candidate.
    3. Otherwise take the candidate immediately after the pointer.

    Args:
        candidates: non-empty list of active members of one department.
        last_assigned_member_id: the RoutingCounter pointer.

    Raises:
        ValueError: if candidates list is empty.
    """
    if not candidates:
        raise ValueError("Cannot pick from an empty candidate list")

    ordered = order_candidates(candidates)
    ids = [m.id for m in ordered]

    if last_assigned_member_id not in ids:
        return ordered[0]

    index = (ids.index(last_assigned_member_id) + 1) % len(ordered)
    return ordered[index]
