"""TeamDirectory: team member records, availability and load."""

from __future__ import annotations

import logging

from leadflow.application.ports.assignment_repo import AssignmentRepository
from leadflow.application.ports.team_member_repo import TeamMemberRepository
from leadflow.domain.entities.assignment import Assignment
from leadflow.domain.entities.team_member import TeamMember
from leadflow.domain.errors import MemberNotFoundError
from leadflow.domain.value_objects.enums import Department, Role

logger = logging.getLogger(__name__)

MIN_LEADS_PER_DAY = 1
MAX_LEADS_PER_DAY = 50


class TeamDirectory:
    def __init__(self, member_repo: TeamMemberRepository, assignment_repo: AssignmentRepository):
        self._members = member_repo
        self._assignments = assignment_repo

    async def create_member(
        self,
        name: str,
        email: str,
        role: Role,
        department: Department,
        phone: str | None = None,
        territories: set[str] | None = None,
        specializations: set[str] | None = None,
        max_leads_per_day: int = 10,
    ) -> TeamMember:
        """Register a member. Members are never deleted, only deactivated.

        Raises:
            ValueError: blank name/email or daily cap outside 1..50.
        """
        name = (name or "").strip()
        email = (email or "").strip().lower()
        if not name:
            raise ValueError("Team member name is required")
        if not email:
            raise ValueError("Team member email is required")
        if not MIN_LEADS_PER_DAY <= max_leads_per_day <= MAX_LEADS_PER_DAY:
            raise ValueError(
                f"max_leads_per_day must be between {MIN_LEADS_PER_DAY} and {MAX_LEADS_PER_DAY}"
            )

        member = TeamMember(
            id=None,
            name=name,
            email=email,
            role=Role(role),
            department=Department(department),
            phone=phone,
            territories=set(territories or ()),
            specializations=set(specializations or ()),
            max_leads_per_day=max_leads_per_day,
        )
        await self._members.save(member)
        logger.info(
            "Team member %s created: %s (%s, %s)",
            member.id, member.email, member.role.value, member.department.value,
        )
        return member

    async def list_active(self, department: Department | None = None) -> list[TeamMember]:
        return await self._members.get_active(department)

    async def get_member(self, member_id: int) -> TeamMember:
        member = await self._members.get_by_id(member_id)
        if member is None:
            raise MemberNotFoundError(member_id)
        return member

    async def set_availability(self, member_id: int, is_active: bool) -> TeamMember:
        await self.get_member(member_id)
        await self._members.set_active(member_id, is_active)
        logger.info("Team member %s %s", member_id, "activated" if is_active else "deactivated")
        return await self.get_member(member_id)

    async def member_assignments(self, member_id: int) -> list[Assignment]:
        await self.get_member(member_id)
        return await self._assignments.get_by_member(member_id)
