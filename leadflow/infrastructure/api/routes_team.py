"""Team directory endpoints: members, availability, workload."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from leadflow.domain.value_objects.enums import Department, Role
from leadflow.infrastructure.api.dependencies import UnitOfWork, get_services, get_unit_of_work
from leadflow.infrastructure.api.serializers import serialize_assignment, serialize_member
from leadflow.infrastructure.wiring import Services

router = APIRouter(prefix="/team-members", tags=["team"])


class CreateMemberRequest(BaseModel):
    name: str
    email: str
    role: Role
    department: Department
    phone: str | None = None
    territories: list[str] = Field(default_factory=list)
    specializations: list[str] = Field(default_factory=list)
    max_leads_per_day: int = 10


class AvailabilityRequest(BaseModel):
    is_active: bool


@router.post("", status_code=201)
async def create_member(
    body: CreateMemberRequest,
    services: Services = Depends(get_services),
    uow: UnitOfWork = Depends(get_unit_of_work),
):
    member = await services.directory.create_member(
        name=body.name,
        email=body.email,
        role=body.role,
        department=body.department,
        phone=body.phone,
        territories=set(body.territories),
        specializations=set(body.specializations),
        max_leads_per_day=body.max_leads_per_day,
    )
    await uow.commit()
    return serialize_member(member)


@router.get("")
async def list_members(
    department: Department | None = None,
    services: Services = Depends(get_services),
):
    """Active members, optionally for one department."""
    members = await services.directory.list_active(department)
    return {"total": len(members), "members": [serialize_member(m) for m in members]}


@router.patch("/{member_id}/availability")
async def set_availability(
    member_id: int,
    body: AvailabilityRequest,
    services: Services = Depends(get_services),
    uow: UnitOfWork = Depends(get_unit_of_work),
):
    member = await services.directory.set_availability(member_id, body.is_active)
    await uow.commit()
    return serialize_member(member)


@router.get("/{member_id}/assignments")
async def member_assignments(member_id: int, services: Services = Depends(get_services)):
    assignments = await services.directory.member_assignments(member_id)
    return {
        "member_id": member_id,
        "total": len(assignments),
        "assignments": [serialize_assignment(a) for a in assignments],
    }
