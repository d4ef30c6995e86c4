"""Deal pipeline endpoints: stage transitions, follow-ups, recommendations."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from leadflow.domain.value_objects.enums import Department
from leadflow.infrastructure.api.dependencies import UnitOfWork, get_services, get_unit_of_work
from leadflow.infrastructure.api.serializers import serialize_deal, serialize_pipeline
from leadflow.infrastructure.wiring import Services

router = APIRouter(prefix="/deals", tags=["deals"])


class NotesRequest(BaseModel):
    notes: str | None = None


class StageRequest(BaseModel):
    stage: str
    notes: str | None = None


class ValueRequest(BaseModel):
    value: int = Field(ge=0, description="Deal value in cents")


class CloseRequest(BaseModel):
    won: bool
    final_value: int | None = Field(default=None, ge=0)
    notes: str | None = None


def _deal_list(deals) -> dict:
    return {"total": len(deals), "deals": [serialize_deal(d) for d in deals]}


@router.get("/pipelines")
async def list_pipelines(services: Services = Depends(get_services)):
    """Read-only stage tables of every department pipeline."""
    return {
        dept.value: serialize_pipeline(p) for dept, p in services.pipeline.pipelines().items()
    }


@router.get("")
async def list_deals(
    pipeline: Department,
    member_id: int | None = None,
    services: Services = Depends(get_services),
):
    return _deal_list(await services.pipeline.list_deals(pipeline, member_id))


@router.get("/overdue")
async def overdue_deals(services: Services = Depends(get_services)):
    return _deal_list(await services.pipeline.overdue_deals())


@router.get("/followups/today")
async def todays_followups(
    member_id: int | None = None, services: Services = Depends(get_services)
):
    return _deal_list(await services.pipeline.todays_followups(member_id))


@router.get("/{deal_id}")
async def get_deal(deal_id: int, services: Services = Depends(get_services)):
    return serialize_deal(await services.pipeline.get_deal(deal_id))


@router.get("/{deal_id}/recommendations")
async def deal_recommendations(deal_id: int, services: Services = Depends(get_services)):
    return {"deal_id": deal_id, "next_actions": await services.pipeline.recommendations(deal_id)}


@router.post("/{deal_id}/advance")
async def advance_deal(
    deal_id: int,
    body: NotesRequest | None = None,
    services: Services = Depends(get_services),
    uow: UnitOfWork = Depends(get_unit_of_work),
):
    deal = await services.pipeline.advance(deal_id, body.notes if body else None)
    await uow.commit()
    return serialize_deal(deal)


@router.patch("/{deal_id}/stage")
async def set_deal_stage(
    deal_id: int,
    body: StageRequest,
    services: Services = Depends(get_services),
    uow: UnitOfWork = Depends(get_unit_of_work),
):
    deal = await services.pipeline.set_stage(deal_id, body.stage, body.notes)
    await uow.commit()
    return serialize_deal(deal)


@router.patch("/{deal_id}/value")
async def update_deal_value(
    deal_id: int,
    body: ValueRequest,
    services: Services = Depends(get_services),
    uow: UnitOfWork = Depends(get_unit_of_work),
):
    deal = await services.pipeline.update_value(deal_id, body.value)
    await uow.commit()
    return serialize_deal(deal)


@router.post("/{deal_id}/close")
async def close_deal(
    deal_id: int,
    body: CloseRequest,
    services: Services = Depends(get_services),
    uow: UnitOfWork = Depends(get_unit_of_work),
):
    deal = await services.pipeline.close(deal_id, body.won, body.final_value, body.notes)
    await uow.commit()
    return serialize_deal(deal)
