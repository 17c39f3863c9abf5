from fastapi import APIRouter, Depends, Query

from booking_engine.api.v1.errors import http_error
from booking_engine.api.v1.schemas import EngagementCreateSchema, EngagementSchema
from booking_engine.application.exceptions import EngineError
from booking_engine.application.use_cases.engagements import EngagementUseCase
from booking_engine.domain.entities.engagement import EngagementRequest
from booking_engine.wiring.dependencies import get_engagement_use_case

router = APIRouter()


@router.post("/engagements", response_model=EngagementSchema, status_code=201)
async def create_engagement(
    req: EngagementCreateSchema,
    uc: EngagementUseCase = Depends(get_engagement_use_case),
):
    try:
        engagement = await uc.create(
            EngagementRequest(
                subject_id=req.subject_id,
                actor_identity=req.actor_identity,
                selected_slot=req.selected_slot.to_domain() if req.selected_slot else None,
                message=req.message,
            )
        )
    except EngineError as e:
        raise http_error(e)
    return EngagementSchema.from_domain(engagement)


@router.get("/engagements", response_model=list[EngagementSchema])
async def list_my_engagements(
    actor: str = Query(..., min_length=1),
    uc: EngagementUseCase = Depends(get_engagement_use_case),
):
    try:
        engagements = await uc.list_my_engagements(actor)
    except EngineError as e:
        raise http_error(e)
    return [EngagementSchema.from_domain(e) for e in engagements]


@router.post("/engagements/{engagement_id}/approve", response_model=EngagementSchema)
async def approve_engagement(engagement_id: str, uc: EngagementUseCase = Depends(get_engagement_use_case)):
    try:
        engagement = await uc.approve(engagement_id)
    except EngineError as e:
        raise http_error(e)
    return EngagementSchema.from_domain(engagement)


@router.post("/engagements/{engagement_id}/reject", response_model=EngagementSchema)
async def reject_engagement(engagement_id: str, uc: EngagementUseCase = Depends(get_engagement_use_case)):
    try:
        engagement = await uc.reject(engagement_id)
    except EngineError as e:
        raise http_error(e)
    return EngagementSchema.from_domain(engagement)


@router.post("/engagements/{engagement_id}/complete", response_model=EngagementSchema)
async def complete_engagement(engagement_id: str, uc: EngagementUseCase = Depends(get_engagement_use_case)):
    try:
        engagement = await uc.complete(engagement_id)
    except EngineError as e:
        raise http_error(e)
    return EngagementSchema.from_domain(engagement)


@router.post("/engagements/{engagement_id}/revert", response_model=EngagementSchema)
async def revert_engagement(engagement_id: str, uc: EngagementUseCase = Depends(get_engagement_use_case)):
    try:
        engagement = await uc.revert(engagement_id)
    except EngineError as e:
        raise http_error(e)
    return EngagementSchema.from_domain(engagement)
