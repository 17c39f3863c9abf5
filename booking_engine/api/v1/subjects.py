from fastapi import APIRouter, Depends, Response

from booking_engine.api.v1.errors import http_error
from booking_engine.api.v1.schemas import (
    EngagementSchema,
    SlotAvailabilitySchema,
    SlotCheckResponseSchema,
    SlotPairSchema,
    SubjectSchema,
)
from booking_engine.application.exceptions import EngineError
from booking_engine.application.use_cases.engagements import EngagementUseCase
from booking_engine.wiring.dependencies import Engine, get_engagement_use_case, get_engine

router = APIRouter()


@router.get("/subjects", response_model=list[SubjectSchema])
async def list_subjects(uc: EngagementUseCase = Depends(get_engagement_use_case)):
    try:
        subjects = await uc.list_subjects()
    except EngineError as e:
        raise http_error(e)
    return [SubjectSchema.from_domain(s) for s in subjects]


@router.get("/subjects/{subject_id}", response_model=SubjectSchema)
async def get_subject(subject_id: str, uc: EngagementUseCase = Depends(get_engagement_use_case)):
    try:
        subject = await uc.get_subject(subject_id)
    except EngineError as e:
        raise http_error(e)
    return SubjectSchema.from_domain(subject)


@router.get("/subjects/{subject_id}/availability", response_model=list[SlotAvailabilitySchema])
async def get_availability(subject_id: str, uc: EngagementUseCase = Depends(get_engagement_use_case)):
    try:
        items = await uc.availability(subject_id)
    except EngineError as e:
        raise http_error(e)
    return [SlotAvailabilitySchema.from_domain(item) for item in items]


@router.post("/subjects/{subject_id}/slot-check", response_model=SlotCheckResponseSchema)
async def check_slot(
    subject_id: str,
    req: SlotPairSchema,
    uc: EngagementUseCase = Depends(get_engagement_use_case),
):
    try:
        validation = await uc.check_slot(subject_id, req.to_domain())
    except EngineError as e:
        raise http_error(e)
    return SlotCheckResponseSchema(
        valid=validation.valid,
        reason=validation.reason,
        message=validation.user_message(),
        alternatives=[SlotPairSchema.from_domain(p) for p in validation.alternatives],
    )


@router.get("/subjects/{subject_id}/engagements", response_model=list[EngagementSchema])
async def list_subject_engagements(subject_id: str, uc: EngagementUseCase = Depends(get_engagement_use_case)):
    try:
        engagements = await uc.list_engagements(subject_id)
    except EngineError as e:
        raise http_error(e)
    return [EngagementSchema.from_domain(e) for e in engagements]


@router.put("/subjects/{subject_id}/watch", status_code=204)
async def watch_subject(
    subject_id: str,
    uc: EngagementUseCase = Depends(get_engagement_use_case),
    engine: Engine = Depends(get_engine),
):
    """Keep this subject's detail and engagement views polled while a client has it open."""
    try:
        await uc.get_subject(subject_id, force=True)
    except EngineError as e:
        raise http_error(e)
    engine.watch_subject(subject_id)
    return Response(status_code=204)


@router.delete("/subjects/{subject_id}/watch", status_code=204)
async def unwatch_subject(subject_id: str, engine: Engine = Depends(get_engine)):
    engine.unwatch_subject(subject_id)
    return Response(status_code=204)
