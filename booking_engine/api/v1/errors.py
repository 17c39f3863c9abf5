from fastapi import HTTPException

from booking_engine.api.v1.schemas import SlotPairSchema
from booking_engine.application.exceptions import (
    ConflictError,
    EngineError,
    NetworkError,
    NotFoundError,
    StaleStateError,
    ValidationError,
)


def http_error(e: EngineError) -> HTTPException:
    if isinstance(e, ValidationError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, ConflictError):
        return HTTPException(
            status_code=409,
            detail={
                "code": "conflict",
                "message": str(e),
                "alternatives": [SlotPairSchema.from_domain(p).model_dump(mode="json") for p in e.alternatives],
            },
        )
    if isinstance(e, StaleStateError):
        return HTTPException(status_code=409, detail={"code": "stale_state", "message": str(e)})
    if isinstance(e, NetworkError):
        return HTTPException(status_code=502, detail=str(e))
    return HTTPException(status_code=500, detail=str(e))
