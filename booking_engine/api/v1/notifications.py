from fastapi import APIRouter, Depends, Response

from booking_engine.api.v1.errors import http_error
from booking_engine.api.v1.schemas import NotificationSchema, UnreadCountSchema
from booking_engine.application.exceptions import EngineError
from booking_engine.application.use_cases.notifications import NotificationFeed
from booking_engine.wiring.dependencies import get_notification_feed

router = APIRouter()


@router.get("/notifications", response_model=list[NotificationSchema])
async def list_notifications(feed: NotificationFeed = Depends(get_notification_feed)):
    try:
        views = await feed.describe()
    except EngineError as e:
        raise http_error(e)
    return [NotificationSchema.from_view(v) for v in views]


@router.get("/notifications/unread-count", response_model=UnreadCountSchema)
async def unread_count(feed: NotificationFeed = Depends(get_notification_feed)):
    try:
        count = await feed.unread_count()
    except EngineError as e:
        raise http_error(e)
    return UnreadCountSchema(unread=count)


@router.post("/notifications/{notification_id}/read", status_code=204)
async def mark_read(notification_id: str, feed: NotificationFeed = Depends(get_notification_feed)):
    try:
        await feed.mark_read(notification_id)
    except EngineError as e:
        raise http_error(e)
    return Response(status_code=204)


@router.delete("/notifications/{notification_id}", status_code=204)
async def clear_notification(notification_id: str, feed: NotificationFeed = Depends(get_notification_feed)):
    try:
        await feed.clear(notification_id)
    except EngineError as e:
        raise http_error(e)
    return Response(status_code=204)


@router.delete("/notifications", status_code=204)
async def clear_all_notifications(feed: NotificationFeed = Depends(get_notification_feed)):
    try:
        await feed.clear_all()
    except EngineError as e:
        raise http_error(e)
    return Response(status_code=204)
