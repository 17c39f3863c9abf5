from datetime import date, datetime

from pydantic import BaseModel, Field

from booking_engine.application.use_cases.conflict_detection import SlotAvailability
from booking_engine.application.use_cases.notifications import NotificationView
from booking_engine.domain.entities.calendar import SlotPair, TimeSlot
from booking_engine.domain.entities.engagement import Engagement, EngagementStatus
from booking_engine.domain.entities.notification import NotificationKind
from booking_engine.domain.entities.subject import BookableSubject, SubjectKind, SubjectStatus


class SlotPairSchema(BaseModel):
    date: date
    start_offset: int = Field(ge=0, le=24 * 60)
    end_offset: int = Field(ge=0, le=24 * 60)
    label: str | None = None

    def to_domain(self) -> SlotPair:
        slot = TimeSlot(start_offset=self.start_offset, end_offset=self.end_offset)
        slot.validate()
        return SlotPair(date=self.date, slot=slot)

    @classmethod
    def from_domain(cls, pair: SlotPair) -> "SlotPairSchema":
        return cls(
            date=pair.date,
            start_offset=pair.slot.start_offset,
            end_offset=pair.slot.end_offset,
            label=pair.label(),
        )


class SubjectSchema(BaseModel):
    id: str
    kind: SubjectKind
    owner: str
    status: SubjectStatus
    title: str = ""
    calendar_bound: bool = False

    @classmethod
    def from_domain(cls, subject: BookableSubject) -> "SubjectSchema":
        return cls(
            id=subject.id,
            kind=subject.kind,
            owner=subject.owner,
            status=subject.status,
            title=subject.title,
            calendar_bound=subject.is_calendar_bound,
        )


class SlotAvailabilitySchema(BaseModel):
    slot: SlotPairSchema
    status: str
    booked_by: str | None = None

    @classmethod
    def from_domain(cls, item: SlotAvailability) -> "SlotAvailabilitySchema":
        return cls(slot=SlotPairSchema.from_domain(item.pair), status=item.status, booked_by=item.booked_by)


class SlotCheckResponseSchema(BaseModel):
    valid: bool
    reason: str | None = None
    message: str | None = None
    alternatives: list[SlotPairSchema] = Field(default_factory=list)


class EngagementCreateSchema(BaseModel):
    subject_id: str
    actor_identity: str
    selected_slot: SlotPairSchema | None = None
    message: str | None = None


class EngagementSchema(BaseModel):
    id: str
    subject_id: str
    actor_identity: str
    status: EngagementStatus
    selected_slot: SlotPairSchema | None = None
    created_at: datetime | None = None
    completed_at: datetime | None = None

    @classmethod
    def from_domain(cls, engagement: Engagement) -> "EngagementSchema":
        return cls(
            id=engagement.id,
            subject_id=engagement.subject_id,
            actor_identity=engagement.actor_identity,
            status=engagement.status,
            selected_slot=SlotPairSchema.from_domain(engagement.selected_slot) if engagement.selected_slot else None,
            created_at=engagement.created_at,
            completed_at=engagement.completed_at,
        )


class NotificationSchema(BaseModel):
    id: str
    kind: NotificationKind
    subject_id: str | None = None
    actor_identity: str | None = None
    actor_name: str
    action_label: str | None = None
    is_read: bool = False
    created_at: datetime | None = None

    @classmethod
    def from_view(cls, view: NotificationView) -> "NotificationSchema":
        return cls(
            id=view.event.id,
            kind=view.event.kind,
            subject_id=view.subject_id,
            actor_identity=view.actor_identity,
            actor_name=view.actor_name,
            action_label=view.action_label,
            is_read=view.event.is_read,
            created_at=view.event.created_at,
        )


class UnreadCountSchema(BaseModel):
    unread: int
