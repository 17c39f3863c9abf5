from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Iterator
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from booking_engine.application.exceptions import ValidationError

MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True, order=True)
class TimeSlot:
    start_offset: int  # minutes after local midnight
    end_offset: int

    @classmethod
    def from_hm(cls, start: str, end: str) -> TimeSlot:
        """Build a slot from "HH:MM" strings, e.g. TimeSlot.from_hm("09:00", "10:00")."""
        return cls(start_offset=_parse_hm(start), end_offset=_parse_hm(end))

    @property
    def duration_minutes(self) -> int:
        return self.end_offset - self.start_offset

    def label(self) -> str:
        return f"{_format_hm(self.start_offset)}-{_format_hm(self.end_offset)}"

    def validate(self) -> None:
        if self.start_offset < 0 or self.end_offset > MINUTES_PER_DAY:
            raise ValidationError(f"Time slot {self.label()} must fall within a single day.")
        if self.end_offset <= self.start_offset:
            raise ValidationError(f"Time slot {self.label()} must end after it starts.")


@dataclass(frozen=True, order=True)
class SlotPair:
    date: date
    slot: TimeSlot

    def label(self) -> str:
        return f"{self.date.isoformat()} {self.slot.label()}"


@dataclass
class AvailabilityCalendar:
    available_dates: set[date] = field(default_factory=set)
    time_slots: list[TimeSlot] = field(default_factory=list)
    duration_minutes: int = 60  # UI hint only
    interval_minutes: int = 30  # UI hint only
    timezone: str = "UTC"

    def __post_init__(self) -> None:
        self.available_dates = set(self.available_dates)
        slots = list(self.time_slots)
        self.time_slots = []
        for slot in slots:
            self.add_slot(slot)

    @property
    def tz(self) -> ZoneInfo:
        return _safe_timezone(self.timezone)

    def is_empty(self) -> bool:
        return not self.available_dates or not self.time_slots

    def add_date(self, day: date) -> None:
        self.available_dates.add(day)

    def remove_date(self, day: date) -> None:
        self.available_dates.discard(day)

    def add_slot(self, slot: TimeSlot) -> None:
        slot.validate()
        if slot in self.time_slots:
            raise ValidationError(
                f"This time slot ({slot.label()}) already exists. Please select a different time."
            )
        self.time_slots.append(slot)

    def remove_slot(self, slot: TimeSlot) -> None:
        if slot in self.time_slots:
            self.time_slots.remove(slot)

    def start_at(self, pair: SlotPair) -> datetime:
        midnight = datetime.combine(pair.date, time.min, tzinfo=self.tz)
        return midnight + timedelta(minutes=pair.slot.start_offset)

    def contains(self, pair: SlotPair) -> bool:
        """True if the pair is offered by this calendar, regardless of whether it has elapsed."""
        return pair.date in self.available_dates and pair.slot in self.time_slots

    def enumerate_pairs(self, now: datetime | None = None, grace_minutes: int = 1) -> SlotPairSequence:
        """
        Lazy, restartable view of the bookable (date, slot) pairs.
        Ordered by date, then slot start. Pairs that already started more than
        grace_minutes before `now` are skipped; the stored data is not touched.
        """
        return SlotPairSequence(self, now=now, grace_minutes=grace_minutes)


class SlotPairSequence:
    def __init__(self, calendar: AvailabilityCalendar, now: datetime | None, grace_minutes: int) -> None:
        self._calendar = calendar
        self._now = now
        self._grace = timedelta(minutes=grace_minutes)

    def __iter__(self) -> Iterator[SlotPair]:
        tz = self._calendar.tz
        now = self._now or datetime.now(tz)
        if now.tzinfo is None:
            now = now.replace(tzinfo=tz)
        cutoff = now - self._grace

        slots = sorted(set(self._calendar.time_slots))
        for day in sorted(self._calendar.available_dates):
            for slot in slots:
                pair = SlotPair(date=day, slot=slot)
                if self._calendar.start_at(pair) > cutoff:
                    yield pair

    def __contains__(self, pair: object) -> bool:
        return any(candidate == pair for candidate in self)


def _parse_hm(value: str) -> int:
    try:
        hours, minutes = value.strip().split(":", 1)
        return int(hours) * 60 + int(minutes)
    except (ValueError, AttributeError):
        raise ValidationError(f"Invalid time of day: {value!r}")


def _format_hm(offset: int) -> str:
    return f"{offset // 60:02d}:{offset % 60:02d}"


def _safe_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo("UTC")
