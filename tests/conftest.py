from __future__ import annotations

import pytest

from booking_engine.core.config import Settings
from booking_engine.domain.entities.calendar import AvailabilityCalendar
from booking_engine.domain.entities.subject import BookableSubject, SubjectKind
from booking_engine.infrastructure.completion.mock_completion import MockCompletion
from booking_engine.infrastructure.remote.memory_store import MemoryRemoteStore
from booking_engine.wiring.dependencies import build_engine

from factories import AFTERNOON, D1, D2, MORNING, NOW


@pytest.fixture
def calendar() -> AvailabilityCalendar:
    return AvailabilityCalendar(available_dates={D1, D2}, time_slots=[MORNING, AFTERNOON])


@pytest.fixture
def config() -> Settings:
    return Settings(ENV="test", RETRY_BASE_DELAY_SECONDS=0.0, RETRY_MAX_DELAY_SECONDS=0.0)


@pytest.fixture
def store(calendar) -> MemoryRemoteStore:
    store = MemoryRemoteStore(clock=lambda: NOW)
    store.add_subject(
        BookableSubject(id="task_1", kind=SubjectKind.task, owner="owner-1", title="Paint the fence", calendar=calendar)
    )
    store.add_subject(BookableSubject(id="swap_1", kind=SubjectKind.swap, owner="owner-2", title="Lawn mower"))
    store.add_subject(BookableSubject(id="task_2", kind=SubjectKind.task, owner="owner-1", title="Walk the dog"))
    return store


@pytest.fixture
def completion() -> MockCompletion:
    return MockCompletion()


@pytest.fixture
def engine(store, config, completion):
    return build_engine(config=config, store=store, completion=completion)
