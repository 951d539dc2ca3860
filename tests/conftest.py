import logging

import pytest

from examduty.models import Session, Slot, Teacher

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)


@pytest.fixture
def make_session():
    def _make(date="2024-01-01", start="09:00", end="11:00", slots=(("A1", 1),)):
        return Session(date=date, start_time=start, end_time=end,
                       slots=[Slot(location=loc, required=req) for loc, req in slots])
    return _make


@pytest.fixture
def roster():
    return [Teacher("T1"), Teacher("T2"), Teacher("T3")]
