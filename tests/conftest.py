from unittest.mock import AsyncMock

import pytest

from templeline import prompts
from templeline.capabilities import TextReply
from templeline.session import new_call_state
from templeline.state_machine import DialogueEngine


@pytest.fixture
def state():
    return new_call_state("CA_test_123", prompts.PERSONA, prompts.GREETING)


@pytest.fixture
def model():
    m = AsyncMock()
    m.converse.return_value = TextReply("We are open from 7 AM to 8 PM every day.")
    return m


@pytest.fixture
def bookings():
    return AsyncMock()


@pytest.fixture
def engine(model, bookings):
    return DialogueEngine(model=model, bookings=bookings)
