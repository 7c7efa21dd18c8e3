"""
Shared test configuration and fixtures for the inbox tests.
"""

import itertools
from datetime import datetime, timedelta, timezone

import pytest

from inbox.messages import ConversationStore, OptimisticSendTracker, Message, TemporaryId


BASE_TIME = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class FixedClock:
    """Deterministic clock; advance() moves it forward."""

    def __init__(self, start: datetime = BASE_TIME):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


@pytest.fixture
def clock():
    """
    Fixture that provides a clock pinned to BASE_TIME.
    """
    return FixedClock()


@pytest.fixture
def id_factory():
    """
    Fixture that provides predictable temporary ids: local-1-tmp1, local-2-tmp2, ...
    """
    counter = itertools.count(1)

    def make() -> TemporaryId:
        seq = next(counter)
        return TemporaryId(sequence=seq, token=f"tmp{seq}")
    return make


@pytest.fixture
def store():
    """
    Fixture that provides an empty store with content matching disabled.
    """
    return ConversationStore()


@pytest.fixture
def tracker(store, clock, id_factory):
    """
    Fixture that provides an OptimisticSendTracker bound to the store fixture.
    """
    return OptimisticSendTracker(store, clock=clock, id_factory=id_factory)


@pytest.fixture
def make_message():
    """
    Fixture that provides a factory for confirmed messages. The id doubles as
    external_id unless an override sets one.
    """
    def make(message_id: str,
             conversation_id: str = "conv-1",
             content: str = "hello",
             seconds: float = 0,
             **overrides) -> Message:
        fields = dict(
            id=message_id,
            conversation_id=conversation_id,
            content=content,
            external_id=message_id,
            is_outgoing=False,
            is_read=True,
            sent_at=BASE_TIME + timedelta(seconds=seconds),
        )
        fields.update(overrides)
        return Message(**fields)
    return make


@pytest.fixture
def gateway_message_payload():
    """
    Fixture that provides a raw message payload as returned by the gateway.
    """
    return {
        "id": "msg_abc123",
        "chat_id": "conv-1",
        "text": "Hi there!",
        "is_sender": 0,
        "seen": 1,
        "timestamp": "2024-03-01T12:00:05.000Z",
        "attachments": [],
    }
