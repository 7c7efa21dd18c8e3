"""
Test configuration and fixtures specific to activity layer tests.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

import socketio

from activity.gateway import MessagingGateway
from activity.sync import ConversationSynchronizer


@pytest.fixture
def mock_gateway():
    """
    Fixture that provides a mock MessagingGateway with successful defaults.
    """
    gateway = MagicMock(spec=MessagingGateway)
    gateway.fetch_messages = AsyncMock(return_value=[])
    gateway.send_message = AsyncMock(return_value={"id": "msg_sent_1", "status": "sent"})
    gateway.close = AsyncMock()
    return gateway


@pytest.fixture
def synchronizer(store, tracker, mock_gateway):
    """
    Fixture that provides a ConversationSynchronizer over the shared store and tracker.
    """
    return ConversationSynchronizer(
        store=store,
        gateway=mock_gateway,
        tracker=tracker,
        send_timeout_seconds=5,
        fetch_limit=50,
    )


@pytest.fixture
def confirmed_payloads():
    """
    Fixture that provides gateway payloads for a short conversation, out of order.
    """
    return [
        {"id": "e2", "chat_id": "conv-1", "text": "second", "is_sender": 1, "timestamp": "2024-03-01T12:00:02Z"},
        {"id": "e1", "chat_id": "conv-1", "text": "first", "is_sender": 0, "timestamp": "2024-03-01T12:00:01Z"},
    ]


@pytest.fixture
def mock_async_client_cls():
    """
    Fixture that provides a mock socketio.AsyncClient class whose instance
    records the handlers registered through its decorators.
    """
    mock_cls = MagicMock(spec=socketio.AsyncClient)

    mock_instance = MagicMock(spec=socketio.AsyncClient)
    mock_instance.connect = AsyncMock()
    mock_instance.disconnect = AsyncMock()
    mock_instance.wait = AsyncMock()
    mock_instance.event = MagicMock()
    mock_instance.on = MagicMock()
    mock_instance._event_handlers = {}
    mock_instance._on_handlers = {}

    def event_decorator(func):
        mock_instance._event_handlers[func.__name__] = func
        return func
    mock_instance.event.side_effect = event_decorator

    def on_decorator(event_name):
        def decorator(func):
            mock_instance._on_handlers[event_name] = func
            return func
        return decorator
    mock_instance.on.side_effect = on_decorator

    mock_cls.return_value = mock_instance
    return mock_cls
