"""
Messages Package
Conversation message state: model, actions, reducer, reconciliation and optimistic sends.
"""

from .message import Message, TemporaryId, MessageId, LOCAL_ID_PREFIX, sent_at_timestamp
from .actions import ActionType
from .reconciler import merge_messages
from .reducer import MessagesState, messages_reducer
from .store import ConversationStore
from .optimistic import OptimisticSendTracker

__all__ = [
    'Message',
    'TemporaryId',
    'MessageId',
    'LOCAL_ID_PREFIX',
    'sent_at_timestamp',
    'ActionType',
    'merge_messages',
    'MessagesState',
    'messages_reducer',
    'ConversationStore',
    'OptimisticSendTracker',
]
