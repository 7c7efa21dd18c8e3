"""
Messages Reducer
Pure state transitions for the ConversationStore. Each handler receives the
current MessagesState and an action and returns a new MessagesState; nothing
here mutates its inputs or performs I/O.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from inbox.action_registry import handles_action, find_action_handler
from .actions import (
    MessagesAction,
    SetMessages,
    MergeMessages,
    AddMessage,
    UpdateMessage,
    RemoveMessage,
    SetLoading,
    SetError,
    ClearConversation,
)
from .message import Message
from .reconciler import merge_messages

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MessagesState:
    """Snapshot of every conversation held by the store."""
    messages_by_conversation: Dict[str, Tuple[Message, ...]] = field(default_factory=dict)
    loading: Dict[str, bool] = field(default_factory=dict)
    error: Dict[str, Optional[str]] = field(default_factory=dict)

    def messages_for(self, conversation_id: str) -> Tuple[Message, ...]:
        return self.messages_by_conversation.get(conversation_id, ())


def _with_conversation(state: MessagesState,
                       conversation_id: str,
                       messages: Optional[Tuple[Message, ...]] = None,
                       loading: Optional[bool] = None,
                       error_set: bool = False,
                       error: Optional[str] = None) -> MessagesState:
    """Copies state, replacing only the given slots of one conversation."""
    messages_by_conversation = state.messages_by_conversation
    if messages is not None:
        messages_by_conversation = {**messages_by_conversation, conversation_id: messages}

    loading_map = state.loading
    if loading is not None:
        loading_map = {**loading_map, conversation_id: loading}

    error_map = state.error
    if error_set:
        error_map = {**error_map, conversation_id: error}

    return MessagesState(
        messages_by_conversation=messages_by_conversation,
        loading=loading_map,
        error=error_map,
    )


@handles_action(SetMessages)
def _set_messages(state: MessagesState, action: SetMessages) -> MessagesState:
    return _with_conversation(state, action.conversation_id,
                              messages=tuple(action.messages),
                              loading=False, error_set=True, error=None)


@handles_action(MergeMessages)
def _merge_messages(state: MessagesState, action: MergeMessages) -> MessagesState:
    existing = state.messages_for(action.conversation_id)
    merged = merge_messages(existing, action.messages, action.match_window_seconds)
    return _with_conversation(state, action.conversation_id,
                              messages=tuple(merged),
                              loading=False, error_set=True, error=None)


@handles_action(AddMessage)
def _add_message(state: MessagesState, action: AddMessage) -> MessagesState:
    if action.message is None:
        logger.warning(f"[{action.conversation_id}] AddMessage dispatched without a message. Ignoring.")
        return state
    existing = state.messages_for(action.conversation_id)
    return _with_conversation(state, action.conversation_id, messages=existing + (action.message,))


@handles_action(UpdateMessage)
def _update_message(state: MessagesState, action: UpdateMessage) -> MessagesState:
    existing = state.messages_for(action.conversation_id)
    updated = tuple(
        msg.with_updates(action.updates) if msg.has_id(action.message_id) else msg
        for msg in existing
    )
    return _with_conversation(state, action.conversation_id, messages=updated)


@handles_action(RemoveMessage)
def _remove_message(state: MessagesState, action: RemoveMessage) -> MessagesState:
    existing = state.messages_for(action.conversation_id)
    remaining = tuple(msg for msg in existing if not msg.has_id(action.message_id))
    return _with_conversation(state, action.conversation_id, messages=remaining)


@handles_action(SetLoading)
def _set_loading(state: MessagesState, action: SetLoading) -> MessagesState:
    return _with_conversation(state, action.conversation_id, loading=bool(action.loading))


@handles_action(SetError)
def _set_error(state: MessagesState, action: SetError) -> MessagesState:
    return _with_conversation(state, action.conversation_id, error_set=True, error=action.error)


@handles_action(ClearConversation)
def _clear_conversation(state: MessagesState, action: ClearConversation) -> MessagesState:
    return _with_conversation(state, action.conversation_id,
                              messages=(), loading=False, error_set=True, error=None)


def messages_reducer(state: MessagesState, action: MessagesAction) -> MessagesState:
    """
    Applies one action to the state.

    Unknown actions leave the state untouched.
    """
    handler = find_action_handler(getattr(action, 'ACTION_TYPE', None))
    if handler is None:
        logger.warning(f"No reducer handler registered for action {action!r}. State unchanged.")
        return state
    return handler(state, action)
