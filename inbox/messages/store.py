"""
Conversation Store
Single owner of the per-conversation message lists shown to the user.
All mutations are dispatched as actions through the pure messages reducer.
"""
import logging
import threading
from typing import Dict, Any, Optional, List, Callable, Iterable

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
from .message import Message, MessageId
from .reducer import MessagesState, messages_reducer

logger = logging.getLogger(__name__)

StoreListener = Callable[[MessagesAction, MessagesState], None]


class ConversationStore:
    """
    Keyed state container for conversation messages.

    State is partitioned by conversation id, so operations on one conversation
    never touch another. Dispatches are serialized with a lock and applied in
    the order they arrive. Messages are immutable and reads return copies of
    the stored sequences, so callers cannot mutate stored state directly.
    """

    def __init__(self, match_window_seconds: Optional[float] = None):
        """
        Args:
            match_window_seconds: Passed to every merge. When set, pending
                optimistic messages whose confirmed copy arrives in a merged
                batch are dropped by the merge itself. None leaves removal to
                the send-success callback.
        """
        self._state = MessagesState()
        self._lock = threading.Lock()
        self._listeners: List[StoreListener] = []
        self.match_window_seconds = match_window_seconds
        logger.debug(f"ConversationStore initialized. Match window: {match_window_seconds}")

    # --- Dispatch ---
    def dispatch(self, action: MessagesAction) -> MessagesState:
        """Applies an action and notifies subscribers. Returns the new state."""
        with self._lock:
            self._state = messages_reducer(self._state, action)
            new_state = self._state
            listeners = list(self._listeners)
        logger.debug(f"[{action.conversation_id}] Applied {type(action).__name__}")
        self._notify(listeners, action, new_state)
        return new_state

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """
        Registers a listener called with (action, new_state) after each dispatch.

        Returns:
            A callable that removes the listener.
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)
        return unsubscribe

    def _notify(self, listeners: List[StoreListener], action: MessagesAction, new_state: MessagesState) -> None:
        for listener in listeners:
            try:
                listener(action, new_state)
            except Exception as e:
                logger.error(f"[{action.conversation_id}] Store listener {listener!r} failed: {e}", exc_info=True)

    # --- Mutations ---
    def set_messages(self, conversation_id: str, messages: Iterable[Message]) -> None:
        """Replaces the conversation wholesale. Clears loading and error."""
        self.dispatch(SetMessages(conversation_id=conversation_id, messages=tuple(messages)))

    def merge_messages(self, conversation_id: str, incoming: Iterable[Message]) -> None:
        """Merges a confirmed batch with held optimistic/failed entries. Clears loading and error."""
        incoming = tuple(incoming)
        self.dispatch(MergeMessages(
            conversation_id=conversation_id,
            messages=incoming,
            match_window_seconds=self.match_window_seconds,
        ))
        logger.info(f"[{conversation_id}] Merged {len(incoming)} confirmed messages. Total visible: {len(self._state.messages_for(conversation_id))}")

    def add_message(self, conversation_id: str, message: Message) -> None:
        self.dispatch(AddMessage(conversation_id=conversation_id, message=message))

    def update_message(self, conversation_id: str, message_id: MessageId, updates: Dict[str, Any]) -> None:
        """Patches one message by id. Unknown ids are ignored."""
        self.dispatch(UpdateMessage(conversation_id=conversation_id, message_id=message_id, updates=dict(updates)))

    def remove_message(self, conversation_id: str, message_id: MessageId) -> None:
        self.dispatch(RemoveMessage(conversation_id=conversation_id, message_id=message_id))

    def set_loading(self, conversation_id: str, loading: bool) -> None:
        self.dispatch(SetLoading(conversation_id=conversation_id, loading=loading))

    def set_error(self, conversation_id: str, error: Optional[str]) -> None:
        """Records a fetch error. Held messages are left untouched."""
        self.dispatch(SetError(conversation_id=conversation_id, error=error))

    def clear_conversation(self, conversation_id: str) -> None:
        self.dispatch(ClearConversation(conversation_id=conversation_id))

    # --- Reads ---
    def get_messages(self, conversation_id: str) -> List[Message]:
        return list(self._state.messages_for(conversation_id))

    def get_message(self, conversation_id: str, message_id: MessageId) -> Optional[Message]:
        for msg in self._state.messages_for(conversation_id):
            if msg.has_id(message_id):
                return msg
        return None

    def is_loading(self, conversation_id: str) -> bool:
        return self._state.loading.get(conversation_id, False)

    def get_error(self, conversation_id: str) -> Optional[str]:
        return self._state.error.get(conversation_id)

    def get_state(self) -> MessagesState:
        """Returns the current immutable snapshot."""
        return self._state

    def conversation_ids(self) -> List[str]:
        """Conversations that currently hold a message list."""
        return list(self._state.messages_by_conversation.keys())
