"""
Message Actions
Tagged actions dispatched to the ConversationStore. Every action is a frozen
dataclass carrying its ActionType in the ACTION_TYPE class attribute.
"""
import enum
from dataclasses import dataclass, field
from typing import Dict, Any, Optional, Tuple, ClassVar

from .message import Message, MessageId


class ActionType(enum.Enum):
    """Kinds of state transitions the store understands"""
    SET_MESSAGES = "set_messages"
    MERGE_MESSAGES = "merge_messages"
    ADD_MESSAGE = "add_message"
    UPDATE_MESSAGE = "update_message"
    REMOVE_MESSAGE = "remove_message"
    SET_LOADING = "set_loading"
    SET_ERROR = "set_error"
    CLEAR_CONVERSATION = "clear_conversation"


@dataclass(frozen=True)
class MessagesAction:
    """Base class for all store actions."""
    ACTION_TYPE: ClassVar[Optional[ActionType]] = None

    conversation_id: str


@dataclass(frozen=True)
class SetMessages(MessagesAction):
    ACTION_TYPE: ClassVar[ActionType] = ActionType.SET_MESSAGES

    messages: Tuple[Message, ...] = ()


@dataclass(frozen=True)
class MergeMessages(MessagesAction):
    ACTION_TYPE: ClassVar[ActionType] = ActionType.MERGE_MESSAGES

    messages: Tuple[Message, ...] = ()
    # None keeps caller-orchestrated removal of optimistic entries
    match_window_seconds: Optional[float] = None


@dataclass(frozen=True)
class AddMessage(MessagesAction):
    ACTION_TYPE: ClassVar[ActionType] = ActionType.ADD_MESSAGE

    message: Optional[Message] = None


@dataclass(frozen=True)
class UpdateMessage(MessagesAction):
    ACTION_TYPE: ClassVar[ActionType] = ActionType.UPDATE_MESSAGE

    message_id: Optional[MessageId] = None
    updates: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RemoveMessage(MessagesAction):
    ACTION_TYPE: ClassVar[ActionType] = ActionType.REMOVE_MESSAGE

    message_id: Optional[MessageId] = None


@dataclass(frozen=True)
class SetLoading(MessagesAction):
    ACTION_TYPE: ClassVar[ActionType] = ActionType.SET_LOADING

    loading: bool = False


@dataclass(frozen=True)
class SetError(MessagesAction):
    ACTION_TYPE: ClassVar[ActionType] = ActionType.SET_ERROR

    error: Optional[str] = None


@dataclass(frozen=True)
class ClearConversation(MessagesAction):
    ACTION_TYPE: ClassVar[ActionType] = ActionType.CLEAR_CONVERSATION
