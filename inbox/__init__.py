"""
Inbox
Client-side reconciliation of confirmed and optimistic conversation messages.
"""

from .messages import ConversationStore, OptimisticSendTracker, Message, TemporaryId
from .errors import InboxError, MessageValidationError
