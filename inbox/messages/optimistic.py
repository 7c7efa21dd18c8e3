"""
Optimistic Send Tracker
Manages the lifecycle of a locally submitted message from the moment the user
hits send until it is confirmed, fails, or is discarded.

Lifecycle per logical send:
    pending -> confirmed  (caller removes the entry once the durable send succeeds;
                           the next merge brings in the confirmed copy)
    pending -> failed     (entry kept and shown with retry/discard)
    failed  -> removed    (user discards)
    failed  -> pending    (retry, as a brand-new send with a new temporary id)
"""
import logging
from datetime import datetime, timezone
from typing import Dict, Any, Optional, List, Callable, Sequence

from .message import Message, MessageId, TemporaryId
from .store import ConversationStore

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class OptimisticSendTracker:
    """Creates and resolves optimistic message entries in a ConversationStore."""

    def __init__(self,
                 store: ConversationStore,
                 clock: Callable[[], datetime] = _utc_now,
                 id_factory: Callable[[], TemporaryId] = TemporaryId.generate):
        self.store = store
        self._clock = clock
        self._id_factory = id_factory

    def add_optimistic_message(self,
                               conversation_id: str,
                               content: str,
                               attachments: Optional[Sequence[Dict[str, Any]]] = None) -> TemporaryId:
        """
        Inserts a pending message for a send that has just been submitted.

        Returns:
            The temporary id the caller uses to resolve this send later.
        """
        temporary_id = self._id_factory()
        message = Message(
            id=temporary_id,
            conversation_id=conversation_id,
            content=content,
            external_id=None,
            is_outgoing=True,
            is_read=True,
            sent_at=self._clock(),
            is_optimistic=True,
            is_failed=False,
            attachments=tuple(dict(att) for att in attachments or ()),
        )
        self.store.add_message(conversation_id, message)
        logger.info(f"[{conversation_id}] Optimistic message {temporary_id} added")
        return temporary_id

    def mark_message_as_failed(self,
                               conversation_id: str,
                               message_id: MessageId,
                               error: Optional[str] = None) -> bool:
        """
        Flags an optimistic message as failed. The message stays visible.

        Returns:
            True if an optimistic message was flagged, False if none matched.
        """
        message = self.store.get_message(conversation_id, message_id)
        if message is None or not message.is_optimistic:
            logger.warning(f"[{conversation_id}] Could not find optimistic message {message_id} to mark as failed.")
            return False

        self.store.update_message(conversation_id, message_id, {
            'is_failed': True,
            'error_details': error or "Unknown send failure",
        })
        logger.error(f"[{conversation_id}] Message {message_id} failed to send. Error: {error}")
        return True

    def remove_optimistic_message(self, conversation_id: str, message_id: MessageId) -> None:
        """Hard-removes an optimistic entry (send confirmed, or failed send discarded)."""
        self.store.remove_message(conversation_id, message_id)
        logger.debug(f"[{conversation_id}] Optimistic message {message_id} removed")

    def retry_failed_message(self, conversation_id: str, message_id: MessageId) -> Optional[TemporaryId]:
        """
        Replaces a failed entry with a new pending send of the same content.

        Returns:
            The new temporary id, or None if no failed message matched.
        """
        message = self.store.get_message(conversation_id, message_id)
        if message is None or not message.is_failed:
            logger.warning(f"[{conversation_id}] Could not find failed message {message_id} to retry.")
            return None

        self.remove_optimistic_message(conversation_id, message_id)
        new_id = self.add_optimistic_message(conversation_id, message.content, message.attachments)
        logger.info(f"[{conversation_id}] Retrying failed message {message_id} as {new_id}")
        return new_id

    def get_pending_messages(self, conversation_id: str) -> List[Message]:
        return [msg for msg in self.store.get_messages(conversation_id) if msg.is_pending]

    def get_failed_messages(self, conversation_id: str) -> List[Message]:
        return [msg for msg in self.store.get_messages(conversation_id) if msg.is_failed]
