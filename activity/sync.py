"""
Conversation Synchronizer
Runs the asynchronous side of reconciliation: fetching confirmed messages and
merging them into the ConversationStore, and driving optimistic sends through
the messaging gateway. Only results re-enter the store, through its
synchronous mutation API.
"""

import asyncio
import contextlib
import logging
from typing import Dict, Any, List, Optional, Sequence

from inbox.errors import MessageValidationError
from inbox.messages.message import Message, MessageId, TemporaryId
from inbox.messages.optimistic import OptimisticSendTracker
from inbox.messages.store import ConversationStore
from host.observability import get_tracer

from .gateway import MessagingGateway, GatewayError

tracer = get_tracer(__name__)

logger = logging.getLogger(__name__)

DEFAULT_SEND_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_MESSAGE_LENGTH = 2000


class SendOutcome:
    """Result of a send attempt as seen by the caller (composer, UI)."""

    def __init__(self, temporary_id: TemporaryId, success: bool,
                 external_id: Optional[str] = None, error: Optional[str] = None):
        self.temporary_id = temporary_id
        self.success = success
        self.external_id = external_id
        self.error = error

    def __repr__(self) -> str:
        state = f"external_id={self.external_id!r}" if self.success else f"error={self.error!r}"
        return f"SendOutcome({self.temporary_id}, success={self.success}, {state})"


class ConversationSynchronizer:
    """
    Coordinates the store, the optimistic tracker and the gateway.

    Handles:
    - refresh cycles (loading flag, fetch, merge or error)
    - sends (validation, optimistic entry, durable send with timeout, resolution)
    - retry and discard of failed sends
    - new-message notifications from the event feed
    """

    def __init__(self,
                 store: ConversationStore,
                 gateway: MessagingGateway,
                 tracker: Optional[OptimisticSendTracker] = None,
                 send_timeout_seconds: Optional[float] = DEFAULT_SEND_TIMEOUT_SECONDS,
                 fetch_limit: Optional[int] = None,
                 max_message_length: int = DEFAULT_MAX_MESSAGE_LENGTH):
        self.store = store
        self.gateway = gateway
        self.tracker = tracker or OptimisticSendTracker(store)
        self.send_timeout_seconds = send_timeout_seconds
        self.fetch_limit = fetch_limit
        self.max_message_length = max_message_length
        # Serializes refreshes per conversation so an older fetch never lands after a newer one.
        # A lock is dropped once no refresh of its conversation is running or waiting.
        self._refresh_locks: Dict[str, asyncio.Lock] = {}
        self._refresh_users: Dict[str, int] = {}
        logger.info(f"ConversationSynchronizer initialized. Send timeout: {send_timeout_seconds}s, fetch limit: {fetch_limit}")

    @contextlib.asynccontextmanager
    async def _refresh_slot(self, conversation_id: str):
        lock = self._refresh_locks.get(conversation_id)
        if lock is None:
            lock = asyncio.Lock()
            self._refresh_locks[conversation_id] = lock
        self._refresh_users[conversation_id] = self._refresh_users.get(conversation_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._refresh_users[conversation_id] -= 1
            if not self._refresh_users[conversation_id]:
                del self._refresh_users[conversation_id]
                del self._refresh_locks[conversation_id]

    # --- Fetch / merge ---
    async def refresh(self, conversation_id: str) -> bool:
        """
        Fetches confirmed messages for a conversation and merges them.

        On failure the error is recorded for the conversation and the held
        messages are left untouched.

        Returns:
            True if the merge happened, False if the fetch failed.
        """
        async with self._refresh_slot(conversation_id):
            with tracer.start_as_current_span("conversation_sync.refresh") as span:
                span.set_attribute("conversation.id", conversation_id)
                self.store.set_loading(conversation_id, True)
                merged = False
                try:
                    payloads = await self.gateway.fetch_messages(conversation_id, limit=self.fetch_limit)
                    incoming = self._to_messages(conversation_id, payloads)
                    span.set_attribute("refresh.message_count", len(incoming))
                    self.store.merge_messages(conversation_id, incoming)
                    merged = True
                except (GatewayError, asyncio.TimeoutError) as e:
                    error_text = str(e) or "Failed to fetch messages"
                    logger.error(f"[{conversation_id}] Fetch failed: {error_text}")
                    span.set_attribute("refresh.error", error_text)
                    self.store.set_error(conversation_id, error_text)
                except Exception as e:
                    error_text = f"Failed to fetch messages: {e}"
                    logger.error(f"[{conversation_id}] Unexpected error during refresh: {e}", exc_info=True)
                    span.set_attribute("refresh.error", error_text)
                    self.store.set_error(conversation_id, error_text)
                finally:
                    if not merged:
                        self.store.set_loading(conversation_id, False)
                return merged

    async def refresh_all(self) -> Dict[str, bool]:
        """Refreshes every conversation the store currently holds."""
        conversation_ids = self.store.conversation_ids()
        results = await asyncio.gather(*(self.refresh(cid) for cid in conversation_ids))
        return dict(zip(conversation_ids, results))

    def _to_messages(self, conversation_id: str, payloads: Sequence[Dict[str, Any]]) -> List[Message]:
        messages = []
        for payload in payloads:
            if not isinstance(payload, dict):
                logger.warning(f"[{conversation_id}] Skipping non-dict message payload: {payload!r}")
                continue
            try:
                messages.append(Message.from_payload(payload, conversation_id))
            except ValueError as e:
                logger.warning(f"[{conversation_id}] Skipping malformed message payload: {e}")
        return messages

    # --- Sends ---
    def validate_content(self, content: str, attachments: Optional[Sequence[Dict[str, Any]]] = None) -> str:
        """
        Normalizes outgoing content.

        Raises:
            MessageValidationError: for empty messages without attachments or
                messages over the length limit.
        """
        text = (content or "").strip()
        if not text and not attachments:
            raise MessageValidationError("Please enter a message or add an attachment")
        if len(text) > self.max_message_length:
            raise MessageValidationError(f"Message is too long (max {self.max_message_length} characters)")
        return text

    async def send_message(self,
                           conversation_id: str,
                           content: str,
                           attachments: Optional[Sequence[Dict[str, Any]]] = None) -> SendOutcome:
        """
        Sends a message with an optimistic local echo.

        The optimistic entry is removed once the gateway accepts the send and
        the conversation is refreshed; on failure or timeout it is marked
        failed and kept for retry or discard.

        Raises:
            MessageValidationError: before anything is added to the store.
        """
        text = self.validate_content(content, attachments)
        temporary_id = self.tracker.add_optimistic_message(conversation_id, text, attachments)
        return await self._deliver(conversation_id, temporary_id, text, attachments)

    async def _deliver(self,
                       conversation_id: str,
                       temporary_id: TemporaryId,
                       text: str,
                       attachments: Optional[Sequence[Dict[str, Any]]]) -> SendOutcome:
        """Sends an already-inserted optimistic message and resolves it."""
        with tracer.start_as_current_span("conversation_sync.send_message") as span:
            span.set_attribute("conversation.id", conversation_id)
            span.set_attribute("message.temporary_id", str(temporary_id))
            try:
                send = self.gateway.send_message(conversation_id, text, attachments)
                if self.send_timeout_seconds is not None:
                    result = await asyncio.wait_for(send, timeout=self.send_timeout_seconds)
                else:
                    result = await send
            except asyncio.TimeoutError:
                error_text = f"Send timed out after {self.send_timeout_seconds}s"
                span.set_attribute("send.error", error_text)
                self.tracker.mark_message_as_failed(conversation_id, temporary_id, error_text)
                return SendOutcome(temporary_id, success=False, error=error_text)
            except GatewayError as e:
                error_text = str(e) or "Failed to send message"
                span.set_attribute("send.error", error_text)
                self.tracker.mark_message_as_failed(conversation_id, temporary_id, error_text)
                return SendOutcome(temporary_id, success=False, error=error_text)
            except Exception as e:
                error_text = f"Failed to send message: {e}"
                logger.error(f"[{conversation_id}] Unexpected error sending message {temporary_id}: {e}", exc_info=True)
                span.set_attribute("send.error", error_text)
                self.tracker.mark_message_as_failed(conversation_id, temporary_id, error_text)
                return SendOutcome(temporary_id, success=False, error=error_text)

            external_id = result.get("id") if isinstance(result, dict) else None
            span.set_attribute("message.external_id", str(external_id))
            logger.info(f"[{conversation_id}] Message {temporary_id} confirmed by gateway as {external_id}")

        self.tracker.remove_optimistic_message(conversation_id, temporary_id)
        await self.refresh(conversation_id)
        return SendOutcome(temporary_id, success=True, external_id=external_id)

    async def retry_message(self, conversation_id: str, message_id: MessageId) -> Optional[SendOutcome]:
        """
        Re-sends a failed message as a brand-new send.

        Returns:
            The new send's outcome, or None if no failed message matched.
        """
        failed = self.store.get_message(conversation_id, message_id)
        if failed is None or not failed.is_failed:
            logger.warning(f"[{conversation_id}] Could not find failed message {message_id} to retry.")
            return None
        text = self.validate_content(failed.content, failed.attachments)
        new_id = self.tracker.retry_failed_message(conversation_id, message_id)
        if new_id is None:
            return None
        return await self._deliver(conversation_id, new_id, text, failed.attachments)

    def discard_message(self, conversation_id: str, message_id: MessageId) -> bool:
        """Removes a failed message at the user's request."""
        message = self.store.get_message(conversation_id, message_id)
        if message is None or not message.is_failed:
            logger.warning(f"[{conversation_id}] Could not find failed message {message_id} to discard.")
            return False
        self.tracker.remove_optimistic_message(conversation_id, message_id)
        return True

    # --- Notifications ---
    async def handle_new_message_notification(self, conversation_id: str) -> bool:
        """Entry point for the event feed: a conversation has new messages."""
        logger.debug(f"[{conversation_id}] New message notification received. Refreshing.")
        return await self.refresh(conversation_id)
