"""
Notification Listener

Subscribes to the realtime notification feed and turns "new message" events
into refresh cycles for the affected conversation.
"""

import logging
from typing import Dict, Any, Optional, Callable, Awaitable

import socketio # Using python-socketio

from host.observability import get_tracer

tracer = get_tracer(__name__)

logger = logging.getLogger(__name__)

SOCKET_RECONNECTION_ATTEMPTS = 0  # 0 retries forever
SOCKET_RECONNECTION_DELAY = 5
SOCKET_TIMEOUT = 30  # seconds

NEW_MESSAGE_TOPIC = "messages:new"
SYNC_STATUS_TOPIC = "messages:sync"

ConversationCallback = Callable[[str], Awaitable[Any]]
RefreshAllCallback = Callable[[], Awaitable[Any]]


def extract_conversation_id(payload: Any) -> Optional[str]:
    """
    Finds the conversation key in a notification payload.

    Only the key is relied on: message.chat_id, or a top-level
    conversation_id / chat_id.
    """
    if not isinstance(payload, dict):
        return None
    message = payload.get("message")
    if isinstance(message, dict) and message.get("chat_id"):
        return str(message["chat_id"])
    for key in ("conversation_id", "chat_id"):
        if payload.get(key):
            return str(payload[key])
    return None


class NotificationListener:
    """
    Socket.IO client for the new-message notification feed.

    Delivery is at least once and unordered; every notification simply
    triggers a refresh, which is idempotent.
    """

    def __init__(self,
                 url: str,
                 on_new_message: ConversationCallback,
                 on_sync_completed: Optional[RefreshAllCallback] = None,
                 auth_token: Optional[str] = None):
        """
        Args:
            url: Socket.IO server URL of the notification feed
            on_new_message: Awaited with the conversation id of each new-message event
            on_sync_completed: Awaited when a background sync reports completion
            auth_token: Optional token sent in the connection auth payload
        """
        self.url = url
        self.on_new_message = on_new_message
        self.on_sync_completed = on_sync_completed
        self.auth_token = auth_token
        self.connected = False
        self.client = socketio.AsyncClient(
            logger=False,
            reconnection=True,
            reconnection_attempts=SOCKET_RECONNECTION_ATTEMPTS,
            reconnection_delay=SOCKET_RECONNECTION_DELAY,
            request_timeout=SOCKET_TIMEOUT
        )
        self._register_event_handlers()
        logger.info(f"NotificationListener initialized for {url}")

    def _register_event_handlers(self) -> None:
        client = self.client

        @client.event
        async def connect(*args):
            logger.info(f"Connected to notification feed at {self.url}")
            self.connected = True

        @client.event
        async def disconnect(*args):
            logger.info(f"Disconnected from notification feed at {self.url}")
            self.connected = False

        @client.event
        async def connect_error(data):
            logger.error(f"Connection error with notification feed at {self.url}: {data}")
            self.connected = False

        @client.on(NEW_MESSAGE_TOPIC)
        async def handle_new_message(payload: Dict[str, Any]):
            await self.handle_new_message(payload)

        @client.on(SYNC_STATUS_TOPIC)
        async def handle_sync_status(payload: Dict[str, Any]):
            await self.handle_sync_status(payload)

    async def handle_new_message(self, payload: Dict[str, Any]) -> bool:
        """Routes a new-message notification to the refresh callback."""
        with tracer.start_as_current_span("notification_listener.new_message") as span:
            conversation_id = extract_conversation_id(payload)
            if not conversation_id:
                logger.warning(f"Received {NEW_MESSAGE_TOPIC} notification without a conversation id: {payload}")
                span.set_attribute("event.error", "Missing conversation id")
                return False

            span.set_attribute("conversation.id", conversation_id)
            logger.debug(f"[{conversation_id}] {NEW_MESSAGE_TOPIC} notification received")
            try:
                await self.on_new_message(conversation_id)
            except Exception as e:
                logger.error(f"[{conversation_id}] Error handling {NEW_MESSAGE_TOPIC} notification: {e}", exc_info=True)
                return False
            return True

    async def handle_sync_status(self, payload: Dict[str, Any]) -> bool:
        """Refreshes held conversations when a background sync completes."""
        if not isinstance(payload, dict):
            logger.warning(f"Received non-dict {SYNC_STATUS_TOPIC} notification: {payload}")
            return False

        status = payload.get("status")
        if status == "failed":
            logger.error(f"Background sync failed for account {payload.get('account_id')}: {payload.get('error')}")
            return False
        if status != "completed":
            logger.debug(f"Background sync status '{status}' for account {payload.get('account_id')}")
            return False
        if self.on_sync_completed is None:
            return False

        logger.info(f"Background sync completed for account {payload.get('account_id')}. Refreshing conversations.")
        try:
            await self.on_sync_completed()
        except Exception as e:
            logger.error(f"Error refreshing conversations after sync: {e}", exc_info=True)
            return False
        return True

    async def connect(self) -> bool:
        """Connects to the feed. Returns False if the connection attempt fails."""
        auth = {"token": self.auth_token} if self.auth_token else None
        try:
            logger.info(f"Connecting to notification feed at {self.url}...")
            await self.client.connect(self.url, auth=auth, namespaces=["/"])
            return True
        except socketio.exceptions.ConnectionError as e:
            logger.error(f"Failed to connect to notification feed at {self.url}: {e}")
            self.connected = False
            return False

    async def wait(self) -> None:
        await self.client.wait()

    async def disconnect(self) -> None:
        if self.connected:
            logger.info(f"Disconnecting from notification feed at {self.url}...")
        await self.client.disconnect()
        self.connected = False
