"""
Messaging Gateway
Contract for the external messaging gateway that stores and delivers messages,
and an aiohttp client for its REST API.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Dict, Any, List, Optional, Sequence

import aiohttp

from inbox.errors import InboxError

logger = logging.getLogger(__name__)


class GatewayError(InboxError):
    """Raised when the gateway cannot complete a fetch or send."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class MessagingGateway(ABC):
    """
    Durable message source and sink.

    Implementations raise GatewayError on transport or provider failure.
    """

    @abstractmethod
    async def fetch_messages(self, conversation_id: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Fetch confirmed messages for a conversation.

        Args:
            conversation_id: Conversation to fetch
            limit: Maximum number of messages to return

        Returns:
            Message payloads, each with a stable external id. Order is not guaranteed.
        """
        pass

    @abstractmethod
    async def send_message(self,
                           conversation_id: str,
                           content: str,
                           attachments: Optional[Sequence[Dict[str, Any]]] = None) -> Dict[str, Any]:
        """
        Durably send a message.

        Returns:
            The gateway's description of the created message (at least its id).
        """
        pass

    async def close(self) -> None:
        """Release any held connections."""
        return None


class HttpMessagingGateway(MessagingGateway):
    """
    REST client for the messaging gateway.

    Uses GET/POST on /chats/{conversation_id}/messages with bearer auth. A
    single aiohttp session is opened lazily and reused until close().
    """

    def __init__(self,
                 base_url: str,
                 api_key: Optional[str] = None,
                 account_id: Optional[str] = None,
                 request_timeout_seconds: float = 30.0):
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.account_id = account_id
        self.request_timeout_seconds = request_timeout_seconds
        self._session: Optional[aiohttp.ClientSession] = None
        logger.info(f"HttpMessagingGateway initialized for {self.base_url}")

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            headers = {"Content-Type": "application/json"}
            if self.api_key:
                headers["Authorization"] = f"Bearer {self.api_key}"
            self._session = aiohttp.ClientSession(
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self.request_timeout_seconds)
            )
        return self._session

    def _params(self, **extra: Any) -> Dict[str, str]:
        params = {}
        if self.account_id:
            params["account_id"] = self.account_id
        for key, value in extra.items():
            if value is not None:
                params[key] = str(value)
        return params

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        try:
            async with self._get_session().request(method, url, **kwargs) as response:
                if response.status >= 400:
                    error_text = await response.text()
                    logger.error(f"Gateway {method} {path} failed with HTTP {response.status}: {error_text}")
                    raise GatewayError(f"HTTP {response.status}: {error_text or response.reason}", status=response.status)
                return await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Gateway {method} {path} failed: {e}")
            raise GatewayError(str(e) or type(e).__name__) from e
        except ValueError as e:
            # Body advertised as JSON but not decodable
            logger.error(f"Gateway {method} {path} returned an invalid JSON body: {e}")
            raise GatewayError(f"Invalid JSON response: {e}") from e

    async def fetch_messages(self, conversation_id: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        data = await self._request(
            "GET",
            f"/chats/{conversation_id}/messages",
            params=self._params(limit=limit)
        )
        items = data.get("items", []) if isinstance(data, dict) else data
        if not isinstance(items, list):
            raise GatewayError(f"Unexpected message list payload for '{conversation_id}': {data!r}")
        logger.debug(f"[{conversation_id}] Fetched {len(items)} messages from gateway")
        return items

    async def send_message(self,
                           conversation_id: str,
                           content: str,
                           attachments: Optional[Sequence[Dict[str, Any]]] = None) -> Dict[str, Any]:
        body: Dict[str, Any] = {"chat_id": conversation_id, "text": content}
        if attachments:
            body["attachments"] = [dict(att) for att in attachments]

        data = await self._request(
            "POST",
            f"/chats/{conversation_id}/messages",
            params=self._params(),
            json=body
        )
        if not isinstance(data, dict):
            raise GatewayError(f"Unexpected send response for '{conversation_id}': {data!r}")
        if data.get("status") == "failed":
            raise GatewayError(data.get("error") or "Failed to send message through gateway")
        logger.info(f"[{conversation_id}] Gateway accepted message {data.get('id')}")
        return data

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
