"""
Message Model
Immutable message records held by the ConversationStore, plus the
temporary identifier type used for optimistic (not yet confirmed) sends.
"""
import itertools
import logging
import math
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Dict, Any, Optional, Tuple, Union

logger = logging.getLogger(__name__)

# Reserved prefix for identifiers synthesized on this side of the gateway.
LOCAL_ID_PREFIX = "local-"

STATUS_PENDING = "pending"
STATUS_FAILED = "failed"
STATUS_CONFIRMED = "confirmed"

_temporary_id_sequence = itertools.count(1)


@dataclass(frozen=True)
class TemporaryId:
    """
    Identifier of an optimistic message.

    Kept as its own type so "is this optimistic" is answered by isinstance()
    instead of sniffing strings. The sequence is unique for the lifetime of
    the process; the token makes the rendered id unguessable.
    """
    sequence: int
    token: str

    @classmethod
    def generate(cls) -> 'TemporaryId':
        return cls(sequence=next(_temporary_id_sequence), token=uuid.uuid4().hex[:12])

    def __str__(self) -> str:
        return f"{LOCAL_ID_PREFIX}{self.sequence}-{self.token}"


MessageId = Union[str, TemporaryId]


def _finite_or_zero(value: float) -> float:
    return value if math.isfinite(value) else 0.0


def sent_at_timestamp(value: Any) -> float:
    """
    Converts a sent_at value to epoch seconds for ordering.

    Accepts datetimes (naive values are treated as UTC), epoch numbers and
    ISO-8601 strings. Anything missing, unparseable or non-finite (NaN,
    infinity, out-of-range numbers) sorts as epoch zero.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp()
    if isinstance(value, (int, float)):
        try:
            return _finite_or_zero(float(value))
        except OverflowError:
            logger.debug(f"Out-of-range sent_at value {value!r}, ordering as epoch zero")
            return 0.0
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        if text.endswith(('Z', 'z')):
            text = text[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            try:
                return _finite_or_zero(float(text))
            except (ValueError, OverflowError):
                logger.debug(f"Unparseable sent_at value '{value}', ordering as epoch zero")
                return 0.0
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.timestamp()
    return 0.0


@dataclass(frozen=True)
class Message:
    """A single message in a conversation."""
    id: MessageId
    conversation_id: str
    content: str = ""
    external_id: Optional[str] = None
    is_outgoing: bool = False
    is_read: bool = False
    sent_at: Any = None
    is_optimistic: bool = False
    is_failed: bool = False
    error_details: Optional[str] = None
    attachments: Tuple[Dict[str, Any], ...] = field(default_factory=tuple)

    @property
    def status(self) -> str:
        if self.is_failed:
            return STATUS_FAILED
        if self.is_optimistic:
            return STATUS_PENDING
        return STATUS_CONFIRMED

    @property
    def is_pending(self) -> bool:
        return self.is_optimistic and not self.is_failed

    @property
    def is_local_origin(self) -> bool:
        """True for messages created locally and not yet issued a provider id."""
        if isinstance(self.id, TemporaryId):
            return True
        return bool(self.external_id) and self.external_id.startswith(LOCAL_ID_PREFIX)

    @property
    def sort_key(self) -> float:
        return sent_at_timestamp(self.sent_at)

    def has_id(self, message_id: MessageId) -> bool:
        """Matches either the id object itself or its rendered string form."""
        if self.id == message_id:
            return True
        return message_id is not None and str(self.id) == str(message_id)

    def with_updates(self, updates: Dict[str, Any]) -> 'Message':
        """
        Returns a copy of this message with the given fields replaced.

        Raises:
            ValueError: if the update tries to move the message to another conversation.
            TypeError: if an update names a field Message does not have.
        """
        if 'conversation_id' in updates and updates['conversation_id'] != self.conversation_id:
            raise ValueError(f"Message {self.id} cannot be moved from conversation '{self.conversation_id}'")
        if not updates:
            return self
        return replace(self, **updates)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], conversation_id: Optional[str] = None) -> 'Message':
        """
        Builds a confirmed message from a gateway/durable-store payload.

        Understands both the stored row shape (content, is_outgoing, sent_at)
        and the raw gateway shape (text, is_sender, timestamp). Payloads from
        the gateway are never optimistic.
        """
        external_id = payload.get('external_id', payload.get('provider_id'))
        message_id = payload.get('id') or external_id
        if message_id is None:
            raise ValueError(f"Message payload has neither 'id' nor 'external_id': {payload}")

        owner = conversation_id or payload.get('conversation_id') or payload.get('chat_id')
        if not owner:
            raise ValueError(f"Message payload {message_id} has no conversation id")

        content = payload.get('content')
        if content is None:
            content = payload.get('text') or ""

        is_outgoing = payload.get('is_outgoing')
        if is_outgoing is None:
            is_outgoing = payload.get('is_sender', False)

        is_read = payload.get('is_read')
        if is_read is None:
            is_read = payload.get('seen', False)

        sent_at = payload.get('sent_at')
        if sent_at is None:
            sent_at = payload.get('timestamp')

        return cls(
            id=str(message_id),
            conversation_id=str(owner),
            content=content,
            external_id=str(external_id) if external_id is not None else str(message_id),
            is_outgoing=bool(is_outgoing),
            is_read=bool(is_read),
            sent_at=sent_at,
            attachments=tuple(att for att in payload.get('attachments') or () if isinstance(att, dict)),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Plain representation for rendering layers and logs."""
        return {
            'id': str(self.id),
            'conversation_id': self.conversation_id,
            'external_id': self.external_id,
            'content': self.content,
            'is_outgoing': self.is_outgoing,
            'is_read': self.is_read,
            'sent_at': self.sent_at,
            'is_optimistic': self.is_optimistic,
            'is_failed': self.is_failed,
            'error_details': self.error_details,
            'attachments': [dict(att) for att in self.attachments],
            'status': self.status,
        }
