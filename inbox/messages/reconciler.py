"""
Message Reconciler
Combines a freshly fetched batch of confirmed messages with the optimistic
and failed entries a conversation currently holds.

The incoming batch is authoritative for confirmed state: previously held
confirmed messages are dropped rather than merged field by field, so a
fetch must return a complete enough window of the conversation.
"""
import logging
from typing import Dict, List, Optional, Sequence, Tuple

from .message import Message

logger = logging.getLogger(__name__)


def partition_local_entries(existing: Sequence[Message]) -> Tuple[List[Message], List[Message]]:
    """
    Splits held messages into (pending optimistic, failed).
    Confirmed messages are not returned; the incoming batch replaces them.
    """
    pending = [msg for msg in existing if msg.is_optimistic and not msg.is_failed]
    failed = [msg for msg in existing if msg.is_failed]
    return pending, failed


def repair_direction(messages: Sequence[Message]) -> List[Message]:
    """Forces is_outgoing on locally originated messages."""
    repaired = []
    for msg in messages:
        if msg.is_local_origin and not msg.is_outgoing:
            msg = msg.with_updates({'is_outgoing': True})
        repaired.append(msg)
    return repaired


def sort_chronologically(messages: Sequence[Message]) -> List[Message]:
    """Stable sort by sent_at; equal timestamps keep their input order."""
    return sorted(messages, key=lambda msg: msg.sort_key)


def find_superseded_optimistic(pending: Sequence[Message],
                               incoming: Sequence[Message],
                               match_window_seconds: float) -> List[Message]:
    """
    Finds pending optimistic entries whose confirmed copy is already in the batch.

    A confirmed message matches an optimistic one when it is outgoing, carries
    the same content and was sent within match_window_seconds of it. Each
    confirmed message supersedes at most one optimistic entry, the closest in
    time; confirmed messages already held as pending are never candidates.
    """
    candidates: Dict[str, List[Message]] = {}
    for msg in incoming:
        if msg.is_optimistic or not msg.is_outgoing:
            continue
        candidates.setdefault(msg.content, []).append(msg)

    superseded = []
    for optimistic in pending:
        options = candidates.get(optimistic.content)
        if not options:
            continue
        sent = optimistic.sort_key
        best = min(options, key=lambda confirmed: abs(confirmed.sort_key - sent))
        if abs(best.sort_key - sent) <= match_window_seconds:
            options.remove(best)
            superseded.append(optimistic)
            logger.debug(f"[{optimistic.conversation_id}] Optimistic message {optimistic.id} superseded by {best.external_id}")
    return superseded


def merge_messages(existing: Sequence[Message],
                   incoming: Sequence[Message],
                   match_window_seconds: Optional[float] = None) -> List[Message]:
    """
    Produces the new visible sequence for a conversation.

    Args:
        existing: Messages currently held for the conversation.
        incoming: Confirmed batch from the durable store or gateway. Assumed
            to be unique per external_id; duplicates are not removed here.
        match_window_seconds: When set, pending optimistic entries matching a
            confirmed outgoing message by content within this many seconds are
            dropped. None leaves their removal to the caller.

    Returns:
        incoming ++ pending ++ failed, direction-repaired and sorted by sent_at.
    """
    pending, failed = partition_local_entries(existing)

    if match_window_seconds is not None and pending:
        superseded = find_superseded_optimistic(pending, incoming, match_window_seconds)
        if superseded:
            superseded_ids = {id(msg) for msg in superseded}
            pending = [msg for msg in pending if id(msg) not in superseded_ids]

    combined = list(incoming) + pending + failed
    return sort_chronologically(repair_direction(combined))
