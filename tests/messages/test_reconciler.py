"""
Tests for merging confirmed batches with optimistic and failed entries.
"""

from datetime import datetime, timedelta, timezone

import pytest

from inbox.messages.message import Message, TemporaryId
from inbox.messages.reconciler import (
    merge_messages,
    partition_local_entries,
    repair_direction,
    sort_chronologically,
)

BASE_TIME = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def optimistic(seq: int, content: str = "hello", seconds: float = 0, failed: bool = False) -> Message:
    return Message(
        id=TemporaryId(seq, f"tmp{seq}"),
        conversation_id="conv-1",
        content=content,
        is_outgoing=True,
        is_read=True,
        sent_at=BASE_TIME + timedelta(seconds=seconds),
        is_optimistic=True,
        is_failed=failed,
        error_details="boom" if failed else None,
    )


def test_partition_local_entries_drops_confirmed(make_message):
    pending = optimistic(1)
    failed = optimistic(2, failed=True)
    confirmed = make_message("e1")

    assert partition_local_entries([confirmed, pending, failed]) == ([pending], [failed])


def test_merge_replaces_previous_confirmed_with_batch(make_message):
    # Setup
    old = make_message("e-old", seconds=1)
    pending = optimistic(1, content="draft", seconds=5)
    failed = optimistic(2, content="oops", seconds=3, failed=True)
    batch = [make_message("e1", seconds=2), make_message("e2", seconds=4)]

    # Execute
    merged = merge_messages([old, pending, failed], batch)

    # Verify
    assert [str(m.id) for m in merged] == ["e1", "local-2-tmp2", "e2", "local-1-tmp1"]
    assert all(not m.has_id("e-old") for m in merged)


def test_merge_out_of_order_batch_is_sorted(make_message):
    t0, t1, t2 = (make_message(f"e{i}", seconds=i) for i in range(3))

    merged = merge_messages([], [t2, t0, t1])

    assert [m.id for m in merged] == ["e0", "e1", "e2"]


def test_merge_keeps_input_order_for_equal_timestamps(make_message):
    first = make_message("a", seconds=10)
    second = make_message("b", seconds=10)
    pending = optimistic(1, seconds=10)

    merged = merge_messages([pending], [first, second])

    assert [str(m.id) for m in merged] == ["a", "b", "local-1-tmp1"]


def test_merge_unparseable_timestamps_sort_first(make_message):
    dated = make_message("dated", seconds=0)
    undated = make_message("undated", sent_at="garbage")

    merged = merge_messages([], [dated, undated])

    assert [m.id for m in merged] == ["undated", "dated"]


@pytest.mark.parametrize("bad_sent_at", ["nan", float("nan"), "inf", 10 ** 400])
def test_merge_non_finite_timestamps_sort_first(make_message, bad_sent_at):
    later = [make_message("e3", seconds=30), make_message("e1", seconds=10), make_message("e2", seconds=20)]
    bad = make_message("bad", sent_at=bad_sent_at)

    merged = merge_messages([], [later[0], bad, later[1], later[2]])

    assert [m.id for m in merged] == ["bad", "e1", "e2", "e3"]
    keys = [m.sort_key for m in merged]
    assert keys == sorted(keys)


def test_merge_repairs_direction_of_local_origin(make_message):
    echoed = make_message("x1", external_id="local-7-abc", is_outgoing=False)
    inbound = make_message("e1", is_outgoing=False)

    merged = merge_messages([], [echoed, inbound])

    by_id = {m.id: m for m in merged}
    assert by_id["x1"].is_outgoing is True
    assert by_id["e1"].is_outgoing is False


def test_merge_keeps_duplicates_in_batch(make_message):
    dup = make_message("e1")

    merged = merge_messages([], [dup, dup])

    assert len(merged) == 2


def test_merge_without_window_keeps_pending_even_if_confirmed(make_message):
    pending = optimistic(1, content="same", seconds=0)
    confirmed = make_message("e1", content="same", seconds=1, is_outgoing=True)

    merged = merge_messages([pending], [confirmed])

    assert len(merged) == 2


def test_merge_with_window_drops_superseded_optimistic(make_message):
    pending = optimistic(1, content="same", seconds=0)
    confirmed = make_message("e1", content="same", seconds=2, is_outgoing=True)

    merged = merge_messages([pending], [confirmed], match_window_seconds=30)

    assert [m.id for m in merged] == ["e1"]


def test_merge_with_window_respects_time_and_direction(make_message):
    late = optimistic(1, content="same", seconds=0)
    other_direction = optimistic(2, content="ping", seconds=0)
    batch = [
        make_message("e1", content="same", seconds=120, is_outgoing=True),
        make_message("e2", content="ping", seconds=1, is_outgoing=False),
    ]

    merged = merge_messages([late, other_direction], batch, match_window_seconds=30)

    assert len(merged) == 4


def test_merge_with_window_matches_oldest_pending_first(make_message):
    first = optimistic(1, content="ok", seconds=0)
    second = optimistic(2, content="ok", seconds=5)
    confirmed = make_message("e1", content="ok", seconds=6, is_outgoing=True)

    merged = merge_messages([first, second], [confirmed], match_window_seconds=30)

    assert [str(m.id) for m in merged] == ["local-2-tmp2", "e1"]


def test_merge_with_window_never_drops_failed(make_message):
    failed = optimistic(1, content="same", seconds=0, failed=True)
    confirmed = make_message("e1", content="same", seconds=1, is_outgoing=True)

    merged = merge_messages([failed], [confirmed], match_window_seconds=30)

    assert len(merged) == 2


def test_repair_and_sort_do_not_mutate_input(make_message):
    echoed = make_message("x1", external_id="local-1-a", is_outgoing=False, seconds=5)
    early = make_message("e0", seconds=0)
    original = [echoed, early]

    result = sort_chronologically(repair_direction(original))

    assert [m.id for m in result] == ["e0", "x1"]
    assert original[0].is_outgoing is False
