"""
Tests for the Message model and sent_at parsing.
"""

from datetime import datetime, timezone

import pytest

from inbox.messages.message import (
    Message,
    TemporaryId,
    sent_at_timestamp,
    STATUS_CONFIRMED,
    STATUS_FAILED,
    STATUS_PENDING,
)


class TestSentAtTimestamp:
    """Ordering keys derived from sent_at values."""

    def test_iso_string_with_z_suffix(self):
        expected = datetime(2024, 3, 1, 12, 0, 5, tzinfo=timezone.utc).timestamp()
        assert sent_at_timestamp("2024-03-01T12:00:05Z") == expected

    def test_naive_datetime_treated_as_utc(self):
        naive = datetime(2024, 3, 1, 12, 0, 0)
        aware = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
        assert sent_at_timestamp(naive) == sent_at_timestamp(aware)

    def test_epoch_numbers(self):
        assert sent_at_timestamp(1709294400) == 1709294400.0

    @pytest.mark.parametrize("value", [None, "", "not a date", True, object()])
    def test_unparseable_values_sort_as_epoch_zero(self, value):
        assert sent_at_timestamp(value) == 0.0

    @pytest.mark.parametrize("value", ["nan", float("nan"), "inf", "-inf", float("inf"), "1e400", 10 ** 400])
    def test_non_finite_values_sort_as_epoch_zero(self, value):
        assert sent_at_timestamp(value) == 0.0


class TestTemporaryId:

    def test_generated_ids_are_unique(self):
        first = TemporaryId.generate()
        second = TemporaryId.generate()
        assert first != second
        assert second.sequence > first.sequence

    def test_rendered_with_local_prefix(self):
        assert str(TemporaryId(sequence=7, token="abc")) == "local-7-abc"


class TestMessage:

    def test_status(self):
        confirmed = Message(id="e1", conversation_id="c")
        pending = Message(id=TemporaryId(1, "a"), conversation_id="c", is_optimistic=True)
        failed = Message(id=TemporaryId(2, "b"), conversation_id="c", is_optimistic=True, is_failed=True)

        assert confirmed.status == STATUS_CONFIRMED
        assert pending.status == STATUS_PENDING and pending.is_pending
        assert failed.status == STATUS_FAILED and not failed.is_pending

    def test_local_origin(self):
        assert Message(id=TemporaryId(1, "a"), conversation_id="c").is_local_origin
        assert Message(id="x", conversation_id="c", external_id="local-9-zz").is_local_origin
        assert not Message(id="e1", conversation_id="c", external_id="e1").is_local_origin

    def test_has_id_matches_rendered_temporary_id(self):
        temp = TemporaryId(3, "tok")
        message = Message(id=temp, conversation_id="c")
        assert message.has_id(temp)
        assert message.has_id("local-3-tok")
        assert not message.has_id("local-4-tok")

    def test_with_updates_returns_new_message(self):
        message = Message(id="e1", conversation_id="c", content="a")
        updated = message.with_updates({"content": "b"})
        assert updated.content == "b"
        assert message.content == "a"

    def test_with_updates_rejects_conversation_change(self):
        message = Message(id="e1", conversation_id="c")
        with pytest.raises(ValueError):
            message.with_updates({"conversation_id": "other"})

    def test_from_payload_gateway_shape(self, gateway_message_payload):
        message = Message.from_payload(gateway_message_payload)

        assert message.id == "msg_abc123"
        assert message.external_id == "msg_abc123"
        assert message.conversation_id == "conv-1"
        assert message.content == "Hi there!"
        assert message.is_outgoing is False
        assert message.is_read is True
        assert message.is_optimistic is False
        assert message.sent_at == "2024-03-01T12:00:05.000Z"

    def test_from_payload_stored_shape(self):
        payload = {
            "id": "row-1",
            "external_id": "ext-1",
            "conversation_id": "conv-2",
            "content": "stored",
            "is_outgoing": True,
            "sent_at": "2024-03-01T12:00:00Z",
        }
        message = Message.from_payload(payload)
        assert message.id == "row-1"
        assert message.external_id == "ext-1"
        assert message.is_outgoing is True

    def test_from_payload_conversation_argument_wins(self, gateway_message_payload):
        message = Message.from_payload(gateway_message_payload, conversation_id="override")
        assert message.conversation_id == "override"

    def test_from_payload_requires_id(self):
        with pytest.raises(ValueError):
            Message.from_payload({"chat_id": "c", "text": "no id"})

    def test_from_payload_requires_conversation(self):
        with pytest.raises(ValueError):
            Message.from_payload({"id": "e1", "text": "orphan"})

    def test_to_dict_renders_temporary_id(self):
        message = Message(id=TemporaryId(5, "t"), conversation_id="c", is_optimistic=True)
        data = message.to_dict()
        assert data["id"] == "local-5-t"
        assert data["status"] == STATUS_PENDING
