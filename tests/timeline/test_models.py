"""Tests for feed timeline data models."""

from datetime import UTC, datetime, timedelta

import pytest

from feed_timeline.timeline.models import (
    Comment,
    Contract,
    FeedDataType,
    FeedReasonType,
    RawEvent,
    format_store_timestamp,
    parse_store_timestamp,
    to_epoch_ms,
)


class TestStoreTimestamps:
    def test_parse_zulu_suffix(self) -> None:
        parsed = parse_store_timestamp("2026-10-17T12:00:00.123456Z")
        assert parsed == datetime(2026, 10, 17, 12, 0, 0, 123456, tzinfo=UTC)

    def test_parse_naive_assumes_utc(self) -> None:
        assert parse_store_timestamp("2026-10-17 12:00:00").tzinfo == UTC

    def test_parse_offset_normalized_to_utc(self) -> None:
        parsed = parse_store_timestamp("2026-10-17T14:00:00+02:00")
        assert parsed == datetime(2026, 10, 17, 12, 0, tzinfo=UTC)

    def test_parse_rejects_garbage(self) -> None:
        with pytest.raises(ValueError):
            parse_store_timestamp("yesterday")

    def test_format_keeps_microseconds(self) -> None:
        ts = datetime(2026, 10, 17, 12, 0, 0, 1, tzinfo=UTC)
        assert format_store_timestamp(ts) == "2026-10-17T12:00:00.000001+00:00"
        assert parse_store_timestamp(format_store_timestamp(ts)) == ts


class TestRawEvent:
    def test_from_row_with_datetime(self) -> None:
        created = datetime(2026, 10, 17, 11, 59, 59, 999999, tzinfo=UTC)
        event = RawEvent.from_row(
            {
                "id": 7,
                "data_type": "trending_contract",
                "reason": "follow_user",
                "created_time": created,
                "contract_id": "m1",
                "news_id": 42,
                "data": None,
            }
        )

        assert event.data_type == FeedDataType.TRENDING_CONTRACT
        assert event.reason == FeedReasonType.FOLLOW_USER
        assert event.created_timestamp == "2026-10-17T11:59:59.999999+00:00"
        assert event.created_time == to_epoch_ms(created)
        assert event.news_id == "42"
        assert event.data == {}
        assert event.seen_time is None

    def test_from_row_with_string_timestamp_is_preserved(self) -> None:
        event = RawEvent.from_row(
            {
                "id": 1,
                "data_type": "new_comment",
                "reason": "follow_contract",
                "created_time": "2026-10-17T10:00:00.123456+00:00",
            }
        )
        assert event.created_timestamp == "2026-10-17T10:00:00.123456+00:00"

    def test_from_row_unknown_data_type(self) -> None:
        with pytest.raises(ValueError):
            RawEvent.from_row(
                {
                    "id": 1,
                    "data_type": "new_lottery",
                    "reason": "follow_contract",
                    "created_time": "2026-10-17T10:00:00+00:00",
                }
            )

    def test_from_row_unknown_reason(self) -> None:
        with pytest.raises(ValueError):
            RawEvent.from_row(
                {
                    "id": 1,
                    "data_type": "new_comment",
                    "reason": "astrology",
                    "created_time": "2026-10-17T10:00:00+00:00",
                }
            )


class TestContract:
    def test_from_dict_epoch_millis(self) -> None:
        created = datetime(2026, 10, 1, tzinfo=UTC)
        contract = Contract.from_dict(
            {
                "id": "m1",
                "creatorId": "u1",
                "question": "Will it rain?",
                "createdTime": to_epoch_ms(created),
                "closeTime": to_epoch_ms(created + timedelta(days=60)),
                "prob": 0.4,
                "probChanges": {"day": 0.02, "week": -0.1},
                "groupSlugs": ["weather"],
            }
        )

        assert contract.created_time == created
        assert contract.close_time == created + timedelta(days=60)
        assert contract.mechanism == "cpmm-1"
        assert contract.prob_changes["week"] == pytest.approx(-0.1)
        assert contract.group_slugs == ("weather",)
        assert not contract.is_resolved

    def test_to_dict_matches_stored_shape(self) -> None:
        contract = Contract.from_dict(
            {"id": "m1", "creatorId": "u1", "createdTime": 0, "isResolved": True}
        )
        data = contract.to_dict()
        assert data["id"] == "m1"
        assert data["createdTime"] == 0
        assert data["isResolved"] is True
        assert data["closeTime"] is None


class TestComment:
    def test_node_types(self) -> None:
        comment = Comment.from_dict(
            {
                "id": "c1",
                "contractId": "m1",
                "userId": "u1",
                "createdTime": 0,
                "content": {
                    "type": "doc",
                    "content": [{"type": "paragraph"}, {"type": "linkPreview"}],
                },
                "likes": 2,
            }
        )
        assert comment.node_types == ["paragraph", "linkPreview"]
        assert comment.likes == 2

    def test_node_types_empty_content(self) -> None:
        comment = Comment.from_dict({"id": "c1", "contractId": "m1"})
        assert comment.node_types == []
