"""Tests for the command line entry point."""

from datetime import timedelta

import pytest

from feed_timeline.__main__ import build_parser, collect_items
from feed_timeline.timeline.controller import FeedTimelineController


@pytest.fixture
def controller(fake_store, timeline_state, now) -> FeedTimelineController:
    return FeedTimelineController(fake_store, timeline_state, user_id="u1", clock=lambda: now)


def test_newer_requires_since() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args(["newer", "--user-id", "u1"])


def test_since_is_normalized() -> None:
    args = build_parser().parse_args(
        ["newer", "--user-id", "u1", "--since", "2026-10-17T11:00:00Z"]
    )
    assert args.since == "2026-10-17T11:00:00.000000+00:00"


def test_invalid_since_rejected() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args(["newer", "--user-id", "u1", "--since", "yesterday"])


@pytest.mark.asyncio
async def test_newer_prints_items_after_since(
    controller, fake_store, make_event, make_contract, now
) -> None:
    for i in (1, 2, 90):
        fake_store.events.append(make_event(i, contract_id=f"m{i}"))
        fake_store.contracts[f"m{i}"] = make_contract(f"m{i}")
    since = (now - timedelta(minutes=30)).isoformat()
    args = build_parser().parse_args(["newer", "--user-id", "u1", "--since", since])

    items = await collect_items(controller, args)

    assert [i.id for i in items] == [1, 2]
    assert controller.saved_feed_items is None


@pytest.mark.asyncio
async def test_show_bootstraps(controller, fake_store, make_event, make_contract) -> None:
    for i in range(1, 13):
        fake_store.events.append(make_event(i, contract_id=f"m{i}"))
        fake_store.contracts[f"m{i}"] = make_contract(f"m{i}")
    args = build_parser().parse_args(["show", "--user-id", "u1"])

    items = await collect_items(controller, args)

    assert [i.id for i in items] == list(range(1, 13))
