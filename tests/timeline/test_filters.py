"""Tests for feed relevance filters."""

from datetime import timedelta

import pytest

from feed_timeline.timeline.filters import (
    filter_new_comments,
    filter_new_contracts,
    has_only_ignored_content,
    is_contract_blocked,
    market_movement_info,
    round_half_up,
    should_ignore_comments_on_contract,
)
from feed_timeline.timeline.models import FeedDataType, FeedTuning, Viewer

# ============================================================================
# Market state
# ============================================================================


class TestShouldIgnoreCommentsOnContract:
    def test_open_contract(self, make_contract, now) -> None:
        assert not should_ignore_comments_on_contract(make_contract("m1"), now)

    def test_resolved_contract(self, make_contract, now) -> None:
        assert should_ignore_comments_on_contract(make_contract("m1", is_resolved=True), now)

    def test_closed_contract(self, make_contract, now) -> None:
        contract = make_contract("m1", close_in=timedelta(hours=-1))
        assert should_ignore_comments_on_contract(contract, now)


# ============================================================================
# Probability movement
# ============================================================================


class TestMarketMovementInfo:
    def test_significant_move_from_previous_prob(self, make_contract, now) -> None:
        contract = make_contract("m1", prob=0.60, prob_changes={"day": 0.01})
        movement = market_movement_info(
            contract, FeedDataType.CONTRACT_PROBABILITY_CHANGED, {"previousProb": 0.50}, now
        )
        assert not movement.ignore
        assert movement.prob_change == 10

    def test_small_move_is_dropped(self, make_contract, now) -> None:
        contract = make_contract("m1", prob=0.60, prob_changes={"day": 0.01})
        movement = market_movement_info(
            contract, FeedDataType.CONTRACT_PROBABILITY_CHANGED, {"previousProb": 0.58}, now
        )
        assert movement.ignore
        assert movement.prob_change is None

    def test_falls_back_to_day_change(self, make_contract, now) -> None:
        contract = make_contract("m1", prob=0.3, prob_changes={"day": -0.2})
        movement = market_movement_info(contract, FeedDataType.CONTRACT_PROBABILITY_CHANGED, {}, now)
        assert not movement.ignore
        assert movement.prob_change == -20

    def test_young_contract_near_fifty_is_exempt(self, make_contract, now) -> None:
        contract = make_contract("m1", prob=0.56, age=timedelta(days=1, hours=12))
        movement = market_movement_info(
            contract, FeedDataType.CONTRACT_PROBABILITY_CHANGED, {"previousProb": 0.50}, now
        )
        assert movement.ignore

    def test_one_day_old_contract_is_dropped(self, make_contract, now) -> None:
        contract = make_contract("m1", prob=0.56, age=timedelta(days=1))
        movement = market_movement_info(
            contract, FeedDataType.CONTRACT_PROBABILITY_CHANGED, {"previousProb": 0.50}, now
        )
        assert movement.ignore

    def test_young_contract_away_from_fifty_counts(self, make_contract, now) -> None:
        contract = make_contract("m1", prob=0.80, age=timedelta(days=1, hours=12))
        movement = market_movement_info(
            contract, FeedDataType.CONTRACT_PROBABILITY_CHANGED, {"previousProb": 0.70}, now
        )
        assert not movement.ignore
        assert movement.prob_change == 10

    def test_non_cpmm_contract_ignores_previous_prob(self, make_contract, now) -> None:
        contract = make_contract("m1", prob=0.9, mechanism="dpm-2", prob_changes={"day": 0.5})
        movement = market_movement_info(
            contract, FeedDataType.CONTRACT_PROBABILITY_CHANGED, {"previousProb": 0.1}, now
        )
        assert movement.ignore

    def test_only_probability_events_are_gated(self, make_contract, now) -> None:
        contract = make_contract("m1", prob=0.60)
        movement = market_movement_info(contract, FeedDataType.NEW_COMMENT, {"previousProb": 0.58}, now)
        assert not movement.ignore

    def test_non_high_signal_types_keep_change(self, make_contract, now) -> None:
        contract = make_contract("m1", prob=0.60)
        movement = market_movement_info(contract, FeedDataType.NEW_COMMENT, {"previousProb": 0.40}, now)
        assert not movement.ignore
        assert movement.prob_change == 20

    def test_custom_threshold(self, make_contract, now) -> None:
        contract = make_contract("m1", prob=0.60)
        movement = market_movement_info(
            contract,
            FeedDataType.CONTRACT_PROBABILITY_CHANGED,
            {"previousProb": 0.50},
            now,
            tuning=FeedTuning(prob_change_threshold=0.2),
        )
        assert movement.ignore


@pytest.mark.parametrize(("value", "expected"), [(9.5, 10), (-9.5, -9), (2.4, 2), (-2.6, -3)])
def test_round_half_up(value: float, expected: int) -> None:
    assert round_half_up(value) == expected


# ============================================================================
# Blocking and content
# ============================================================================


class TestBlocking:
    def test_no_viewer_blocks_nothing(self, make_contract) -> None:
        assert not is_contract_blocked(None, make_contract("m1"))

    def test_blocked_group(self, make_contract) -> None:
        viewer = Viewer(user_id="u1", blocked_group_slugs=frozenset({"politics"}))
        assert is_contract_blocked(viewer, make_contract("m1", group_slugs=("politics", "us")))

    def test_creator_blocked_viewer(self, make_contract) -> None:
        viewer = Viewer(user_id="u1", blocked_by_user_ids=frozenset({"creator-9"}))
        assert is_contract_blocked(viewer, make_contract("m1", creator_id="creator-9"))

    def test_filter_new_contracts(self, make_contract) -> None:
        viewer = Viewer(user_id="u1", blocked_contract_ids=frozenset({"m2"}))
        contracts = [
            make_contract("m1"),
            make_contract("m2"),
            make_contract("m3", is_resolved=True),
            make_contract("m4"),
        ]
        kept = filter_new_contracts(contracts, viewer=viewer, disinterested_contract_ids=["m4"])
        assert [c.id for c in kept] == ["m1"]

    def test_filter_new_comments(self, make_comment) -> None:
        viewer = Viewer(user_id="u1", blocked_user_ids=frozenset({"troll"}))
        comments = [
            make_comment("c1", "m1"),
            make_comment("c2", "m1", user_id="troll"),
            make_comment("c3", "m1", hidden=True),
            make_comment("c4", "m1"),
        ]
        kept = filter_new_comments(comments, viewer=viewer, seen_comment_ids={"c4"})
        assert [c.id for c in kept] == ["c1"]


class TestHasOnlyIgnoredContent:
    ignored = frozenset({"gridCardsComponent", "linkPreview"})

    def test_only_ignored_nodes(self, make_comment) -> None:
        comment = make_comment("c1", "m1", node_types=("linkPreview", "gridCardsComponent"))
        assert has_only_ignored_content(comment, self.ignored)

    def test_mixed_nodes_kept(self, make_comment) -> None:
        comment = make_comment("c1", "m1", node_types=("paragraph", "linkPreview"))
        assert not has_only_ignored_content(comment, self.ignored)

    def test_empty_content_kept(self, make_comment) -> None:
        assert not has_only_ignored_content(make_comment("c1", "m1", node_types=()), self.ignored)
