"""Tests for attribute-condition matching."""

from __future__ import annotations

import pytest

from sightsignal.evaluation.conditions import (
    ConditionMatcher,
    SightingMatchData,
    build_match_data,
    describe_conditions,
    matches_conditions,
)
from sightsignal.models import (
    ConditionOperator,
    EvaluationContext,
    Importance,
    LatLng,
    ReputationTier,
    Sighting,
    Signal,
    SignalConditions,
)


def make_data(**overrides) -> SightingMatchData:
    defaults = dict(
        category_id="cat-weather",
        type_id="type-hail",
        tags=["storm"],
        importance=Importance.HIGH,
        score=5,
        reporter_trust_level=ReputationTier.NEW,
    )
    defaults.update(overrides)
    return SightingMatchData(**defaults)


class TestMatchesConditions:
    def test_empty_conditions_match_everything(self):
        assert matches_conditions(SignalConditions(), make_data())

    def test_empty_lists_add_no_check(self):
        conditions = SignalConditions(category_ids=[], tags=[], importance=[])
        assert matches_conditions(conditions, make_data())

    def test_and_requires_every_check(self):
        conditions = SignalConditions(category_ids=["cat-weather"], type_ids=["type-tornado"])
        assert not matches_conditions(conditions, make_data())

    def test_or_requires_any_check(self):
        conditions = SignalConditions(
            category_ids=["cat-weather"],
            type_ids=["type-tornado"],
            operator=ConditionOperator.OR,
        )
        assert matches_conditions(conditions, make_data())

    def test_or_all_failing(self):
        conditions = SignalConditions(
            category_ids=["cat-traffic"], min_score=100, operator=ConditionOperator.OR
        )
        assert not matches_conditions(conditions, make_data())

    def test_tags_match_on_any_overlap(self):
        assert matches_conditions(SignalConditions(tags=["flood", "storm"]), make_data())
        assert not matches_conditions(SignalConditions(tags=["flood"]), make_data())

    def test_importance(self):
        assert matches_conditions(
            SignalConditions(importance=[Importance.HIGH, Importance.CRITICAL]), make_data()
        )
        assert not matches_conditions(
            SignalConditions(importance=[Importance.LOW]), make_data()
        )

    def test_min_trust_level(self):
        assert matches_conditions(
            SignalConditions(min_trust_level=ReputationTier.NEW), make_data()
        )
        assert not matches_conditions(
            SignalConditions(min_trust_level=ReputationTier.TRUSTED), make_data()
        )

    @pytest.mark.parametrize(
        "min_score,max_score,expected",
        [(5, None, True), (6, None, False), (None, 5, True), (None, 4, False), (0, 10, True)],
    )
    def test_score_bounds_are_inclusive(self, min_score, max_score, expected):
        conditions = SignalConditions(min_score=min_score, max_score=max_score)
        assert matches_conditions(conditions, make_data()) is expected


class TestBuildMatchData:
    def test_resolves_tags_and_trust(self, eval_context, tulsa_sighting):
        data = build_match_data(tulsa_sighting, eval_context)
        assert data.tags == ["police", "traffic"]
        assert data.reporter_trust_level == ReputationTier.TRUSTED
        assert data.score == 9

    def test_unknown_type_has_no_tags(self, tulsa_sighting):
        data = build_match_data(tulsa_sighting, EvaluationContext())
        assert data.tags == []
        assert data.reporter_trust_level == ReputationTier.UNVERIFIED

    def test_custom_thresholds(self, eval_context, tulsa_sighting):
        data = build_match_data(
            tulsa_sighting, eval_context, trusted_threshold=100, new_threshold=50
        )
        assert data.reporter_trust_level == ReputationTier.NEW


class TestConditionMatcher:
    def test_tag_condition_through_sighting_type(self, eval_context, tulsa_sighting):
        signal = Signal(id="s", conditions=SignalConditions(tags=["traffic"]))
        assert ConditionMatcher().matches(tulsa_sighting, signal, eval_context)

    def test_trust_condition_for_anonymous_reporter(self, eval_context):
        sighting = Sighting(
            id="anon",
            type_id="type-hail",
            category_id="cat-weather",
            location=LatLng(lat=0, lng=0),
        )
        signal = Signal(
            id="s", conditions=SignalConditions(min_trust_level=ReputationTier.NEW)
        )
        assert not ConditionMatcher().matches(sighting, signal, eval_context)


class TestDescribeConditions:
    def test_empty(self):
        assert describe_conditions(SignalConditions()) == "All sightings"

    def test_and_join(self):
        text = describe_conditions(
            SignalConditions(category_ids=["a", "b"], importance=[Importance.HIGH])
        )
        assert text == "Categories: a, b AND Importance: high"

    def test_or_join_and_open_score_range(self):
        text = describe_conditions(
            SignalConditions(
                tags=["storm"], min_score=2.5, operator=ConditionOperator.OR
            )
        )
        assert text == "Tags: storm OR Score: 2.5 to ∞"

    def test_upper_bound_only(self):
        assert describe_conditions(SignalConditions(max_score=10)) == "Score: -∞ to 10"
