from __future__ import annotations

import pytest

from crewscreening.errors import InvalidWeightSetError
from crewscreening.schemas import (
    DEFAULT_WEIGHT_SET,
    AssessmentBoost,
    MetaPenalty,
    WeightSet,
    WeightSnapshot,
    parse_weight_set,
)


def test_default_weight_set_matches_builtin_constants():
    weights = DEFAULT_WEIGHT_SET

    assert weights.risk_flag_penalties == {"default": -3.0}
    assert weights.meta_penalties[MetaPenalty.SPARSE_ANSWERS] == -5.0
    assert weights.meta_penalties[MetaPenalty.INCOMPLETE_INTERVIEW] == -10.0
    assert weights.meta_penalties[MetaPenalty.VERY_SHORT_ANSWERS] == -3.0
    assert weights.boosts.industry == {"maritime": 3.0}
    assert weights.boosts.source_channel == {"referral": 2.0, "company_invite": 2.0}
    assert weights.boosts.assessment[AssessmentBoost.ENGLISH_B2_PLUS] == 2.0
    assert weights.boosts.assessment[AssessmentBoost.VIDEO_PRESENT] == 1.0
    assert weights.thresholds.good == 50.0


def test_unknown_flag_falls_back_to_default_bucket():
    weights = WeightSet(risk_flag_penalties={"default": -3.0, "RF_BLAME": -8.0})

    assert weights.flag_penalty("RF_BLAME") == -8.0
    assert weights.flag_penalty("RF_SOMETHING_NEW") == -3.0


def test_flatten_uses_category_prefixes():
    flat = DEFAULT_WEIGHT_SET.flatten()

    assert flat["risk_flag:default"] == -3.0
    assert flat["meta:sparse_answers"] == -5.0
    assert flat["industry:maritime"] == 3.0
    assert flat["source:referral"] == 2.0
    assert flat["assessment:english_b2_plus"] == 2.0
    assert len(flat) == 9


def test_parse_weight_set_round_trips_stored_json():
    payload = DEFAULT_WEIGHT_SET.to_json()

    assert parse_weight_set(payload) == DEFAULT_WEIGHT_SET


@pytest.mark.parametrize(
    "payload",
    [
        {"risk_flag_penalties": {"RF_BLAME": -5.0}},
        {"risk_flag_penalties": {"default": -3.0, "rf-lower": -1.0}},
        {"risk_flag_penalties": {"default": 2.0}},
        {"meta_penalties": {"unknown_meta": -1.0}},
        {"meta_penalties": {"sparse_answers": 4.0}},
        {"boosts": {"industry": {"maritime": -1.0}}},
        {"unexpected": {}},
    ],
)
def test_parse_weight_set_rejects_invalid_payloads(payload):
    with pytest.raises(InvalidWeightSetError) as excinfo:
        parse_weight_set(payload)

    assert excinfo.value.errors


def test_parse_weight_set_requires_mapping():
    with pytest.raises(InvalidWeightSetError):
        parse_weight_set(["not", "a", "mapping"])


def test_fallback_snapshot_is_flagged():
    snapshot = WeightSnapshot.fallback()

    assert snapshot.is_fallback is True
    assert snapshot.version is None
    assert snapshot.label == "builtin_default"
    assert WeightSnapshot(version=4, weights=DEFAULT_WEIGHT_SET).label == "v4"
