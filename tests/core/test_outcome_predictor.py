from __future__ import annotations

import math

import pytest

from crewscreening.core import InterviewSignals, OutcomePredictor
from crewscreening.schemas import DEFAULT_WEIGHT_SET, BoostTable, MetaPenalty


def test_prefers_calibrated_then_raw_then_neutral_base():
    predictor = OutcomePredictor()
    signals = InterviewSignals()

    assert predictor.predict(signals, DEFAULT_WEIGHT_SET, calibrated_score=62, raw_final_score=80).predicted_outcome_score == 62
    assert predictor.predict(signals, DEFAULT_WEIGHT_SET, raw_final_score=80).predicted_outcome_score == 80
    assert predictor.predict(signals, DEFAULT_WEIGHT_SET).predicted_outcome_score == 50


def test_applies_penalties_boosts_and_labels():
    predictor = OutcomePredictor()
    signals = InterviewSignals(
        risk_flag_codes=("RF_BLAME",),
        meta_penalties=(MetaPenalty.SPARSE_ANSWERS,),
        industry_code="maritime",
        source_channel="referral",
        english_score=85,
        video_present=True,
    )

    prediction = predictor.predict(signals, DEFAULT_WEIGHT_SET, calibrated_score=50.5, model_version=3)

    # 50.5 - 3 - 5 + 3 + 2 + 2 + 1 = 50.5, rounded half away from zero
    assert prediction.predicted_outcome_score == 51
    assert prediction.predicted_label == "GOOD"
    assert prediction.explain["total_risk_penalty"] == -3.0
    assert prediction.explain["total_meta_penalty"] == -5.0
    assert prediction.explain["total_boost"] == 8.0
    assert prediction.explain["model_version"] == 3


def test_prediction_is_clamped():
    predictor = OutcomePredictor()
    signals = InterviewSignals(meta_penalties=(MetaPenalty.INCOMPLETE_INTERVIEW,))

    prediction = predictor.predict(signals, DEFAULT_WEIGHT_SET, calibrated_score=4)

    assert prediction.predicted_outcome_score == 0
    assert prediction.predicted_label == "BAD"


def test_non_finite_base_is_rejected():
    with pytest.raises(ValueError):
        OutcomePredictor().predict(InterviewSignals(), DEFAULT_WEIGHT_SET, calibrated_score=math.nan)


def test_missing_source_channel_uses_unknown_boost():
    weights = DEFAULT_WEIGHT_SET.model_copy(
        update={"boosts": BoostTable(source_channel={"unknown": 4.0, "referral": 2.0})}
    )

    prediction = OutcomePredictor().predict(InterviewSignals(), weights, calibrated_score=50)

    assert prediction.predicted_outcome_score == 54
    assert prediction.explain["total_boost"] == 4.0
