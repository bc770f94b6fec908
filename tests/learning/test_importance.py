from __future__ import annotations

import pytest

from crewscreening.learning.importance import extract_feature_values, importance_updates
from crewscreening.schemas import LearningSample


def test_features_cover_every_carried_signal():
    sample = LearningSample(
        interview_id="I-1",
        risk_flag_codes=["LATE_ARRIVAL"],
        answers_meta={"sparse_answers": True, "incomplete_interview": False, "avg_answer_len": 12.5},
        source_channel="crew_agency",
        industry_code="maritime",
        calibrated_score=70.0,
    )

    features = extract_feature_values(sample)

    assert features == {
        "risk_flag:LATE_ARRIVAL": 1.0,
        "meta:sparse_answers": 1.0,
        "meta:very_short_answers": 1.0,
        "source:crew_agency": 1.0,
        "industry:maritime": 1.0,
        "base:calibrated_score": 0.7,
    }


def test_missing_calibration_uses_neutral_base():
    features = extract_feature_values(LearningSample(interview_id="I-2", calibrated_score=None))

    assert features == {"base:calibrated_score": 0.5}


def test_updates_scale_with_error_and_skip_tiny_deltas():
    updates = importance_updates(
        {"source:crew_agency": 1.0, "base:calibrated_score": 0.1},
        error=30.0,
        industry_code="maritime",
    )

    [update] = updates
    assert update.feature_name == "source:crew_agency"
    assert update.delta == pytest.approx(0.015)
    assert update.positive is True
    assert update.industry_code == "maritime"


def test_updates_are_bounded_and_signed():
    [update] = importance_updates(
        {"risk_flag:LATE": 1.0}, error=-80.0, industry_code="general", learning_rate=1.0, max_delta=0.5
    )

    assert update.delta == -0.5
    assert update.positive is False
