from __future__ import annotations

import pytest

from crewscreening.learning import StabilityConfig, StabilityGuard
from crewscreening.learning.stability import SUDDEN_SHIFT_BLOCK_EVENT, VOLATILITY_BLOCK_EVENT
from crewscreening.schemas import BoostTable, FeatureImportanceStat, WeightSet


def build_weights(default: float, **boosts: float) -> WeightSet:
    return WeightSet(
        risk_flag_penalties={"default": default},
        meta_penalties={},
        boosts=BoostTable(source_channel=boosts),
    )


def build_flag_weights(**flags: float) -> WeightSet:
    return WeightSet(
        risk_flag_penalties={"default": -3.0, **flags},
        meta_penalties={},
        boosts=BoostTable(source_channel={"referral": 2.0}),
    )


def build_stat(name: str, positive: int, negative: int) -> FeatureImportanceStat:
    return FeatureImportanceStat(
        feature_name=name,
        industry_code="general",
        sample_count=positive + negative,
        positive_impact_count=positive,
        negative_impact_count=negative,
    )


def test_move_beyond_ratio_of_mean_weight_is_volatile():
    verdict = StabilityGuard().check(build_weights(-5.0), build_weights(-6.5))

    assert verdict.average_abs_weight == pytest.approx(5.0)
    assert verdict.max_allowed_delta == pytest.approx(1.0)
    assert not verdict.passed
    [violation] = verdict.violations
    assert violation.kind == "volatility"
    assert violation.key == "risk_flag:default"
    assert violation.event_type == VOLATILITY_BLOCK_EVENT


def test_small_move_passes():
    verdict = StabilityGuard().check(build_weights(-5.0), build_weights(-5.5))

    assert verdict.passed
    assert verdict.to_dict()["violations"] == []


def test_new_flag_key_measured_from_default_penalty():
    verdict = StabilityGuard().check(build_flag_weights(), build_flag_weights(RF_BLAME=-2.6))

    assert verdict.max_allowed_delta == pytest.approx(0.5)
    assert verdict.passed


def test_new_flag_key_far_from_default_is_volatile():
    verdict = StabilityGuard().check(build_flag_weights(), build_flag_weights(RF_BLAME=-1.0))

    assert [(v.key, v.old, v.new) for v in verdict.violations] == [("risk_flag:RF_BLAME", -3.0, -1.0)]


def test_new_boost_key_measured_from_zero():
    previous = build_weights(-5.0, referral=5.0)
    proposed = build_weights(-5.0, referral=5.0, crew_agency=3.9)

    verdict = StabilityGuard().check(previous, proposed)

    assert [(v.key, v.old, v.new) for v in verdict.violations] == [("source:crew_agency", 0.0, 3.9)]


def test_looser_ratio_accepts_larger_moves():
    guard = StabilityGuard(StabilityConfig(volatility_max_ratio=2.0))

    assert guard.check(build_weights(-5.0), build_weights(-12.0)).passed


def test_reweighting_unstable_feature_is_sudden_shift():
    guard = StabilityGuard(StabilityConfig(volatility_max_ratio=10.0))

    verdict = guard.check(
        build_weights(-3.0, referral=2.0),
        build_weights(-3.0, referral=2.3),
        importance=[build_stat("source:referral", 6, 5), build_stat("source:job_board", 5, 5)],
    )

    assert not verdict.passed
    [violation] = verdict.violations_of("sudden_shift")
    assert (violation.key, violation.old, violation.new) == ("source:referral", 2.0, 2.3)
    assert violation.event_type == SUDDEN_SHIFT_BLOCK_EVENT
    assert verdict.violations_of("volatility") == []


def test_new_key_for_unstable_flag_is_sudden_shift():
    guard = StabilityGuard(StabilityConfig(volatility_max_ratio=10.0))

    verdict = guard.check(
        build_flag_weights(),
        build_flag_weights(RF_BLAME=-2.8),
        importance=[build_stat("risk_flag:RF_BLAME", 5, 5)],
    )

    [violation] = verdict.violations
    assert (violation.kind, violation.old) == ("sudden_shift", -3.0)


def test_unstable_features_need_samples_and_both_directions():
    guard = StabilityGuard()
    stats = [
        build_stat("source:job_board", 6, 5),
        build_stat("source:referral", 9, 1),
        build_stat("industry:maritime", 4, 4),
        build_stat("risk_flag:LATE", 12, 0),
    ]

    unstable = guard.unstable_features(stats)

    assert [feature.feature_name for feature in unstable] == ["source:job_board"]
    assert unstable[0].balance == pytest.approx(0.0909)


def test_check_reports_unstable_features_without_blocking():
    verdict = StabilityGuard().check(
        build_weights(-5.0),
        build_weights(-5.0),
        importance=[build_stat("source:job_board", 5, 5)],
    )

    assert verdict.passed
    assert len(verdict.unstable_features) == 1


@pytest.mark.parametrize(
    "kwargs",
    [{"volatility_max_ratio": 0}, {"on_violation": "ignore"}],
)
def test_config_validation(kwargs):
    with pytest.raises(ValueError):
        StabilityConfig(**kwargs)
