from __future__ import annotations

from datetime import datetime

import pytest

from crewscreening.core import CalibrationConfig, CalibrationLayer
from crewscreening.core.calibration import population_stats


class StubPopulation:
    def __init__(self, scores: dict[str, list[float]]):
        self._scores = scores
        self.calls: list[tuple[str, datetime | None, int | None]] = []

    def raw_scores(self, position_code, *, since=None, limit=None):
        self.calls.append((position_code, since, limit))
        return list(self._scores.get(position_code, []))


def build_population(mean: float = 60.0, spread: float = 10.0, count: int = 30) -> list[float]:
    half = count // 2
    return [mean - spread] * half + [mean + spread] * half


def test_calibrates_against_position_mean_and_std():
    layer = CalibrationLayer(population=StubPopulation({"deck_officer": build_population()}))

    result = layer.calibrate("deck_officer", 73)

    assert result.position_mean_score == pytest.approx(60.0)
    assert result.position_std_dev_score == pytest.approx(10.0)
    assert result.z_score == pytest.approx(1.3)
    assert result.calibrated_score == pytest.approx(63.0)
    assert result.calibration_version == "zscore_v1"
    assert result.sample_size == 30


def test_insufficient_population_returns_raw_score_uncalibrated():
    layer = CalibrationLayer(population=StubPopulation({"cook": [70.0] * 29}))

    result = layer.calibrate("cook", 64)

    assert result.z_score is None
    assert result.calibrated_score == 64.0
    assert result.calibration_version == "none"
    assert result.sample_size == 29


def test_calibration_is_monotonic_in_raw_score():
    layer = CalibrationLayer(
        population=StubPopulation({"deck_officer": build_population(55, 15, 40)})
    )

    calibrated = [layer.calibrate("deck_officer", raw).calibrated_score for raw in range(0, 101)]

    assert all(later >= earlier for earlier, later in zip(calibrated, calibrated[1:]))
    assert min(calibrated) >= 0.0
    assert max(calibrated) <= 100.0


def test_std_floor_guards_flat_population():
    layer = CalibrationLayer(population=StubPopulation({"oiler": [50.0] * 30}))

    result = layer.calibrate("oiler", 52)

    assert result.position_std_dev_score == 0.0
    assert result.z_score == pytest.approx(2.0)
    assert result.calibrated_score == pytest.approx(70.0)


def test_baseline_is_cached_until_refresh():
    population = StubPopulation({"deck_officer": build_population()})
    layer = CalibrationLayer(
        population=population,
        config=CalibrationConfig(window_days=None, max_population=50),
    )

    layer.calibrate("deck_officer", 60)
    layer.calibrate("deck_officer", 70)
    assert len(population.calls) == 1
    assert population.calls[0] == ("deck_officer", None, 50)

    layer.refresh()
    assert len(population.calls) == 2


def test_population_stats_divides_by_n():
    mean, std = population_stats([2, 4, 4, 4, 5, 5, 7, 9])

    assert mean == pytest.approx(5.0)
    assert std == pytest.approx(2.0)
    with pytest.raises(ValueError):
        population_stats([])
