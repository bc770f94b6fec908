"""Position-pool z-score calibration of raw scores."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Iterable, Protocol

import pendulum
import structlog

from .numeric import clamp

CALIBRATION_VERSION = "zscore_v1"
UNCALIBRATED_VERSION = "none"


class PopulationSource(Protocol):
    """Historical raw scores of one position pool."""

    def raw_scores(
        self,
        position_code: str,
        *,
        since: datetime | None = None,
        limit: int | None = None,
    ) -> list[float]:
        ...


@dataclass
class CalibrationConfig:
    min_sample_size: int = 30
    window_days: int | None = 90
    max_population: int | None = 200
    std_floor: float = 1.0
    target_mean: float = 50.0
    target_scale: float = 10.0


@dataclass(slots=True, frozen=True)
class PositionBaseline:
    position_code: str
    sample_size: int
    mean: float | None
    std_dev: float | None
    computed_at: datetime

    @property
    def usable(self) -> bool:
        return self.mean is not None and self.std_dev is not None


@dataclass(slots=True, frozen=True)
class CalibrationResult:
    position_code: str
    raw_final_score: float
    position_mean_score: float | None
    position_std_dev_score: float | None
    z_score: float | None
    calibrated_score: float
    calibration_version: str
    sample_size: int

    def to_dict(self) -> dict:
        return {
            "position_code": self.position_code,
            "raw_final_score": self.raw_final_score,
            "position_mean_score": self.position_mean_score,
            "position_std_dev_score": self.position_std_dev_score,
            "z_score": self.z_score,
            "calibrated_score": self.calibrated_score,
            "calibration_version": self.calibration_version,
            "sample_size": self.sample_size,
        }


def population_stats(scores: Iterable[float]) -> tuple[float, float]:
    """Population mean and standard deviation (divides by N)."""
    values = [float(value) for value in scores]
    if not values:
        raise ValueError("population must not be empty")
    mean = sum(values) / len(values)
    variance = sum((value - mean) ** 2 for value in values) / len(values)
    return mean, math.sqrt(variance)


class CalibrationLayer:
    """Normalizes raw scores within a position pool.

    Baselines are computed in batch and cached; ``calibrate`` never queries the
    population itself once a baseline exists. Call :meth:`refresh` after a batch
    of new scored interviews to pick up population changes.
    """

    def __init__(
        self,
        *,
        population: PopulationSource,
        config: CalibrationConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._population = population
        self._config = config or CalibrationConfig()
        self._clock = clock or (lambda: pendulum.now("UTC"))
        self._baselines: dict[str, PositionBaseline] = {}
        self._logger = structlog.get_logger(__name__)

    def baseline(self, position_code: str) -> PositionBaseline:
        cached = self._baselines.get(position_code)
        if cached is None:
            cached = self._compute_baseline(position_code)
            self._baselines[position_code] = cached
        return cached

    def refresh(self, position_codes: Iterable[str] | None = None) -> dict[str, PositionBaseline]:
        """Recompute baselines for the given positions (all cached ones by default)."""
        codes = list(position_codes) if position_codes is not None else list(self._baselines)
        for code in codes:
            self._baselines[code] = self._compute_baseline(code)
        self._logger.info("calibration.refreshed", positions=codes)
        return {code: self._baselines[code] for code in codes}

    def calibrate(self, position_code: str, raw_final_score: float) -> CalibrationResult:
        baseline = self.baseline(position_code)
        if not baseline.usable:
            return CalibrationResult(
                position_code=position_code,
                raw_final_score=float(raw_final_score),
                position_mean_score=None,
                position_std_dev_score=None,
                z_score=None,
                calibrated_score=float(raw_final_score),
                calibration_version=UNCALIBRATED_VERSION,
                sample_size=baseline.sample_size,
            )

        std = max(baseline.std_dev, self._config.std_floor)
        z_score = (float(raw_final_score) - baseline.mean) / std
        calibrated = clamp(
            self._config.target_mean + z_score * self._config.target_scale, 0.0, 100.0
        )
        return CalibrationResult(
            position_code=position_code,
            raw_final_score=float(raw_final_score),
            position_mean_score=round(baseline.mean, 4),
            position_std_dev_score=round(baseline.std_dev, 4),
            z_score=round(z_score, 4),
            calibrated_score=round(calibrated, 2),
            calibration_version=CALIBRATION_VERSION,
            sample_size=baseline.sample_size,
        )

    def _compute_baseline(self, position_code: str) -> PositionBaseline:
        now = self._clock()
        since = None
        if self._config.window_days:
            since = now - timedelta(days=self._config.window_days)
        scores = self._population.raw_scores(
            position_code, since=since, limit=self._config.max_population
        )
        if len(scores) < self._config.min_sample_size:
            self._logger.info(
                "calibration.insufficient_population",
                position_code=position_code,
                sample_size=len(scores),
                min_sample_size=self._config.min_sample_size,
            )
            return PositionBaseline(
                position_code=position_code,
                sample_size=len(scores),
                mean=None,
                std_dev=None,
                computed_at=now,
            )
        mean, std_dev = population_stats(scores)
        return PositionBaseline(
            position_code=position_code,
            sample_size=len(scores),
            mean=mean,
            std_dev=std_dev,
            computed_at=now,
        )


__all__ = [
    "CALIBRATION_VERSION",
    "UNCALIBRATED_VERSION",
    "CalibrationConfig",
    "CalibrationLayer",
    "CalibrationResult",
    "PopulationSource",
    "PositionBaseline",
    "population_stats",
]
