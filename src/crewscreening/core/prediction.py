"""Outcome-score prediction from a calibrated score and the active weights."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Literal

from ..schemas import WeightSet
from .adjustments import ENGLISH_BOOST_MIN_SCORE, InterviewSignals, compute_adjustments
from .numeric import clamp, round_half_away

PredictionLabel = Literal["GOOD", "BAD"]

NEUTRAL_BASE_SCORE = 50.0


@dataclass(slots=True, frozen=True)
class OutcomePrediction:
    predicted_outcome_score: int
    predicted_label: PredictionLabel
    explain: dict[str, Any] = field(default_factory=dict)


class OutcomePredictor:
    """Linear outcome model: base + penalties + boosts, clamped to [0, 100]."""

    method = "outcome_v0"

    def __init__(self, *, english_min_score: float = ENGLISH_BOOST_MIN_SCORE) -> None:
        self._english_min_score = english_min_score

    def predict(
        self,
        signals: InterviewSignals,
        weights: WeightSet,
        *,
        calibrated_score: float | None = None,
        raw_final_score: float | None = None,
        model_version: int | None = None,
    ) -> OutcomePrediction:
        if calibrated_score is not None:
            base = float(calibrated_score)
        elif raw_final_score is not None:
            base = float(raw_final_score)
        else:
            base = NEUTRAL_BASE_SCORE
        if not math.isfinite(base):
            raise ValueError(f"base score must be finite, got {base!r}")

        adjustments = compute_adjustments(
            signals, weights, english_min_score=self._english_min_score
        )
        final = clamp(base + adjustments.total, 0.0, 100.0)
        label: PredictionLabel = "GOOD" if final >= weights.thresholds.good else "BAD"
        explain = {
            "model_version": model_version,
            "base_score": base,
            "risk_flags": dict(adjustments.risk_flags),
            "total_risk_penalty": adjustments.risk_flag_total,
            "meta_penalties": dict(adjustments.meta),
            "total_meta_penalty": adjustments.meta_total,
            "boosts": dict(adjustments.boosts),
            "total_boost": adjustments.boost_total,
            "final_score": final,
        }
        return OutcomePrediction(
            predicted_outcome_score=int(round_half_away(final)),
            predicted_label=label,
            explain=explain,
        )


__all__ = ["NEUTRAL_BASE_SCORE", "OutcomePrediction", "OutcomePredictor", "PredictionLabel"]
