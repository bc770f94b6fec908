"""Screening core orchestration."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import structlog

from ..schemas import InterviewSubmission, WeightSnapshot
from .calibration import CalibrationLayer, CalibrationResult
from .policy import DecisionPolicy, DecisionResult
from .prediction import OutcomePrediction, OutcomePredictor
from .scoring import RawScoreEngine, ScoredInterview


@dataclass(slots=True)
class ScreeningOutcome:
    """Complete scoring payload for downstream consumers."""

    interview_id: str
    position_code: str
    scored: ScoredInterview
    calibration: CalibrationResult
    decision: DecisionResult
    prediction: OutcomePrediction
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def final_score(self) -> float:
        return self.calibration.calibrated_score


class ScreeningCore:
    """Runs raw scoring, calibration and the decision policy for one interview.

    Readers pass the weight snapshot explicitly. A missing snapshot falls back to
    the built-in default weights and the fallback is reported in ``metadata``.
    """

    def __init__(
        self,
        *,
        engine: RawScoreEngine,
        calibration: CalibrationLayer,
        policy: DecisionPolicy,
        predictor: OutcomePredictor | None = None,
    ) -> None:
        self._engine = engine
        self._calibration = calibration
        self._policy = policy
        self._predictor = predictor or OutcomePredictor()
        self._logger = structlog.get_logger(__name__)

    @property
    def calibration(self) -> CalibrationLayer:
        return self._calibration

    def evaluate(
        self,
        submission: InterviewSubmission,
        *,
        snapshot: WeightSnapshot | None = None,
    ) -> ScreeningOutcome:
        if snapshot is None:
            snapshot = WeightSnapshot.fallback()
            self._logger.warning(
                "weights.fallback",
                interview_id=submission.interview_id,
                weight_version=snapshot.label,
            )

        scored = self._engine.score(submission, snapshot.weights)
        calibration = self._calibration.calibrate(submission.position_code, scored.raw_final_score)
        decision = self._policy.decide(
            calibration.calibrated_score,
            scored.skill_gate,
            scored.risk_flags,
        )
        prediction = self._predictor.predict(
            scored.signals(),
            snapshot.weights,
            calibrated_score=(
                calibration.calibrated_score
                if calibration.z_score is not None
                else None
            ),
            raw_final_score=scored.raw_final_score,
            model_version=snapshot.version,
        )

        metadata = {
            "weight_version": snapshot.version,
            "weight_version_label": snapshot.label,
            "weights_fallback": snapshot.is_fallback,
            "calibration_version": calibration.calibration_version,
            "policy_version": decision.policy_version,
        }
        return ScreeningOutcome(
            interview_id=submission.interview_id,
            position_code=submission.position_code,
            scored=scored,
            calibration=calibration,
            decision=decision,
            prediction=prediction,
            metadata=metadata,
        )
