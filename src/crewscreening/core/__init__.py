"""Core screening engine components."""

from __future__ import annotations

# NOTE: keep imports explicit for export clarity.
from .adjustments import Adjustments, InterviewSignals, compute_adjustments
from .calibration import (
    CalibrationConfig,
    CalibrationLayer,
    CalibrationResult,
    PopulationSource,
)
from .competency import CompetencyScore, CompetencyScorer, SkillGateResult
from .policy import DecisionPolicy, DecisionResult, PolicyConfig
from .prediction import OutcomePrediction, OutcomePredictor
from .risk_flags import RiskFlag, RiskFlagDetector, Severity
from .scoring import AnswersMeta, RawScoreEngine, ScoredInterview, ScoringConfig
from .screening import ScreeningCore, ScreeningOutcome

__all__ = [
    "Adjustments",
    "AnswersMeta",
    "CalibrationConfig",
    "CalibrationLayer",
    "CalibrationResult",
    "CompetencyScore",
    "CompetencyScorer",
    "DecisionPolicy",
    "DecisionResult",
    "InterviewSignals",
    "OutcomePrediction",
    "OutcomePredictor",
    "PolicyConfig",
    "PopulationSource",
    "RawScoreEngine",
    "RiskFlag",
    "RiskFlagDetector",
    "ScoredInterview",
    "ScoringConfig",
    "ScreeningCore",
    "ScreeningOutcome",
    "Severity",
    "SkillGateResult",
    "compute_adjustments",
]
