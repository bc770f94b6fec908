"""Pydantic schema definitions for interview, weight and outcome data."""

from __future__ import annotations

from .interview import (
    GENERIC_POSITION,
    CompetencyDimension,
    CompetencyTemplate,
    InterviewAnswer,
    InterviewSubmission,
)
from .learning import FeatureImportanceStat, LearningSample
from .outcome import GOOD_OUTCOME_THRESHOLD, InterviewOutcome
from .weights import (
    DEFAULT_FLAG_KEY,
    DEFAULT_WEIGHT_SET,
    AssessmentBoost,
    BoostTable,
    MetaPenalty,
    WeightSet,
    WeightSnapshot,
    WeightThresholds,
    is_valid_flag_code,
    parse_weight_set,
)

__all__ = [
    "GENERIC_POSITION",
    "GOOD_OUTCOME_THRESHOLD",
    "DEFAULT_FLAG_KEY",
    "DEFAULT_WEIGHT_SET",
    "AssessmentBoost",
    "BoostTable",
    "CompetencyDimension",
    "CompetencyTemplate",
    "FeatureImportanceStat",
    "InterviewAnswer",
    "InterviewOutcome",
    "InterviewSubmission",
    "LearningSample",
    "MetaPenalty",
    "WeightSet",
    "WeightSnapshot",
    "WeightThresholds",
    "is_valid_flag_code",
    "parse_weight_set",
]
