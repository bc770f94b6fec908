"""Learning loop: outcome-driven weight tuning behind a stability guard."""

from __future__ import annotations

from .batch import BatchResult, RecordError, ResolvedSample, resolve_samples
from .importance import extract_feature_values, importance_updates
from .lock import LearningRunLock
from .loop import LearningConfig, LearningCycleResult, LearningLoop
from .stability import (
    StabilityConfig,
    StabilityGuard,
    StabilityVerdict,
    UnstableFeature,
    WeightViolation,
)
from .tuning import MaeEvaluation, TuningConfig, TuningProposal, TuningService, WeightDelta

__all__ = [
    "BatchResult",
    "LearningConfig",
    "LearningCycleResult",
    "LearningLoop",
    "LearningRunLock",
    "MaeEvaluation",
    "RecordError",
    "ResolvedSample",
    "StabilityConfig",
    "StabilityGuard",
    "StabilityVerdict",
    "TuningConfig",
    "TuningProposal",
    "TuningService",
    "UnstableFeature",
    "WeightDelta",
    "WeightViolation",
    "extract_feature_values",
    "importance_updates",
    "resolve_samples",
]
