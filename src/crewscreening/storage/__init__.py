"""Relational persistence for the screening core (SQLAlchemy)."""

from __future__ import annotations

from .db import Base, create_db_engine, create_session_factory, init_db
from .learning import (
    ImportanceUpdate,
    LearningCycleRecord,
    LearningEventRecord,
    LearningHistoryRepository,
    SystemEventRecord,
)
from .repositories import (
    DecisionLedger,
    DecisionRecord,
    OutcomeRepository,
    ScoredInterviewRepository,
)
from .weights import ActivationResult, WeightStatus, WeightStore, WeightVersionInfo

__all__ = [
    "ActivationResult",
    "Base",
    "DecisionLedger",
    "DecisionRecord",
    "ImportanceUpdate",
    "LearningCycleRecord",
    "LearningEventRecord",
    "LearningHistoryRepository",
    "OutcomeRepository",
    "ScoredInterviewRepository",
    "SystemEventRecord",
    "WeightStatus",
    "WeightStore",
    "WeightVersionInfo",
    "create_db_engine",
    "create_session_factory",
    "init_db",
]
