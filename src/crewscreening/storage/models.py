"""ORM tables for scored interviews, decisions, weights and learning history."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from .db import Base, utcnow


# ================ Scoring ================ #
class ScoredInterviewRow(Base):
    """Latest scoring pass of an interview; frozen once finalized."""

    __tablename__ = "scored_interviews"

    interview_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    position_code: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    industry_code: Mapped[str | None] = mapped_column(String(64), index=True)
    source_channel: Mapped[str | None] = mapped_column(String(64))
    english_score: Mapped[float | None] = mapped_column(Float)
    video_present: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    template_code: Mapped[str] = mapped_column(String(64), nullable=False)

    competency_scores: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    raw_final_score: Mapped[int] = mapped_column(Integer, nullable=False)
    raw_decision: Mapped[str] = mapped_column(String(16), nullable=False)
    risk_flags: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    skill_gate: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    answers_meta: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    calibrated_score: Mapped[float | None] = mapped_column(Float)
    calibration: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    weight_version: Mapped[int | None] = mapped_column(Integer)
    weights_fallback: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    is_finalized: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    finalized_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    scored_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False, index=True
    )


class ModelPredictionRow(Base):
    __tablename__ = "model_predictions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    interview_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("scored_interviews.interview_id"), nullable=False, index=True
    )
    model_version: Mapped[int | None] = mapped_column(Integer)
    predicted_outcome_score: Mapped[int] = mapped_column(Integer, nullable=False)
    predicted_label: Mapped[str] = mapped_column(String(8), nullable=False)
    explain: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )


class DecisionRow(Base):
    """Append-only decision ledger; corrections reference the row they supersede."""

    __tablename__ = "decisions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    interview_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    final_score: Mapped[float] = mapped_column(Float, nullable=False)
    decision: Mapped[str] = mapped_column(String(16), nullable=False)
    policy_code: Mapped[str] = mapped_column(String(64), nullable=False)
    policy_version: Mapped[str] = mapped_column(String(32), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    is_final: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    supersedes_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("decisions.id"))
    change_reason: Mapped[str | None] = mapped_column(Text)
    actor: Mapped[str] = mapped_column(String(64), default="system", nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )


class InterviewOutcomeRow(Base):
    __tablename__ = "interview_outcomes"

    interview_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    hired: Mapped[bool | None] = mapped_column(Boolean)
    started: Mapped[bool | None] = mapped_column(Boolean)
    still_employed_30d: Mapped[bool | None] = mapped_column(Boolean)
    still_employed_90d: Mapped[bool | None] = mapped_column(Boolean)
    incident_flag: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    performance_rating: Mapped[int | None] = mapped_column(Integer)
    outcome_score: Mapped[float | None] = mapped_column(Float)
    outcome_source: Mapped[str] = mapped_column(String(32), default="manual", nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )


# ================ Weights ================ #
class ModelWeightRow(Base):
    __tablename__ = "model_weights"
    __table_args__ = (
        # At most one row may carry is_active = true.
        Index(
            "uq_model_weights_single_active",
            "is_active",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
    )

    model_version: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    weights_json: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_frozen: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    frozen_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    frozen_notes: Mapped[str | None] = mapped_column(Text)
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    activated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class WeightAuditRow(Base):
    """Immutable trail of weight lifecycle actions."""

    __tablename__ = "weight_audit"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    model_version: Mapped[int | None] = mapped_column(Integer, index=True)
    action: Mapped[str] = mapped_column(String(32), nullable=False)
    outcome: Mapped[str] = mapped_column(String(32), default="ok", nullable=False)
    actor: Mapped[str] = mapped_column(String(64), default="system", nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    detail: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )


# ================ Learning ================ #
class LearningCycleRow(Base):
    __tablename__ = "learning_cycles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    window_days: Mapped[int] = mapped_column(Integer, nullable=False)
    industry_code: Mapped[str | None] = mapped_column(String(64))
    samples_processed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    errors_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    model_version_before: Mapped[int | None] = mapped_column(Integer)
    model_version_after: Mapped[int | None] = mapped_column(Integer)
    base_mae: Mapped[float | None] = mapped_column(Float)
    new_mae: Mapped[float | None] = mapped_column(Float)
    improvement_pct: Mapped[float | None] = mapped_column(Float)
    weight_deltas: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), index=True)


class LearningEventRow(Base):
    """Append-only audit of every outcome processed by a learning cycle."""

    __tablename__ = "learning_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    cycle_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("learning_cycles.id"), index=True
    )
    interview_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    industry_code: Mapped[str | None] = mapped_column(String(64))
    predicted_outcome_score: Mapped[float | None] = mapped_column(Float)
    actual_outcome_score: Mapped[float | None] = mapped_column(Float)
    error: Mapped[float | None] = mapped_column(Float)
    predicted_label: Mapped[str | None] = mapped_column(String(8))
    actual_label: Mapped[str | None] = mapped_column(String(8))
    is_false_positive: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_false_negative: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    detail: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False, index=True
    )


class FeatureImportanceRow(Base):
    __tablename__ = "model_feature_importance"
    __table_args__ = (UniqueConstraint("feature_name", "industry_code", name="uq_feature_industry"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    feature_name: Mapped[str] = mapped_column(String(128), nullable=False)
    industry_code: Mapped[str] = mapped_column(String(64), nullable=False)
    current_weight: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    sample_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    positive_impact_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    negative_impact_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )


class SystemEventRow(Base):
    __tablename__ = "system_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    severity: Mapped[str] = mapped_column(String(16), default="warning", nullable=False)
    payload: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False, index=True
    )


class LearningLockRow(Base):
    __tablename__ = "learning_locks"

    name: Mapped[str] = mapped_column(String(64), primary_key=True)
    owner: Mapped[str] = mapped_column(String(128), nullable=False)
    acquired_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


__all__ = [
    "DecisionRow",
    "FeatureImportanceRow",
    "InterviewOutcomeRow",
    "LearningCycleRow",
    "LearningEventRow",
    "LearningLockRow",
    "ModelPredictionRow",
    "ModelWeightRow",
    "ScoredInterviewRow",
    "SystemEventRow",
    "WeightAuditRow",
]
