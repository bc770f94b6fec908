"""Learning history: samples in, learning events and cycle ledger out."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from sqlalchemy import func, select
from sqlalchemy.orm import Session, sessionmaker

from ..schemas import FeatureImportanceStat, LearningSample
from .db import as_utc, utcnow
from .models import (
    FeatureImportanceRow,
    InterviewOutcomeRow,
    LearningCycleRow,
    LearningEventRow,
    ModelPredictionRow,
    ScoredInterviewRow,
    SystemEventRow,
)

_OUTCOME_FIELDS = (
    "hired",
    "started",
    "still_employed_30d",
    "still_employed_90d",
    "incident_flag",
    "performance_rating",
    "outcome_score",
    "outcome_source",
)


@dataclass(slots=True)
class LearningEventRecord:
    interview_id: str
    status: str
    industry_code: str | None = None
    predicted_outcome_score: float | None = None
    actual_outcome_score: float | None = None
    error: float | None = None
    predicted_label: str | None = None
    actual_label: str | None = None
    is_false_positive: bool = False
    is_false_negative: bool = False
    detail: dict[str, Any] | None = None


@dataclass(slots=True)
class LearningCycleRecord:
    id: str
    status: str
    window_days: int
    started_at: datetime
    finished_at: datetime
    industry_code: str | None = None
    samples_processed: int = 0
    errors_count: int = 0
    model_version_before: int | None = None
    model_version_after: int | None = None
    base_mae: float | None = None
    new_mae: float | None = None
    improvement_pct: float | None = None
    weight_deltas: dict[str, Any] | None = None


@dataclass(slots=True)
class ImportanceUpdate:
    feature_name: str
    industry_code: str
    delta: float
    positive: bool


@dataclass(slots=True)
class SystemEventRecord:
    event_type: str
    severity: str = "warning"
    payload: dict[str, Any] = field(default_factory=dict)


class LearningHistoryRepository:
    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock or utcnow

    # ------------------------------------------------------------------ reads
    def load_samples(
        self,
        *,
        since: datetime,
        industry_code: str | None = None,
    ) -> list[LearningSample]:
        """Scored interviews in the window joined with outcomes and latest prediction."""
        latest_prediction = (
            select(
                ModelPredictionRow.interview_id,
                func.max(ModelPredictionRow.id).label("prediction_id"),
            )
            .group_by(ModelPredictionRow.interview_id)
            .subquery()
        )
        query = (
            select(ScoredInterviewRow, InterviewOutcomeRow, ModelPredictionRow)
            .join(
                InterviewOutcomeRow,
                InterviewOutcomeRow.interview_id == ScoredInterviewRow.interview_id,
            )
            .outerjoin(
                latest_prediction,
                latest_prediction.c.interview_id == ScoredInterviewRow.interview_id,
            )
            .outerjoin(
                ModelPredictionRow,
                ModelPredictionRow.id == latest_prediction.c.prediction_id,
            )
            .where(ScoredInterviewRow.scored_at >= since)
            .order_by(ScoredInterviewRow.scored_at, ScoredInterviewRow.interview_id)
        )
        if industry_code:
            query = query.where(ScoredInterviewRow.industry_code == industry_code)

        with self._session_factory() as session:
            rows = session.execute(query).all()
            return [self._sample(scored, outcome, prediction) for scored, outcome, prediction in rows]

    def feature_importance(self, industry_code: str | None = None) -> list[FeatureImportanceStat]:
        query = select(FeatureImportanceRow).order_by(
            FeatureImportanceRow.industry_code, FeatureImportanceRow.feature_name
        )
        if industry_code:
            query = query.where(FeatureImportanceRow.industry_code == industry_code)
        with self._session_factory() as session:
            return [
                FeatureImportanceStat(
                    feature_name=row.feature_name,
                    industry_code=row.industry_code,
                    current_weight=row.current_weight,
                    sample_count=row.sample_count,
                    positive_impact_count=row.positive_impact_count,
                    negative_impact_count=row.negative_impact_count,
                )
                for row in session.scalars(query)
            ]

    def system_event_count(self, event_type: str, *, since: datetime | None = None) -> int:
        query = select(func.count()).select_from(SystemEventRow).where(
            SystemEventRow.event_type == event_type
        )
        if since is not None:
            query = query.where(SystemEventRow.created_at >= since)
        with self._session_factory() as session:
            return int(session.scalar(query) or 0)

    def event_counts(self, *, since: datetime | None = None) -> dict[str, int]:
        query = select(LearningEventRow.status, func.count()).group_by(LearningEventRow.status)
        if since is not None:
            query = query.where(LearningEventRow.created_at >= since)
        with self._session_factory() as session:
            return {status: int(count) for status, count in session.execute(query)}

    def cycle_counts(self, *, since: datetime | None = None) -> dict[str, int]:
        query = select(LearningCycleRow.status, func.count()).group_by(LearningCycleRow.status)
        if since is not None:
            query = query.where(LearningCycleRow.started_at >= since)
        with self._session_factory() as session:
            return {status: int(count) for status, count in session.execute(query)}

    def mean_absolute_error(self, *, since: datetime | None = None) -> float | None:
        query = select(func.avg(func.abs(LearningEventRow.error))).where(
            LearningEventRow.error.is_not(None)
        )
        if since is not None:
            query = query.where(LearningEventRow.created_at >= since)
        with self._session_factory() as session:
            value = session.scalar(query)
            return round(float(value), 2) if value is not None else None

    def recent_cycles(self, limit: int = 10) -> list[dict[str, Any]]:
        query = select(LearningCycleRow).order_by(LearningCycleRow.started_at.desc()).limit(limit)
        with self._session_factory() as session:
            return [
                {
                    "id": row.id,
                    "status": row.status,
                    "window_days": row.window_days,
                    "industry_code": row.industry_code,
                    "samples_processed": row.samples_processed,
                    "errors_count": row.errors_count,
                    "model_version_before": row.model_version_before,
                    "model_version_after": row.model_version_after,
                    "improvement_pct": row.improvement_pct,
                    "started_at": as_utc(row.started_at),
                    "finished_at": as_utc(row.finished_at),
                }
                for row in session.scalars(query)
            ]

    # ----------------------------------------------------------------- writes
    def persist_cycle(
        self,
        cycle: LearningCycleRecord,
        *,
        events: list[LearningEventRecord] | None = None,
        importance: list[ImportanceUpdate] | None = None,
        system_events: list[SystemEventRecord] | None = None,
    ) -> None:
        """Write a cycle with its events and statistics in one transaction."""
        now = self._clock()
        with self._session_factory.begin() as session:
            session.add(
                LearningCycleRow(
                    id=cycle.id,
                    status=cycle.status,
                    window_days=cycle.window_days,
                    industry_code=cycle.industry_code,
                    samples_processed=cycle.samples_processed,
                    errors_count=cycle.errors_count,
                    model_version_before=cycle.model_version_before,
                    model_version_after=cycle.model_version_after,
                    base_mae=cycle.base_mae,
                    new_mae=cycle.new_mae,
                    improvement_pct=cycle.improvement_pct,
                    weight_deltas=cycle.weight_deltas,
                    started_at=cycle.started_at,
                    finished_at=cycle.finished_at,
                )
            )
            session.flush()
            for event in events or []:
                session.add(
                    LearningEventRow(
                        cycle_id=cycle.id,
                        interview_id=event.interview_id,
                        industry_code=event.industry_code,
                        predicted_outcome_score=event.predicted_outcome_score,
                        actual_outcome_score=event.actual_outcome_score,
                        error=event.error,
                        predicted_label=event.predicted_label,
                        actual_label=event.actual_label,
                        is_false_positive=event.is_false_positive,
                        is_false_negative=event.is_false_negative,
                        status=event.status,
                        detail=event.detail,
                        created_at=now,
                    )
                )
            for update in importance or []:
                self._apply_importance(session, update, now)
            for system_event in system_events or []:
                session.add(
                    SystemEventRow(
                        event_type=system_event.event_type,
                        severity=system_event.severity,
                        payload=system_event.payload,
                        created_at=now,
                    )
                )

    # ---------------------------------------------------------------- helpers
    @staticmethod
    def _apply_importance(
        session: Session,
        update: ImportanceUpdate,
        now: datetime,
    ) -> None:
        row = session.scalars(
            select(FeatureImportanceRow).where(
                FeatureImportanceRow.feature_name == update.feature_name,
                FeatureImportanceRow.industry_code == update.industry_code,
            )
        ).first()
        if row is None:
            row = FeatureImportanceRow(
                feature_name=update.feature_name,
                industry_code=update.industry_code,
                current_weight=0.0,
                sample_count=0,
                positive_impact_count=0,
                negative_impact_count=0,
            )
            session.add(row)
        row.current_weight = round(row.current_weight + update.delta, 4)
        row.sample_count += 1
        if update.positive:
            row.positive_impact_count += 1
        else:
            row.negative_impact_count += 1
        row.updated_at = now
        session.flush()

    @staticmethod
    def _sample(
        scored: ScoredInterviewRow,
        outcome: InterviewOutcomeRow,
        prediction: ModelPredictionRow | None,
    ) -> LearningSample:
        risk_flags = scored.risk_flags or []
        codes = [
            flag.get("code") if isinstance(flag, dict) else flag
            for flag in risk_flags
        ]
        return LearningSample(
            interview_id=scored.interview_id,
            position_code=scored.position_code,
            industry_code=scored.industry_code,
            source_channel=scored.source_channel,
            english_score=scored.english_score,
            video_present=scored.video_present,
            risk_flag_codes=[str(code) for code in codes if code],
            answers_meta=scored.answers_meta if isinstance(scored.answers_meta, dict) else {},
            raw_final_score=scored.raw_final_score,
            calibrated_score=scored.calibrated_score,
            predicted_outcome_score=(
                prediction.predicted_outcome_score if prediction is not None else None
            ),
            predicted_label=prediction.predicted_label if prediction is not None else None,
            model_version=prediction.model_version if prediction is not None else None,
            outcome={name: getattr(outcome, name) for name in _OUTCOME_FIELDS},
            scored_at=as_utc(scored.scored_at),
        )


__all__ = [
    "ImportanceUpdate",
    "LearningCycleRecord",
    "LearningEventRecord",
    "LearningHistoryRepository",
    "SystemEventRecord",
]
