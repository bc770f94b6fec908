"""Persistence of scored interviews, predictions, outcomes and decisions."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from ..core import DecisionResult, ScreeningOutcome
from ..errors import DecisionAlreadyFinalizedError
from ..schemas import InterviewOutcome
from .db import as_utc, utcnow
from .models import (
    DecisionRow,
    InterviewOutcomeRow,
    ModelPredictionRow,
    ScoredInterviewRow,
)


def serialize_competencies(outcome: ScreeningOutcome) -> dict[str, Any]:
    return {
        code: {
            "score": item.score,
            "weight": item.weight,
            "raw_rating": item.raw_rating,
            "answer_count": item.answer_count,
            "source": item.source,
        }
        for code, item in outcome.scored.competency_scores.items()
    }


class ScoredInterviewRepository:
    """Scored interviews plus the raw-score population used for calibration."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock or utcnow
        self._logger = structlog.get_logger(__name__)

    def save(self, outcome: ScreeningOutcome) -> None:
        """Insert or recompute a scoring pass; finalized interviews are immutable."""
        scored = outcome.scored
        calibration = outcome.calibration
        values = {
            "position_code": scored.position_code,
            "industry_code": scored.industry_code,
            "source_channel": scored.source_channel,
            "english_score": scored.english_score,
            "video_present": scored.video_present,
            "template_code": scored.template_code,
            "competency_scores": serialize_competencies(outcome),
            "raw_final_score": scored.raw_final_score,
            "raw_decision": scored.raw_decision.decision,
            "risk_flags": [flag.to_dict() for flag in scored.risk_flags],
            "skill_gate": scored.skill_gate.to_dict(),
            "answers_meta": scored.answers_meta.to_dict(),
            "calibrated_score": (
                calibration.calibrated_score if calibration.z_score is not None else None
            ),
            "calibration": calibration.to_dict(),
            "weight_version": outcome.metadata.get("weight_version"),
            "weights_fallback": bool(outcome.metadata.get("weights_fallback")),
            "scored_at": self._clock(),
        }
        with self._session_factory.begin() as session:
            row = session.get(ScoredInterviewRow, outcome.interview_id)
            if row is not None and row.is_finalized:
                raise DecisionAlreadyFinalizedError(outcome.interview_id)
            if row is None:
                session.add(ScoredInterviewRow(interview_id=outcome.interview_id, **values))
            else:
                for key, value in values.items():
                    setattr(row, key, value)
            prediction = outcome.prediction
            session.add(
                ModelPredictionRow(
                    interview_id=outcome.interview_id,
                    model_version=outcome.metadata.get("weight_version"),
                    predicted_outcome_score=prediction.predicted_outcome_score,
                    predicted_label=prediction.predicted_label,
                    explain=prediction.explain,
                    created_at=self._clock(),
                )
            )
        self._logger.debug("interview.saved", interview_id=outcome.interview_id)

    def finalize(self, interview_id: str) -> bool:
        with self._session_factory.begin() as session:
            row = session.get(ScoredInterviewRow, interview_id)
            if row is None:
                return False
            if not row.is_finalized:
                row.is_finalized = True
                row.finalized_at = self._clock()
        return True

    def is_finalized(self, interview_id: str) -> bool:
        with self._session_factory() as session:
            row = session.get(ScoredInterviewRow, interview_id)
            return bool(row and row.is_finalized)

    def get(self, interview_id: str) -> dict[str, Any] | None:
        with self._session_factory() as session:
            row = session.get(ScoredInterviewRow, interview_id)
            if row is None:
                return None
            return {
                "interview_id": row.interview_id,
                "position_code": row.position_code,
                "raw_final_score": row.raw_final_score,
                "raw_decision": row.raw_decision,
                "calibrated_score": row.calibrated_score,
                "risk_flags": row.risk_flags,
                "skill_gate": row.skill_gate,
                "weight_version": row.weight_version,
                "is_finalized": row.is_finalized,
                "scored_at": as_utc(row.scored_at),
            }

    def raw_scores(
        self,
        position_code: str,
        *,
        since: datetime | None = None,
        limit: int | None = None,
    ) -> list[float]:
        query = (
            select(ScoredInterviewRow.raw_final_score)
            .where(ScoredInterviewRow.position_code == position_code)
            .order_by(ScoredInterviewRow.scored_at.desc())
        )
        if since is not None:
            query = query.where(ScoredInterviewRow.scored_at >= since)
        if limit:
            query = query.limit(limit)
        with self._session_factory() as session:
            return [float(value) for value in session.scalars(query)]


class OutcomeRepository:
    """Ground-truth outcomes written by external collaborators."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock or utcnow

    def record(self, outcome: InterviewOutcome) -> None:
        values = outcome.model_dump(exclude={"interview_id", "recorded_at"})
        values["recorded_at"] = outcome.recorded_at or self._clock()
        with self._session_factory.begin() as session:
            row = session.get(InterviewOutcomeRow, outcome.interview_id)
            if row is None:
                session.add(InterviewOutcomeRow(interview_id=outcome.interview_id, **values))
            else:
                for key, value in values.items():
                    setattr(row, key, value)

    def get(self, interview_id: str) -> InterviewOutcome | None:
        with self._session_factory() as session:
            row = session.get(InterviewOutcomeRow, interview_id)
            if row is None:
                return None
            return InterviewOutcome(
                interview_id=row.interview_id,
                hired=row.hired,
                started=row.started,
                still_employed_30d=row.still_employed_30d,
                still_employed_90d=row.still_employed_90d,
                incident_flag=row.incident_flag,
                performance_rating=row.performance_rating,
                outcome_score=row.outcome_score,
                outcome_source=row.outcome_source,
                recorded_at=as_utc(row.recorded_at),
            )


@dataclass(slots=True, frozen=True)
class DecisionRecord:
    id: int
    interview_id: str
    final_score: float
    decision: str
    policy_code: str
    policy_version: str
    reason: str
    supersedes_id: int | None
    change_reason: str | None
    actor: str
    created_at: datetime


class DecisionLedger:
    """Append-only decisions: one initial record, then explicit re-decisions."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock or utcnow
        self._logger = structlog.get_logger(__name__)

    def record(
        self,
        interview_id: str,
        final_score: float,
        decision: DecisionResult,
        *,
        actor: str = "system",
    ) -> int:
        with self._session_factory.begin() as session:
            if self._latest(session, interview_id) is not None:
                raise DecisionAlreadyFinalizedError(interview_id)
            row = self._row(interview_id, final_score, decision, actor=actor)
            session.add(row)
            session.flush()
            decision_id = row.id
        self._logger.info(
            "decision.recorded",
            interview_id=interview_id,
            decision=decision.decision,
            policy_code=decision.policy_code,
        )
        return decision_id

    def redecide(
        self,
        interview_id: str,
        final_score: float,
        decision: DecisionResult,
        *,
        change_reason: str,
        actor: str = "system",
    ) -> int:
        """Append a correction that supersedes the current decision."""
        if not change_reason.strip():
            raise ValueError("change_reason is required for a re-decision")
        with self._session_factory.begin() as session:
            previous = self._latest(session, interview_id)
            if previous is None:
                raise LookupError(f"No decision recorded for interview {interview_id!r}")
            row = self._row(interview_id, final_score, decision, actor=actor)
            row.supersedes_id = previous.id
            row.change_reason = change_reason
            session.add(row)
            session.flush()
            decision_id = row.id
        self._logger.info(
            "decision.redecided",
            interview_id=interview_id,
            supersedes_id=previous.id,
            decision=decision.decision,
            actor=actor,
        )
        return decision_id

    def current(self, interview_id: str) -> DecisionRecord | None:
        with self._session_factory() as session:
            row = self._latest(session, interview_id)
            return self._record(row) if row else None

    def history(self, interview_id: str) -> list[DecisionRecord]:
        with self._session_factory() as session:
            rows = session.scalars(
                select(DecisionRow)
                .where(DecisionRow.interview_id == interview_id)
                .order_by(DecisionRow.id)
            ).all()
            return [self._record(row) for row in rows]

    @staticmethod
    def _latest(session: Session, interview_id: str) -> DecisionRow | None:
        return session.scalars(
            select(DecisionRow)
            .where(DecisionRow.interview_id == interview_id)
            .order_by(DecisionRow.id.desc())
            .limit(1)
        ).first()

    def _row(
        self,
        interview_id: str,
        final_score: float,
        decision: DecisionResult,
        *,
        actor: str,
    ) -> DecisionRow:
        return DecisionRow(
            interview_id=interview_id,
            final_score=final_score,
            decision=decision.decision,
            policy_code=decision.policy_code,
            policy_version=decision.policy_version,
            reason=decision.reason,
            is_final=True,
            actor=actor,
            created_at=self._clock(),
        )

    @staticmethod
    def _record(row: DecisionRow) -> DecisionRecord:
        return DecisionRecord(
            id=row.id,
            interview_id=row.interview_id,
            final_score=row.final_score,
            decision=row.decision,
            policy_code=row.policy_code,
            policy_version=row.policy_version,
            reason=row.reason,
            supersedes_id=row.supersedes_id,
            change_reason=row.change_reason,
            actor=row.actor,
            created_at=as_utc(row.created_at),
        )


__all__ = [
    "DecisionLedger",
    "DecisionRecord",
    "OutcomeRepository",
    "ScoredInterviewRepository",
    "serialize_competencies",
]
