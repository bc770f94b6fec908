from __future__ import annotations

from typing import Any, Callable

import pytest
from sqlalchemy.orm import Session, sessionmaker

from crewscreening.storage import create_db_engine, create_session_factory
from crewscreening.storage.db import utcnow
from crewscreening.storage.models import (
    InterviewOutcomeRow,
    ModelPredictionRow,
    ScoredInterviewRow,
)


@pytest.fixture
def session_factory() -> sessionmaker[Session]:
    engine = create_db_engine("sqlite://")
    factory = create_session_factory(engine)
    yield factory
    engine.dispose()


def insert_learning_sample(
    session_factory: sessionmaker[Session],
    interview_id: str,
    *,
    calibrated_score: float | None = 50.0,
    raw_final_score: int = 50,
    outcome_score: float | None = None,
    outcome: dict[str, Any] | None = None,
    source_channel: str | None = None,
    industry_code: str | None = None,
    risk_flag_codes: list[str] | None = None,
    answers_meta: dict[str, Any] | None = None,
    predicted_outcome_score: int | None = None,
    predicted_label: str | None = None,
    scored_at=None,
) -> None:
    """Write a scored interview with its real outcome straight into the tables."""
    with session_factory.begin() as session:
        session.add(
            ScoredInterviewRow(
                interview_id=interview_id,
                position_code="able_seaman",
                industry_code=industry_code,
                source_channel=source_channel,
                english_score=None,
                video_present=False,
                template_code="default_v1",
                competency_scores={},
                raw_final_score=raw_final_score,
                raw_decision="HOLD",
                risk_flags=[{"code": code} for code in risk_flag_codes or []],
                skill_gate={},
                answers_meta=answers_meta or {},
                calibrated_score=calibrated_score,
                calibration={},
                scored_at=scored_at or utcnow(),
            )
        )
        session.flush()
        outcome_values = {"outcome_score": outcome_score}
        outcome_values.update(outcome or {})
        session.add(InterviewOutcomeRow(interview_id=interview_id, **outcome_values))
        if predicted_outcome_score is not None:
            session.add(
                ModelPredictionRow(
                    interview_id=interview_id,
                    model_version=None,
                    predicted_outcome_score=predicted_outcome_score,
                    predicted_label=predicted_label
                    or ("GOOD" if predicted_outcome_score >= 50 else "BAD"),
                    explain={},
                )
            )


@pytest.fixture
def add_sample(session_factory: sessionmaker[Session]) -> Callable[..., None]:
    def _add(interview_id: str, **kwargs: Any) -> None:
        insert_learning_sample(session_factory, interview_id, **kwargs)

    return _add
