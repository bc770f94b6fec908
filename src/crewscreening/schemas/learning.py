"""Records exchanged between the history store and the learning loop."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .outcome import InterviewOutcome


class LearningSample(BaseModel):
    """One scored interview joined with its prediction and real outcome.

    ``outcome`` is kept as the raw stored payload; it is validated lazily by
    :meth:`actual_outcome` so a malformed row fails on its own.
    """

    interview_id: str
    position_code: str = "__generic__"
    industry_code: str | None = None
    source_channel: str | None = None
    english_score: float | None = None
    video_present: bool = False
    risk_flag_codes: list[str] = Field(default_factory=list)
    answers_meta: dict[str, Any] = Field(default_factory=dict)
    raw_final_score: float | None = None
    calibrated_score: float | None = None
    predicted_outcome_score: float | None = None
    predicted_label: str | None = None
    model_version: int | None = None
    outcome: dict[str, Any] = Field(default_factory=dict)
    scored_at: datetime | None = None

    model_config = ConfigDict(extra="forbid")

    def actual_outcome(self) -> InterviewOutcome:
        payload = dict(self.outcome)
        payload["interview_id"] = self.interview_id
        return InterviewOutcome.model_validate(payload)

    def meta_flag(self, name: str) -> bool:
        return bool(self.answers_meta.get(name, False))


class FeatureImportanceStat(BaseModel):
    feature_name: str
    industry_code: str
    current_weight: float = 0.0
    sample_count: int = 0
    positive_impact_count: int = 0
    negative_impact_count: int = 0

    model_config = ConfigDict(extra="forbid")


__all__ = ["FeatureImportanceStat", "LearningSample"]
