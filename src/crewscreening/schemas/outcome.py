"""Real-world hiring outcomes reported by collaborators outside the core."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

GOOD_OUTCOME_THRESHOLD = 50.0


class InterviewOutcome(BaseModel):
    """Ground truth for a screened interview."""

    interview_id: str = Field(min_length=1)
    hired: bool | None = None
    started: bool | None = None
    still_employed_30d: bool | None = None
    still_employed_90d: bool | None = None
    incident_flag: bool = False
    performance_rating: int | None = Field(default=None, ge=1, le=5)
    outcome_score: float | None = Field(default=None, ge=0, le=100)
    outcome_source: str = "manual"
    recorded_at: datetime | None = None

    model_config = ConfigDict(extra="forbid")

    def resolved_score(self) -> float:
        """Explicit outcome score, otherwise derived from the employment ladder."""
        if self.outcome_score is not None:
            return float(self.outcome_score)
        if not self.hired:
            return 0.0
        if not self.started:
            return 10.0
        if not self.still_employed_30d:
            return 30.0
        if not self.still_employed_90d:
            return 50.0
        if self.incident_flag:
            return 70.0
        if self.performance_rating is not None and self.performance_rating >= 4:
            return 100.0
        return 85.0

    def label(self) -> str:
        return "GOOD" if self.resolved_score() >= GOOD_OUTCOME_THRESHOLD else "BAD"


__all__ = ["GOOD_OUTCOME_THRESHOLD", "InterviewOutcome"]
