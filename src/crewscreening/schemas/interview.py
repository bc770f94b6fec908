"""Interview submission and competency template schemas."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator

GENERIC_POSITION = "__generic__"

WEIGHT_SUM_TOLERANCE = 1e-6


class InterviewAnswer(BaseModel):
    """Single structured answer captured for an interview slot."""

    slot: int = Field(ge=1)
    competency_code: str = Field(min_length=1)
    rating: int | None = Field(default=None, ge=1, le=5)
    answer_text: str | None = None
    evidence_flags: list[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")

    @property
    def has_content(self) -> bool:
        return self.rating is not None or bool((self.answer_text or "").strip())


class InterviewSubmission(BaseModel):
    """Completed interview as handed over by the interview front-end."""

    interview_id: str = Field(min_length=1)
    position_code: str = GENERIC_POSITION
    industry_code: str | None = None
    source_channel: str | None = None
    english_score: float | None = Field(default=None, ge=0, le=100)
    video_present: bool = False
    answers: list[InterviewAnswer] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")

    def ordered_answers(self) -> list[InterviewAnswer]:
        return sorted(self.answers, key=lambda answer: answer.slot)

    def combined_text(self) -> str:
        return " ".join(
            answer.answer_text.strip()
            for answer in self.ordered_answers()
            if answer.answer_text and answer.answer_text.strip()
        )


class CompetencyDimension(BaseModel):
    code: str = Field(min_length=1)
    weight: float = Field(gt=0, le=1)

    model_config = ConfigDict(extra="forbid")


class CompetencyTemplate(BaseModel):
    """Weighted set of competency dimensions scored for a position."""

    template_code: str = "default_v1"
    dimensions: list[CompetencyDimension]
    role_competence_code: str = "role_competence"

    model_config = ConfigDict(extra="forbid", frozen=True)

    @model_validator(mode="after")
    def _check_dimensions(self) -> "CompetencyTemplate":
        codes = [dimension.code for dimension in self.dimensions]
        if not codes:
            raise ValueError("template requires at least one dimension")
        if len(set(codes)) != len(codes):
            raise ValueError("dimension codes must be unique")
        total = sum(dimension.weight for dimension in self.dimensions)
        if abs(total - 1.0) > WEIGHT_SUM_TOLERANCE:
            raise ValueError(f"dimension weights must sum to 1.0 (got {total:.6f})")
        if self.role_competence_code not in codes:
            raise ValueError(
                f"role competence dimension {self.role_competence_code!r} is not part of the template"
            )
        return self

    def weight_map(self) -> dict[str, float]:
        return {dimension.code: dimension.weight for dimension in self.dimensions}

    def codes(self) -> list[str]:
        return [dimension.code for dimension in self.dimensions]

    @classmethod
    def default(cls) -> "CompetencyTemplate":
        """Eight-dimension behavioural template used when a position has none."""
        points = {
            "communication": 3,
            "accountability": 4,
            "teamwork": 3,
            "stress_resilience": 3,
            "adaptability": 2,
            "learning_agility": 2,
            "integrity": 4,
            "role_competence": 5,
        }
        total = sum(points.values())
        return cls(
            template_code="default_v1",
            dimensions=[
                CompetencyDimension(code=code, weight=value / total)
                for code, value in points.items()
            ],
            role_competence_code="role_competence",
        )


__all__ = [
    "GENERIC_POSITION",
    "InterviewAnswer",
    "InterviewSubmission",
    "CompetencyDimension",
    "CompetencyTemplate",
]
