"""Per-dimension competency scoring from structured answers."""

from __future__ import annotations

from dataclasses import dataclass, field

from ..schemas import CompetencyTemplate, InterviewAnswer
from .numeric import round_half_away


@dataclass
class CompetencyConfig:
    """Mapping rules for ratings and free-text answers."""

    rating_scale_max: int = 5
    # (exclusive upper bound in characters, score) evaluated in order.
    text_length_bands: tuple[tuple[int, float], ...] = (
        (30, 35.0),
        (80, 50.0),
        (180, 70.0),
        (350, 85.0),
    )
    long_text_score: float = 95.0


@dataclass(slots=True, frozen=True)
class CompetencyScore:
    """Score for one competency dimension."""

    competency_code: str
    score: float | None
    weight: float
    raw_rating: float | None = None
    answer_count: int = 0
    source: str = "missing"

    @property
    def is_missing(self) -> bool:
        return self.score is None

    @property
    def contribution(self) -> float:
        return (self.score or 0.0) * self.weight


@dataclass(slots=True, frozen=True)
class SkillGateResult:
    """Role-competence gate verdict surfaced to the decision policy."""

    competency_code: str
    role_competence_score: float
    gate_threshold: float
    passed: bool

    @property
    def shortfall(self) -> float:
        return max(0.0, self.gate_threshold - self.role_competence_score)

    def to_dict(self) -> dict:
        return {
            "competency_code": self.competency_code,
            "role_competence_score": self.role_competence_score,
            "gate_threshold": self.gate_threshold,
            "passed": self.passed,
        }


@dataclass(slots=True)
class CompetencyBreakdown:
    scores: dict[str, CompetencyScore] = field(default_factory=dict)
    unmapped_answers: list[int] = field(default_factory=list)

    @property
    def missing_codes(self) -> list[str]:
        return [code for code, item in self.scores.items() if item.is_missing]

    def score_map(self) -> dict[str, float | None]:
        return {code: item.score for code, item in self.scores.items()}


class CompetencyScorer:
    """Converts 1-5 ratings or text proxies into 0-100 dimension scores."""

    method = "competency"

    def __init__(self, *, config: CompetencyConfig | None = None) -> None:
        self._config = config or CompetencyConfig()

    def score(
        self,
        answers: list[InterviewAnswer],
        template: CompetencyTemplate,
    ) -> CompetencyBreakdown:
        weights = template.weight_map()
        grouped: dict[str, list[InterviewAnswer]] = {code: [] for code in weights}
        unmapped: list[int] = []
        for answer in answers:
            if answer.competency_code in grouped:
                grouped[answer.competency_code].append(answer)
            else:
                unmapped.append(answer.slot)

        scores = {
            code: self._score_dimension(code, grouped[code], weights[code])
            for code in weights
        }
        return CompetencyBreakdown(scores=scores, unmapped_answers=unmapped)

    def answer_score(self, answer: InterviewAnswer) -> float | None:
        """Percentage for a single answer; ratings take precedence over text."""
        if answer.rating is not None:
            return answer.rating / self._config.rating_scale_max * 100.0
        text = (answer.answer_text or "").strip()
        if not text:
            return None
        return self.text_length_score(len(text))

    def text_length_score(self, length: int) -> float:
        if length <= 0:
            return 0.0
        for upper, band_score in self._config.text_length_bands:
            if length < upper:
                return band_score
        return self._config.long_text_score

    def _score_dimension(
        self,
        code: str,
        answers: list[InterviewAnswer],
        weight: float,
    ) -> CompetencyScore:
        values: list[float] = []
        ratings: list[int] = []
        for answer in answers:
            value = self.answer_score(answer)
            if value is None:
                continue
            values.append(value)
            if answer.rating is not None:
                ratings.append(answer.rating)

        if not values:
            return CompetencyScore(competency_code=code, score=None, weight=weight)

        raw_rating = sum(ratings) / len(ratings) if ratings else None
        if ratings and len(ratings) == len(values):
            source = "rating"
        elif ratings:
            source = "mixed"
        else:
            source = "text"
        return CompetencyScore(
            competency_code=code,
            score=round_half_away(sum(values) / len(values), 2),
            weight=weight,
            raw_rating=raw_rating,
            answer_count=len(values),
            source=source,
        )


__all__ = [
    "CompetencyConfig",
    "CompetencyScore",
    "CompetencyBreakdown",
    "CompetencyScorer",
    "SkillGateResult",
]
