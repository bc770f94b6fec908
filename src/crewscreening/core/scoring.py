"""Raw score computation: weighted competencies, penalties, boosts and gate."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import structlog

from ..schemas import CompetencyTemplate, InterviewSubmission, MetaPenalty, WeightSet
from .adjustments import InterviewSignals, compute_adjustments
from .competency import CompetencyScore, CompetencyScorer, SkillGateResult
from .numeric import clamp, round_half_away
from .policy import DecisionPolicy, DecisionResult, PolicyConfig
from .risk_flags import RiskFlag, RiskFlagDetector

DEFAULT_SKILL_GATES: dict[str, float] = {
    "retail_cashier": 45.0,
    "retail_sales": 50.0,
    "sales_associate": 50.0,
    "customer_service": 45.0,
    "customer_support": 55.0,
    "warehouse_picker": 45.0,
    "forklift_operator": 55.0,
    "software_developer": 65.0,
    "senior_developer": 70.0,
    "driver": 60.0,
    "security": 60.0,
    "healthcare": 60.0,
    "intern": 35.0,
    "trainee": 35.0,
}


@dataclass
class ScoringConfig:
    """Heuristics and thresholds used by :class:`RawScoreEngine`."""

    missing_dimension_threshold: float = 0.25
    sparse_answer_fraction: float = 0.5
    short_answer_chars: int = 30
    english_boost_min_score: float = 70.0
    default_gate_threshold: float = 45.0
    skill_gates: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_SKILL_GATES))
    raw_hire_threshold: float = 75.0
    raw_hold_threshold: float = 60.0
    templates: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class AnswersMeta:
    """Completeness statistics of an interview's answers."""

    dimension_count: int
    missing_dimensions: list[str]
    text_answer_count: int
    short_answer_count: int
    avg_answer_len: float
    sparse_answers: bool
    incomplete_interview: bool
    very_short_answers: bool

    @property
    def missing_fraction(self) -> float:
        if not self.dimension_count:
            return 0.0
        return len(self.missing_dimensions) / self.dimension_count

    def active_penalties(self) -> list[MetaPenalty]:
        active: list[MetaPenalty] = []
        if self.sparse_answers:
            active.append(MetaPenalty.SPARSE_ANSWERS)
        if self.incomplete_interview:
            active.append(MetaPenalty.INCOMPLETE_INTERVIEW)
        if self.very_short_answers:
            active.append(MetaPenalty.VERY_SHORT_ANSWERS)
        return active

    def to_dict(self) -> dict[str, Any]:
        return {
            "dimension_count": self.dimension_count,
            "missing_dimensions": list(self.missing_dimensions),
            "missing_fraction": round(self.missing_fraction, 4),
            "text_answer_count": self.text_answer_count,
            "short_answer_count": self.short_answer_count,
            "avg_answer_len": self.avg_answer_len,
            "sparse_answers": self.sparse_answers,
            "incomplete_interview": self.incomplete_interview,
            "very_short_answers": self.very_short_answers,
        }


@dataclass(slots=True)
class ScoreBreakdown:
    weighted_sum: float
    risk_flag_penalty: float
    meta_penalties: dict[str, float]
    boosts: dict[str, float]
    unclamped: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "weighted_sum": self.weighted_sum,
            "risk_flag_penalty": self.risk_flag_penalty,
            "meta_penalties": dict(self.meta_penalties),
            "boosts": dict(self.boosts),
            "unclamped": self.unclamped,
        }


@dataclass(slots=True)
class ScoredInterview:
    """Output of one scoring pass over a completed interview."""

    interview_id: str
    position_code: str
    template_code: str
    competency_scores: dict[str, CompetencyScore]
    raw_final_score: int
    raw_decision: DecisionResult
    risk_flags: list[RiskFlag]
    skill_gate: SkillGateResult
    answers_meta: AnswersMeta
    breakdown: ScoreBreakdown
    industry_code: str | None = None
    source_channel: str | None = None
    english_score: float | None = None
    video_present: bool = False

    def risk_flag_codes(self) -> list[str]:
        return [flag.code for flag in self.risk_flags]

    def signals(self) -> InterviewSignals:
        return InterviewSignals(
            risk_flag_codes=tuple(self.risk_flag_codes()),
            meta_penalties=tuple(self.answers_meta.active_penalties()),
            industry_code=self.industry_code,
            source_channel=self.source_channel,
            english_score=self.english_score,
            video_present=self.video_present,
        )


class RawScoreEngine:
    """Combines competency scores, risk flags and weight-set adjustments."""

    method = "raw_score"

    def __init__(
        self,
        *,
        scorer: CompetencyScorer | None = None,
        detector: RiskFlagDetector | None = None,
        config: ScoringConfig | None = None,
        default_template: CompetencyTemplate | None = None,
    ) -> None:
        self._scorer = scorer or CompetencyScorer()
        self._detector = detector or RiskFlagDetector()
        self._config = config or ScoringConfig()
        self._default_template = default_template or CompetencyTemplate.default()
        self._templates = {
            position: CompetencyTemplate.model_validate(payload)
            for position, payload in self._config.templates.items()
        }
        self._raw_policy = DecisionPolicy(
            config=PolicyConfig(
                hire_threshold=self._config.raw_hire_threshold,
                hold_threshold=self._config.raw_hold_threshold,
            )
        )
        self._logger = structlog.get_logger(__name__)

    def template_for(self, position_code: str) -> CompetencyTemplate:
        return self._templates.get(position_code, self._default_template)

    def gate_threshold(self, position_code: str) -> float:
        return self._config.skill_gates.get(position_code, self._config.default_gate_threshold)

    def score(
        self,
        submission: InterviewSubmission,
        weights: WeightSet,
        *,
        template: CompetencyTemplate | None = None,
    ) -> ScoredInterview:
        template = template or self.template_for(submission.position_code)
        breakdown_scores = self._scorer.score(submission.ordered_answers(), template)
        if breakdown_scores.unmapped_answers:
            self._logger.info(
                "scoring.unmapped_answers",
                interview_id=submission.interview_id,
                slots=breakdown_scores.unmapped_answers,
                template_code=template.template_code,
            )

        weighted_sum = sum(item.contribution for item in breakdown_scores.scores.values())
        flags = self._detector.detect(submission, weights)
        answers_meta = self._answers_meta(submission, breakdown_scores.missing_codes, template)
        signals = InterviewSignals(
            risk_flag_codes=tuple(flag.code for flag in flags),
            meta_penalties=tuple(answers_meta.active_penalties()),
            industry_code=submission.industry_code,
            source_channel=submission.source_channel,
            english_score=submission.english_score,
            video_present=submission.video_present,
        )
        adjustments = compute_adjustments(
            signals, weights, english_min_score=self._config.english_boost_min_score
        )

        unclamped = weighted_sum + adjustments.total
        raw_final_score = int(round_half_away(clamp(unclamped, 0.0, 100.0)))

        role_score = breakdown_scores.scores[template.role_competence_code].score or 0.0
        threshold = self.gate_threshold(submission.position_code)
        skill_gate = SkillGateResult(
            competency_code=template.role_competence_code,
            role_competence_score=role_score,
            gate_threshold=threshold,
            passed=role_score >= threshold,
        )
        raw_decision = self._raw_policy.decide(float(raw_final_score), skill_gate, flags)

        return ScoredInterview(
            interview_id=submission.interview_id,
            position_code=submission.position_code,
            template_code=template.template_code,
            competency_scores=breakdown_scores.scores,
            raw_final_score=raw_final_score,
            raw_decision=raw_decision,
            risk_flags=flags,
            skill_gate=skill_gate,
            answers_meta=answers_meta,
            breakdown=ScoreBreakdown(
                weighted_sum=round(weighted_sum, 4),
                risk_flag_penalty=adjustments.risk_flag_total,
                meta_penalties=adjustments.meta,
                boosts=adjustments.boosts,
                unclamped=round(unclamped, 4),
            ),
            industry_code=submission.industry_code,
            source_channel=submission.source_channel,
            english_score=submission.english_score,
            video_present=submission.video_present,
        )

    def _answers_meta(
        self,
        submission: InterviewSubmission,
        missing_codes: list[str],
        template: CompetencyTemplate,
    ) -> AnswersMeta:
        lengths = [
            len(answer.answer_text.strip())
            for answer in submission.answers
            if answer.answer_text and answer.answer_text.strip()
        ]
        short = sum(1 for length in lengths if length < self._config.short_answer_chars)
        avg_len = round(sum(lengths) / len(lengths), 2) if lengths else 0.0
        dimension_count = len(template.dimensions)
        missing_fraction = len(missing_codes) / dimension_count if dimension_count else 0.0
        return AnswersMeta(
            dimension_count=dimension_count,
            missing_dimensions=list(missing_codes),
            text_answer_count=len(lengths),
            short_answer_count=short,
            avg_answer_len=avg_len,
            sparse_answers=bool(lengths)
            and short / len(lengths) >= self._config.sparse_answer_fraction,
            incomplete_interview=missing_fraction > self._config.missing_dimension_threshold,
            very_short_answers=0 < avg_len < self._config.short_answer_chars,
        )


__all__ = [
    "AnswersMeta",
    "DEFAULT_SKILL_GATES",
    "RawScoreEngine",
    "ScoreBreakdown",
    "ScoredInterview",
    "ScoringConfig",
]
