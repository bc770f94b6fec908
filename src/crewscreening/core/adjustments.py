"""Weight-set penalties and boosts applied to a set of interview signals."""

from __future__ import annotations

from dataclasses import dataclass, field

from ..schemas import AssessmentBoost, MetaPenalty, WeightSet

ENGLISH_BOOST_MIN_SCORE = 70.0
UNKNOWN_SOURCE = "unknown"


@dataclass(slots=True, frozen=True)
class InterviewSignals:
    """Weight-relevant facts about a scored interview."""

    risk_flag_codes: tuple[str, ...] = ()
    meta_penalties: tuple[MetaPenalty, ...] = ()
    industry_code: str | None = None
    source_channel: str | None = None
    english_score: float | None = None
    video_present: bool = False


@dataclass(slots=True)
class Adjustments:
    risk_flags: dict[str, float] = field(default_factory=dict)
    meta: dict[str, float] = field(default_factory=dict)
    boosts: dict[str, float] = field(default_factory=dict)

    @property
    def risk_flag_total(self) -> float:
        return sum(self.risk_flags.values())

    @property
    def meta_total(self) -> float:
        return sum(self.meta.values())

    @property
    def boost_total(self) -> float:
        return sum(self.boosts.values())

    @property
    def total(self) -> float:
        return self.risk_flag_total + self.meta_total + self.boost_total


def compute_adjustments(
    signals: InterviewSignals,
    weights: WeightSet,
    *,
    english_min_score: float = ENGLISH_BOOST_MIN_SCORE,
) -> Adjustments:
    adjustments = Adjustments()
    for code in signals.risk_flag_codes:
        adjustments.risk_flags[code] = weights.flag_penalty(code)
    for key in signals.meta_penalties:
        adjustments.meta[key.value] = weights.meta_penalty(key)

    table = weights.boosts
    if signals.industry_code and signals.industry_code in table.industry:
        adjustments.boosts[f"industry:{signals.industry_code}"] = table.industry[
            signals.industry_code
        ]
    source = signals.source_channel or UNKNOWN_SOURCE
    if source in table.source_channel:
        adjustments.boosts[f"source:{source}"] = table.source_channel[source]
    if (
        signals.english_score is not None
        and signals.english_score >= english_min_score
        and AssessmentBoost.ENGLISH_B2_PLUS in table.assessment
    ):
        adjustments.boosts["assessment:english_b2_plus"] = table.assessment[
            AssessmentBoost.ENGLISH_B2_PLUS
        ]
    if signals.video_present and AssessmentBoost.VIDEO_PRESENT in table.assessment:
        adjustments.boosts["assessment:video_present"] = table.assessment[
            AssessmentBoost.VIDEO_PRESENT
        ]
    return adjustments


__all__ = [
    "Adjustments",
    "ENGLISH_BOOST_MIN_SCORE",
    "InterviewSignals",
    "UNKNOWN_SOURCE",
    "compute_adjustments",
]
