"""Per-feature impact bookkeeping fed by prediction errors."""

from __future__ import annotations

from ..core.numeric import clamp, round_half_away
from ..schemas import LearningSample, MetaPenalty
from ..storage import ImportanceUpdate

VERY_SHORT_AVG_CHARS = 30.0


def extract_feature_values(sample: LearningSample) -> dict[str, float]:
    """Binary indicators for every signal a sample carried, plus its base score."""
    features: dict[str, float] = {}
    for code in sample.risk_flag_codes:
        features[f"risk_flag:{code}"] = 1.0

    for key in (MetaPenalty.SPARSE_ANSWERS, MetaPenalty.INCOMPLETE_INTERVIEW):
        if sample.meta_flag(key.value):
            features[f"meta:{key.value}"] = 1.0
    avg_len = sample.answers_meta.get("avg_answer_len")
    if isinstance(avg_len, (int, float)) and 0 < avg_len < VERY_SHORT_AVG_CHARS:
        features[f"meta:{MetaPenalty.VERY_SHORT_ANSWERS.value}"] = 1.0

    if sample.source_channel:
        features[f"source:{sample.source_channel}"] = 1.0
    if sample.industry_code:
        features[f"industry:{sample.industry_code}"] = 1.0

    base = sample.calibrated_score if sample.calibrated_score is not None else 50.0
    features["base:calibrated_score"] = base / 100.0
    return features


def importance_updates(
    features: dict[str, float],
    error: float,
    industry_code: str,
    *,
    learning_rate: float = 0.05,
    max_delta: float = 2.0,
    min_delta: float = 0.01,
) -> list[ImportanceUpdate]:
    """Gradient-style nudges: ``learning_rate * error/100 * value``, bounded."""
    updates: list[ImportanceUpdate] = []
    for name, value in features.items():
        delta = clamp(learning_rate * (error / 100.0) * value, -max_delta, max_delta)
        if abs(delta) <= min_delta:
            continue
        updates.append(
            ImportanceUpdate(
                feature_name=name,
                industry_code=industry_code,
                delta=round_half_away(delta, 4),
                positive=error > 0,
            )
        )
    return updates


__all__ = ["extract_feature_values", "importance_updates"]
