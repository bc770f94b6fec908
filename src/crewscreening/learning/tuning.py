"""Correlation-driven weight tuning evaluated by mean absolute error."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

import structlog

from ..core import OutcomePredictor
from ..core.numeric import clamp, mean, round_half_away
from ..core.adjustments import UNKNOWN_SOURCE
from ..schemas import DEFAULT_WEIGHT_SET, BoostTable, MetaPenalty, WeightSet, is_valid_flag_code
from .batch import BatchResult, ResolvedSample, sample_signals


@dataclass
class TuningConfig:
    """Scale factors and clamp bounds for the correlation heuristics."""

    min_occurrences: int = 5
    flag_scale: float = -5.0
    flag_bounds: tuple[float, float] = (-20.0, -1.0)
    sparse_scale: float = -3.0
    sparse_bounds: tuple[float, float] = (-15.0, -1.0)
    incomplete_scale: float = -5.0
    incomplete_bounds: tuple[float, float] = (-20.0, -1.0)
    source_min_correlation: float = 0.1
    source_scale: float = 10.0
    source_max_boost: float = 5.0
    neutral_mean: float = 50.0
    correlation_digits: int = 3
    weight_digits: int = 1


@dataclass(slots=True, frozen=True)
class SignalImpact:
    key: str
    count: int
    mean_outcome: float
    correlation: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "count": self.count,
            "mean_outcome": round(self.mean_outcome, 1),
            "correlation": self.correlation,
        }


@dataclass(slots=True, frozen=True)
class WeightDelta:
    key: str
    old: float | None
    new: float

    @property
    def delta(self) -> float:
        return round(self.new - (self.old or 0.0), 4)

    def to_dict(self) -> dict[str, Any]:
        return {"old": self.old, "new": self.new, "delta": self.delta}


@dataclass(slots=True, frozen=True)
class MaeEvaluation:
    base_mae: float
    new_mae: float
    improvement_pct: float
    evaluated_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "base_mae": round(self.base_mae, 4),
            "new_mae": round(self.new_mae, 4),
            "improvement_pct": round(self.improvement_pct, 4),
            "evaluated_count": self.evaluated_count,
        }


@dataclass(slots=True)
class TuningProposal:
    base_weights: WeightSet
    weights: WeightSet
    deltas: list[WeightDelta]
    evaluation: MaeEvaluation
    batch: BatchResult
    sample_count: int
    flag_impact: list[SignalImpact] = field(default_factory=list)
    meta_impact: list[SignalImpact] = field(default_factory=list)
    source_impact: list[SignalImpact] = field(default_factory=list)

    @property
    def improved(self) -> bool:
        return self.evaluation.improvement_pct > 0

    def deltas_dict(self) -> dict[str, dict[str, Any]]:
        return {delta.key: delta.to_dict() for delta in self.deltas}

    def to_dict(self) -> dict[str, Any]:
        return {
            "sample_count": self.sample_count,
            "deltas": self.deltas_dict(),
            "evaluation": self.evaluation.to_dict(),
            "flag_impact": [impact.to_dict() for impact in self.flag_impact],
            "meta_impact": [impact.to_dict() for impact in self.meta_impact],
            "source_impact": [impact.to_dict() for impact in self.source_impact],
            "errors": [
                {"record_id": error.record_id, "reason": error.reason}
                for error in self.batch.errors
            ],
        }


class TuningService:
    """Derives penalty and boost adjustments from outcome correlations."""

    method = "correlation_tuning"

    def __init__(
        self,
        *,
        config: TuningConfig | None = None,
        predictor: OutcomePredictor | None = None,
    ) -> None:
        self._config = config or TuningConfig()
        self._predictor = predictor or OutcomePredictor()
        self._logger = structlog.get_logger(__name__)

    def propose(self, resolved: list[ResolvedSample], base_weights: WeightSet) -> TuningProposal:
        flag_impact = self.analyze_risk_flags(resolved)
        meta_impact = self.analyze_meta(resolved)
        source_impact = self.analyze_sources(resolved)
        new_weights = self.tune(base_weights, flag_impact, meta_impact, source_impact)
        evaluation, batch = self.evaluate(resolved, base_weights, new_weights)
        proposal = TuningProposal(
            base_weights=base_weights,
            weights=new_weights,
            deltas=self._diff(base_weights, new_weights),
            evaluation=evaluation,
            batch=batch,
            sample_count=len(resolved),
            flag_impact=flag_impact,
            meta_impact=meta_impact,
            source_impact=source_impact,
        )
        self._logger.info(
            "tuning.proposed",
            sample_count=len(resolved),
            changed_weights=len(proposal.deltas),
            base_mae=evaluation.base_mae,
            new_mae=evaluation.new_mae,
            improvement_pct=evaluation.improvement_pct,
            skipped=batch.errors_count,
        )
        return proposal

    # ---------------------------------------------------------------- analysis
    def analyze_risk_flags(self, resolved: list[ResolvedSample]) -> list[SignalImpact]:
        overall = mean([item.actual_score for item in resolved])
        by_flag: dict[str, list[float]] = {}
        for item in resolved:
            for code in item.sample.risk_flag_codes:
                if is_valid_flag_code(code):
                    by_flag.setdefault(code, []).append(item.actual_score)

        impacts: list[SignalImpact] = []
        for code, scores in by_flag.items():
            if len(scores) < self._config.min_occurrences:
                continue
            flag_mean = mean(scores)
            correlation = (overall - flag_mean) / max(1.0, overall) * -1
            impacts.append(
                SignalImpact(
                    key=code,
                    count=len(scores),
                    mean_outcome=flag_mean,
                    correlation=self._round_corr(correlation),
                )
            )
        return impacts

    def analyze_meta(self, resolved: list[ResolvedSample]) -> list[SignalImpact]:
        sparse: list[float] = []
        incomplete: list[float] = []
        normal: list[float] = []
        for item in resolved:
            is_sparse = item.sample.meta_flag(MetaPenalty.SPARSE_ANSWERS.value)
            is_incomplete = item.sample.meta_flag(MetaPenalty.INCOMPLETE_INTERVIEW.value)
            if is_sparse:
                sparse.append(item.actual_score)
            if is_incomplete:
                incomplete.append(item.actual_score)
            if not is_sparse and not is_incomplete:
                normal.append(item.actual_score)

        normal_mean = mean(normal, default=self._config.neutral_mean)
        impacts: list[SignalImpact] = []
        for key, scores in (
            (MetaPenalty.SPARSE_ANSWERS.value, sparse),
            (MetaPenalty.INCOMPLETE_INTERVIEW.value, incomplete),
        ):
            if len(scores) < self._config.min_occurrences:
                continue
            group_mean = mean(scores)
            correlation = (normal_mean - group_mean) / max(1.0, normal_mean)
            impacts.append(
                SignalImpact(
                    key=key,
                    count=len(scores),
                    mean_outcome=group_mean,
                    correlation=self._round_corr(correlation),
                )
            )
        return impacts

    def analyze_sources(self, resolved: list[ResolvedSample]) -> list[SignalImpact]:
        overall = mean([item.actual_score for item in resolved])
        by_source: dict[str, list[float]] = {}
        for item in resolved:
            source = item.sample.source_channel or UNKNOWN_SOURCE
            by_source.setdefault(source, []).append(item.actual_score)

        impacts: list[SignalImpact] = []
        for source, scores in by_source.items():
            if len(scores) < self._config.min_occurrences:
                continue
            source_mean = mean(scores)
            correlation = (source_mean - overall) / max(1.0, overall)
            impacts.append(
                SignalImpact(
                    key=source,
                    count=len(scores),
                    mean_outcome=source_mean,
                    correlation=self._round_corr(correlation),
                )
            )
        return impacts

    def tune(
        self,
        base_weights: WeightSet,
        flag_impact: list[SignalImpact],
        meta_impact: list[SignalImpact],
        source_impact: list[SignalImpact],
    ) -> WeightSet:
        cfg = self._config
        flag_penalties = dict(base_weights.risk_flag_penalties)
        for impact in flag_impact:
            current = base_weights.flag_penalty(impact.key)
            flag_penalties[impact.key] = self._bounded(
                current + impact.correlation * cfg.flag_scale, cfg.flag_bounds
            )

        meta_penalties = dict(base_weights.meta_penalties)
        meta_rules = {
            MetaPenalty.SPARSE_ANSWERS.value: (cfg.sparse_scale, cfg.sparse_bounds),
            MetaPenalty.INCOMPLETE_INTERVIEW.value: (cfg.incomplete_scale, cfg.incomplete_bounds),
        }
        for impact in meta_impact:
            key = MetaPenalty(impact.key)
            scale, bounds = meta_rules[impact.key]
            current = base_weights.meta_penalties.get(key, DEFAULT_WEIGHT_SET.meta_penalty(key))
            meta_penalties[key] = self._bounded(current + impact.correlation * scale, bounds)

        source_boosts = dict(base_weights.boosts.source_channel)
        for impact in source_impact:
            if impact.correlation > cfg.source_min_correlation:
                source_boosts[impact.key] = round_half_away(
                    min(cfg.source_max_boost, impact.correlation * cfg.source_scale),
                    cfg.weight_digits,
                )

        return WeightSet(
            risk_flag_penalties=flag_penalties,
            meta_penalties=meta_penalties,
            boosts=BoostTable(
                industry=dict(base_weights.boosts.industry),
                source_channel=source_boosts,
                assessment=dict(base_weights.boosts.assessment),
            ),
            thresholds=base_weights.thresholds,
        )

    # -------------------------------------------------------------- evaluation
    def evaluate(
        self,
        resolved: list[ResolvedSample],
        base_weights: WeightSet,
        new_weights: WeightSet,
    ) -> tuple[MaeEvaluation, BatchResult]:
        """MAE of both weight sets over the same records; bad records are skipped."""
        base_errors: list[float] = []
        new_errors: list[float] = []
        batch = BatchResult()
        for item in resolved:
            sample = item.sample
            try:
                signals = sample_signals(sample)
                base_predicted = self._predictor.predict(
                    signals,
                    base_weights,
                    calibrated_score=sample.calibrated_score,
                    raw_final_score=sample.raw_final_score,
                ).predicted_outcome_score
                new_predicted = self._predictor.predict(
                    signals,
                    new_weights,
                    calibrated_score=sample.calibrated_score,
                    raw_final_score=sample.raw_final_score,
                ).predicted_outcome_score
            except (ValueError, TypeError, KeyError) as exc:
                batch.skip(sample.interview_id, f"evaluation failed: {exc}")
                self._logger.warning(
                    "tuning.record_skipped",
                    interview_id=sample.interview_id,
                    error=str(exc),
                )
                continue
            base_errors.append(abs(item.actual_score - base_predicted))
            new_errors.append(abs(item.actual_score - new_predicted))
            batch.processed_count += 1

        if not base_errors:
            return MaeEvaluation(0.0, 0.0, 0.0, 0), batch
        base_mae = mean(base_errors)
        new_mae = mean(new_errors)
        improvement = (base_mae - new_mae) / max(1.0, base_mae) * 100
        return MaeEvaluation(base_mae, new_mae, improvement, len(base_errors)), batch

    # ----------------------------------------------------------------- helpers
    def _round_corr(self, value: float) -> float:
        return round_half_away(value, self._config.correlation_digits)

    def _bounded(self, value: float, bounds: tuple[float, float]) -> float:
        lower, upper = bounds
        return round_half_away(clamp(value, lower, upper), self._config.weight_digits)

    @staticmethod
    def _diff(old: WeightSet, new: WeightSet) -> list[WeightDelta]:
        before = old.flatten()
        after = new.flatten()
        deltas: list[WeightDelta] = []
        for key in sorted(after):
            previous = before.get(key)
            if previous is None or not math.isclose(previous, after[key], abs_tol=1e-9):
                deltas.append(WeightDelta(key=key, old=previous, new=after[key]))
        return deltas


__all__ = [
    "MaeEvaluation",
    "SignalImpact",
    "TuningConfig",
    "TuningProposal",
    "TuningService",
    "WeightDelta",
]
