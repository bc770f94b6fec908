"""Guards against a single learning batch swinging the model."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Literal

import structlog

from ..core.numeric import mean
from ..schemas import FeatureImportanceStat, WeightSet

VOLATILITY_BLOCK_EVENT = "ml_volatility_block"
SUDDEN_SHIFT_BLOCK_EVENT = "ml_sudden_shift_block"

ViolationKind = Literal["volatility", "sudden_shift"]


@dataclass
class StabilityConfig:
    volatility_max_ratio: float = 0.20
    unstable_balance_threshold: float = 0.30
    unstable_min_samples: int = 10
    on_violation: Literal["block", "review"] = "block"

    def __post_init__(self) -> None:
        if self.volatility_max_ratio <= 0:
            raise ValueError("volatility_max_ratio must be positive")
        if self.on_violation not in ("block", "review"):
            raise ValueError("on_violation must be 'block' or 'review'")


@dataclass(slots=True, frozen=True)
class WeightViolation:
    kind: ViolationKind
    key: str
    old: float
    new: float
    limit: float | None = None

    @property
    def event_type(self) -> str:
        return VOLATILITY_BLOCK_EVENT if self.kind == "volatility" else SUDDEN_SHIFT_BLOCK_EVENT

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "key": self.key,
            "old": self.old,
            "new": self.new,
            "delta": round(self.new - self.old, 4),
            "limit": self.limit,
        }


@dataclass(slots=True, frozen=True)
class UnstableFeature:
    feature_name: str
    industry_code: str
    positive_impact_count: int
    negative_impact_count: int
    balance: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "feature_name": self.feature_name,
            "industry_code": self.industry_code,
            "positive_impact_count": self.positive_impact_count,
            "negative_impact_count": self.negative_impact_count,
            "balance": self.balance,
        }


@dataclass(slots=True)
class StabilityVerdict:
    violations: list[WeightViolation] = field(default_factory=list)
    unstable_features: list[UnstableFeature] = field(default_factory=list)
    average_abs_weight: float = 0.0
    max_allowed_delta: float | None = None

    @property
    def passed(self) -> bool:
        return not self.violations

    def violations_of(self, kind: ViolationKind) -> list[WeightViolation]:
        return [violation for violation in self.violations if violation.kind == kind]

    def to_dict(self) -> dict[str, Any]:
        return {
            "passed": self.passed,
            "average_abs_weight": round(self.average_abs_weight, 4),
            "max_allowed_delta": (
                round(self.max_allowed_delta, 4) if self.max_allowed_delta is not None else None
            ),
            "violations": [violation.to_dict() for violation in self.violations],
            "unstable_features": [feature.to_dict() for feature in self.unstable_features],
        }


class StabilityGuard:
    """Checks a proposed weight set before it may leave the draft state.

    A weight moving further than ``volatility_max_ratio`` times the mean
    absolute prior weight is a volatility violation. Moves are measured from
    the value the prior set applied, so a new flag key starts at the default
    penalty. Features whose observed impact keeps flipping between positive
    and negative are unstable, and re-weighting one of them is a sudden shift.
    """

    def __init__(self, config: StabilityConfig | None = None) -> None:
        self._config = config or StabilityConfig()
        self._logger = structlog.get_logger(__name__)

    @property
    def config(self) -> StabilityConfig:
        return self._config

    def check(
        self,
        previous: WeightSet,
        proposed: WeightSet,
        importance: list[FeatureImportanceStat] | None = None,
    ) -> StabilityVerdict:
        before = previous.flatten()
        after = proposed.flatten()
        verdict = StabilityVerdict(unstable_features=self.unstable_features(importance or []))

        if before:
            verdict.average_abs_weight = mean([abs(value) for value in before.values()])
            verdict.max_allowed_delta = self._config.volatility_max_ratio * verdict.average_abs_weight
            for key in sorted(after):
                old = _applied_value(previous, before, key)
                new = after[key]
                if abs(new - old) > verdict.max_allowed_delta:
                    verdict.violations.append(
                        WeightViolation(
                            kind="volatility",
                            key=key,
                            old=old,
                            new=new,
                            limit=verdict.max_allowed_delta,
                        )
                    )

        unstable = {feature.feature_name for feature in verdict.unstable_features}
        for key in sorted(after):
            if key not in unstable:
                continue
            old = _applied_value(previous, before, key)
            if not math.isclose(old, after[key], abs_tol=1e-9):
                verdict.violations.append(
                    WeightViolation(kind="sudden_shift", key=key, old=old, new=after[key])
                )

        if verdict.passed:
            self._logger.info(
                "stability.passed",
                unstable_features=len(verdict.unstable_features),
            )
        else:
            self._logger.warning(
                "stability.violation",
                volatility=len(verdict.violations_of("volatility")),
                sudden_shift=len(verdict.violations_of("sudden_shift")),
                max_allowed_delta=verdict.max_allowed_delta,
            )
        return verdict

    def unstable_features(self, importance: list[FeatureImportanceStat]) -> list[UnstableFeature]:
        cfg = self._config
        unstable: list[UnstableFeature] = []
        for stat in importance:
            if stat.sample_count < cfg.unstable_min_samples:
                continue
            pos = stat.positive_impact_count
            neg = stat.negative_impact_count
            if pos <= 0 or neg <= 0:
                continue
            balance = abs(pos - neg) / (pos + neg)
            if balance < cfg.unstable_balance_threshold:
                unstable.append(
                    UnstableFeature(
                        feature_name=stat.feature_name,
                        industry_code=stat.industry_code,
                        positive_impact_count=pos,
                        negative_impact_count=neg,
                        balance=round(balance, 4),
                    )
                )
        return unstable


def _applied_value(previous: WeightSet, before: dict[str, float], key: str) -> float:
    """Weight the prior set actually applied for ``key``."""
    if key in before:
        return before[key]
    category, _, name = key.partition(":")
    if category == "risk_flag":
        return previous.flag_penalty(name)
    return 0.0


__all__ = [
    "SUDDEN_SHIFT_BLOCK_EVENT",
    "StabilityConfig",
    "StabilityGuard",
    "StabilityVerdict",
    "UnstableFeature",
    "VOLATILITY_BLOCK_EVENT",
    "WeightViolation",
]
