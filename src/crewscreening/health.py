"""Stability and health report over the weight store and learning history."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable

import structlog

from .learning.stability import (
    SUDDEN_SHIFT_BLOCK_EVENT,
    VOLATILITY_BLOCK_EVENT,
    StabilityGuard,
    UnstableFeature,
)
from .storage import LearningHistoryRepository, WeightStore
from .storage.db import utcnow


@dataclass(slots=True)
class HealthReport:
    active_version: int | None
    is_frozen: bool
    frozen_at: datetime | None
    frozen_notes: str | None
    volatility_blocks: int
    sudden_shift_blocks: int
    unstable_features: list[UnstableFeature] = field(default_factory=list)
    learning_cycles: dict[str, int] = field(default_factory=dict)
    event_counts: dict[str, int] = field(default_factory=dict)
    mae: float | None = None
    period_days: int = 30

    @property
    def healthy(self) -> bool:
        return self.active_version is not None and not self.is_frozen

    def to_dict(self) -> dict[str, Any]:
        return {
            "active_version": self.active_version,
            "is_frozen": self.is_frozen,
            "frozen_at": self.frozen_at.isoformat() if self.frozen_at else None,
            "frozen_notes": self.frozen_notes,
            "volatility_blocks": self.volatility_blocks,
            "sudden_shift_blocks": self.sudden_shift_blocks,
            "unstable_features": [feature.to_dict() for feature in self.unstable_features],
            "learning_cycles": dict(self.learning_cycles),
            "event_counts": dict(self.event_counts),
            "mae": self.mae,
            "period_days": self.period_days,
        }


def build_health_report(
    store: WeightStore,
    history: LearningHistoryRepository,
    guard: StabilityGuard,
    *,
    period_days: int = 30,
    clock: Callable[[], datetime] | None = None,
) -> HealthReport:
    since = (clock or utcnow)() - timedelta(days=period_days)
    snapshot = store.active_snapshot()
    info = store.get(snapshot.version) if snapshot is not None else None

    report = HealthReport(
        active_version=snapshot.version if snapshot is not None else None,
        is_frozen=bool(info and info.is_frozen),
        frozen_at=info.frozen_at if info else None,
        frozen_notes=info.frozen_notes if info else None,
        volatility_blocks=history.system_event_count(VOLATILITY_BLOCK_EVENT, since=since),
        sudden_shift_blocks=history.system_event_count(SUDDEN_SHIFT_BLOCK_EVENT, since=since),
        unstable_features=guard.unstable_features(history.feature_importance()),
        learning_cycles=history.cycle_counts(since=since),
        event_counts=history.event_counts(since=since),
        mae=history.mean_absolute_error(since=since),
        period_days=period_days,
    )
    structlog.get_logger(__name__).info(
        "health.report",
        active_version=report.active_version,
        is_frozen=report.is_frozen,
        volatility_blocks=report.volatility_blocks,
        sudden_shift_blocks=report.sudden_shift_blocks,
        unstable_features=len(report.unstable_features),
    )
    return report


__all__ = ["HealthReport", "build_health_report"]
