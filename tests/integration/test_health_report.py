from __future__ import annotations

from crewscreening.health import build_health_report
from crewscreening.learning import (
    LearningLoop,
    LearningRunLock,
    StabilityGuard,
    TuningService,
)
from crewscreening.schemas import FeatureImportanceStat
from crewscreening.storage import LearningHistoryRepository, WeightStore


class StubHistory:
    """History double returning canned aggregates."""

    def __init__(self, importance: list[FeatureImportanceStat]) -> None:
        self._importance = importance

    def system_event_count(self, event_type: str, *, since=None) -> int:
        return 0

    def feature_importance(self, industry_code=None) -> list[FeatureImportanceStat]:
        return self._importance

    def cycle_counts(self, *, since=None) -> dict[str, int]:
        return {}

    def event_counts(self, *, since=None) -> dict[str, int]:
        return {}

    def mean_absolute_error(self, *, since=None):
        return None


def test_empty_store_is_unhealthy(session_factory) -> None:
    report = build_health_report(
        WeightStore(session_factory),
        LearningHistoryRepository(session_factory),
        StabilityGuard(),
    )

    assert report.active_version is None
    assert not report.healthy
    assert report.to_dict()["learning_cycles"] == {}


def test_report_counts_blocks_and_cycles(session_factory, add_sample) -> None:
    for index in range(30):
        add_sample(f"J-{index}", outcome_score=50.0, source_channel="job_board")
    for index in range(10):
        add_sample(f"C-{index}", outcome_score=80.0, source_channel="crew_agency")
    store = WeightStore(session_factory)
    store.seed_default()
    history = LearningHistoryRepository(session_factory)
    guard = StabilityGuard()
    LearningLoop(
        store=store,
        history=history,
        tuning=TuningService(),
        guard=guard,
        lock=LearningRunLock(session_factory),
    ).run_learning_cycle()

    report = build_health_report(store, history, guard, period_days=7)

    assert report.healthy
    assert report.active_version == 1
    assert report.volatility_blocks == 1
    assert report.sudden_shift_blocks == 0
    assert report.learning_cycles == {"blocked": 1}
    assert report.event_counts == {"processed_blocked": 40}
    assert report.mae == 7.5
    assert report.to_dict()["period_days"] == 7


def test_frozen_active_version_is_reported(session_factory) -> None:
    store = WeightStore(session_factory)
    store.seed_default()
    store.freeze(1, notes="drift investigation")

    report = build_health_report(store, LearningHistoryRepository(session_factory), StabilityGuard())

    assert report.is_frozen
    assert report.frozen_notes == "drift investigation"
    assert report.frozen_at is not None
    assert not report.healthy


def test_unstable_features_surface_in_report(session_factory) -> None:
    store = WeightStore(session_factory)
    store.seed_default()
    history = StubHistory(
        [
            FeatureImportanceStat(
                feature_name="source:job_board",
                industry_code="general",
                sample_count=12,
                positive_impact_count=6,
                negative_impact_count=6,
            )
        ]
    )

    report = build_health_report(store, history, StabilityGuard())

    assert [feature.feature_name for feature in report.unstable_features] == ["source:job_board"]
