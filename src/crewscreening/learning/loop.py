"""Batch learning cycle: outcomes in, tuned weight versions out."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable

import structlog
from structlog.contextvars import bound_contextvars

from ..core import OutcomePredictor
from ..storage import (
    ImportanceUpdate,
    LearningCycleRecord,
    LearningEventRecord,
    LearningHistoryRepository,
    SystemEventRecord,
    WeightStore,
)
from ..storage.db import utcnow
from .batch import BatchResult, RecordError, ResolvedSample, resolve_samples, sample_signals
from .importance import extract_feature_values, importance_updates
from .lock import DEFAULT_LOCK_NAME, DEFAULT_MAX_RUNTIME_SECONDS, LearningRunLock
from .stability import StabilityGuard, StabilityVerdict
from .tuning import TuningProposal, TuningService

STATUS_INSUFFICIENT_SAMPLES = "insufficient_samples"
STATUS_NO_IMPROVEMENT = "no_improvement"
STATUS_NEW_VERSION = "new_version"
STATUS_BLOCKED = "blocked"
STATUS_FLAGGED_FOR_REVIEW = "flagged_for_review"

EVENT_NO_CHANGE = "processed_no_change"
EVENT_WEIGHTS_UPDATED = "processed_weights_updated"
EVENT_BLOCKED = "processed_blocked"
EVENT_PENDING_REVIEW = "processed_pending_review"
EVENT_SKIPPED_INVALID = "skipped_invalid"

_EVENT_STATUS = {
    STATUS_NO_IMPROVEMENT: EVENT_NO_CHANGE,
    STATUS_NEW_VERSION: EVENT_WEIGHTS_UPDATED,
    STATUS_BLOCKED: EVENT_BLOCKED,
    STATUS_FLAGGED_FOR_REVIEW: EVENT_PENDING_REVIEW,
}


@dataclass
class LearningConfig:
    window_days: int = 90
    min_samples: int = 30
    auto_activate: bool = False
    learning_rate: float = 0.05
    max_feature_delta: float = 2.0
    min_feature_delta: float = 0.01
    min_learning_error: float = 5.0
    default_industry: str = "general"
    lock_name: str = DEFAULT_LOCK_NAME
    lock_max_runtime_seconds: int = DEFAULT_MAX_RUNTIME_SECONDS

    def __post_init__(self) -> None:
        if self.window_days <= 0:
            raise ValueError("window_days must be positive")
        if self.min_samples < 1:
            raise ValueError("min_samples must be at least 1")


@dataclass(slots=True)
class LearningCycleResult:
    status: str
    processed_count: int = 0
    errors: list[RecordError] = field(default_factory=list)
    new_weight_version: int | None = None
    dry_run: bool = False
    sample_count: int = 0
    window_days: int = 0
    industry_code: str | None = None
    base_version: int | None = None
    proposal: TuningProposal | None = None
    stability: StabilityVerdict | None = None
    activated: bool = False
    cycle_id: str | None = None

    @property
    def errors_count(self) -> int:
        return len(self.errors)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "status": self.status,
            "processed_count": self.processed_count,
            "errors_count": self.errors_count,
            "new_weight_version": self.new_weight_version,
            "dry_run": self.dry_run,
            "sample_count": self.sample_count,
            "window_days": self.window_days,
            "industry_code": self.industry_code,
            "base_version": self.base_version,
            "activated": self.activated,
            "cycle_id": self.cycle_id,
            "errors": [
                {"record_id": error.record_id, "reason": error.reason} for error in self.errors
            ],
        }
        if self.proposal is not None:
            payload["proposed_deltas"] = self.proposal.deltas_dict()
            payload["evaluation"] = self.proposal.evaluation.to_dict()
        if self.stability is not None:
            payload["stability"] = self.stability.to_dict()
        return payload


class LearningLoop:
    """Compares past predictions with real outcomes and proposes new weights.

    Non-dry runs hold the ``learning_cycle`` lock for their whole duration and
    write the cycle, its events and feature statistics in one transaction. A
    new weight version stays a draft until that transaction has committed. A
    dry run reads the same data, reports what would change and writes nothing.
    """

    def __init__(
        self,
        *,
        store: WeightStore,
        history: LearningHistoryRepository,
        tuning: TuningService,
        guard: StabilityGuard,
        lock: LearningRunLock,
        predictor: OutcomePredictor | None = None,
        config: LearningConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._history = history
        self._tuning = tuning
        self._guard = guard
        self._lock = lock
        self._predictor = predictor or OutcomePredictor()
        self._config = config or LearningConfig()
        self._clock = clock or utcnow
        self._logger = structlog.get_logger(__name__)

    def run_learning_cycle(
        self,
        window_days: int | None = None,
        industry_filter: str | None = None,
        dry_run: bool = False,
    ) -> LearningCycleResult:
        window = window_days or self._config.window_days
        if dry_run:
            return self._run(window, industry_filter, dry_run=True, cycle_id=None)

        cycle_id = str(uuid.uuid4())
        with self._lock.hold(), bound_contextvars(cycle_id=cycle_id):
            try:
                return self._run(window, industry_filter, dry_run=False, cycle_id=cycle_id)
            except Exception:
                self._logger.exception("learning.cycle_failed")
                raise

    # ------------------------------------------------------------------ steps
    def _run(
        self,
        window_days: int,
        industry_filter: str | None,
        *,
        dry_run: bool,
        cycle_id: str | None,
    ) -> LearningCycleResult:
        started_at = self._clock()
        since = started_at - timedelta(days=window_days)
        samples = self._history.load_samples(since=since, industry_code=industry_filter)
        resolved, load_batch = resolve_samples(samples)
        snapshot = self._store.snapshot_or_default()
        result = LearningCycleResult(
            status=STATUS_INSUFFICIENT_SAMPLES,
            dry_run=dry_run,
            sample_count=len(samples),
            window_days=window_days,
            industry_code=industry_filter,
            base_version=snapshot.version,
            errors=list(load_batch.errors),
            cycle_id=cycle_id,
        )
        self._logger.info(
            "learning.cycle_started",
            window_days=window_days,
            industry_code=industry_filter,
            sample_count=len(samples),
            valid_samples=len(resolved),
            dry_run=dry_run,
            base_version=snapshot.label,
        )

        if len(resolved) < self._config.min_samples:
            self._logger.info(
                "learning.insufficient_samples",
                valid_samples=len(resolved),
                min_samples=self._config.min_samples,
            )
            if not dry_run:
                self._history.persist_cycle(
                    self._cycle_record(result, started_at),
                    events=self._skipped_events(load_batch),
                )
            return result

        proposal = self._tuning.propose(resolved, snapshot.weights)
        result.proposal = proposal
        result.errors.extend(proposal.batch.errors)
        result.processed_count = proposal.batch.processed_count

        if not proposal.improved:
            result.status = STATUS_NO_IMPROVEMENT
        else:
            importance = self._history.feature_importance(industry_filter)
            result.stability = self._guard.check(snapshot.weights, proposal.weights, importance)
            if result.stability.passed:
                result.status = STATUS_NEW_VERSION
            elif self._guard.config.on_violation == "review":
                result.status = STATUS_FLAGGED_FOR_REVIEW
            else:
                result.status = STATUS_BLOCKED

        if dry_run:
            self._logger.info(
                "learning.dry_run",
                status=result.status,
                proposed_deltas=len(proposal.deltas),
                improvement_pct=proposal.evaluation.improvement_pct,
            )
            return result

        self._create_version(result, proposal)
        events, updates = self._build_events(
            resolved,
            proposal,
            status=_EVENT_STATUS[result.status],
            weights_label=snapshot.label,
        )
        events.extend(self._skipped_events(load_batch))
        events.extend(self._skipped_events(proposal.batch))
        self._history.persist_cycle(
            self._cycle_record(result, started_at),
            events=events,
            importance=updates,
            system_events=self._system_events(result),
        )
        self._promote_version(result)
        self._logger.info(
            "learning.cycle_finished",
            status=result.status,
            processed_count=result.processed_count,
            errors_count=result.errors_count,
            new_weight_version=result.new_weight_version,
            activated=result.activated,
        )
        return result

    def _create_version(self, result: LearningCycleResult, proposal: TuningProposal) -> None:
        """Store the proposal as a draft; promotion waits for the cycle ledger."""
        if result.status not in (STATUS_NEW_VERSION, STATUS_FLAGGED_FOR_REVIEW):
            return
        evaluation = proposal.evaluation
        notes = (
            f"learning cycle {result.cycle_id}: MAE {evaluation.base_mae:.2f} -> "
            f"{evaluation.new_mae:.2f} ({evaluation.improvement_pct:+.1f}%)"
        )
        version = self._store.create_draft(proposal.weights, notes=notes, actor="learning_loop")
        result.new_weight_version = version

        if result.status == STATUS_FLAGGED_FOR_REVIEW:
            kinds = sorted({violation.kind for violation in result.stability.violations})
            self._store.freeze(
                version,
                notes=f"stability review required: {', '.join(kinds)}",
                actor="learning_loop",
            )

    def _promote_version(self, result: LearningCycleResult) -> None:
        if result.status != STATUS_NEW_VERSION or result.new_weight_version is None:
            return
        version = result.new_weight_version
        self._store.promote_to_candidate(version, actor="learning_loop")
        if self._config.auto_activate:
            result.activated = self._store.activate(version, actor="learning_loop").success

    def _build_events(
        self,
        resolved: list[ResolvedSample],
        proposal: TuningProposal,
        *,
        status: str,
        weights_label: str,
    ) -> tuple[list[LearningEventRecord], list[ImportanceUpdate]]:
        skipped = {error.record_id for error in proposal.batch.errors}
        events: list[LearningEventRecord] = []
        updates: list[ImportanceUpdate] = []
        for item in resolved:
            sample = item.sample
            if sample.interview_id in skipped:
                continue
            if sample.predicted_outcome_score is not None:
                predicted = float(sample.predicted_outcome_score)
                predicted_label = sample.predicted_label or self._label(predicted, proposal)
            else:
                prediction = self._predictor.predict(
                    sample_signals(sample),
                    proposal.base_weights,
                    calibrated_score=sample.calibrated_score,
                    raw_final_score=sample.raw_final_score,
                )
                predicted = float(prediction.predicted_outcome_score)
                predicted_label = prediction.predicted_label

            error = item.actual_score - predicted
            events.append(
                LearningEventRecord(
                    interview_id=sample.interview_id,
                    status=status,
                    industry_code=sample.industry_code,
                    predicted_outcome_score=predicted,
                    actual_outcome_score=item.actual_score,
                    error=round(error, 2),
                    predicted_label=predicted_label,
                    actual_label=item.actual_label,
                    is_false_positive=predicted_label == "GOOD" and item.actual_label == "BAD",
                    is_false_negative=predicted_label == "BAD" and item.actual_label == "GOOD",
                    detail={"model_version": sample.model_version, "weights": weights_label},
                )
            )
            if abs(error) >= self._config.min_learning_error:
                updates.extend(
                    importance_updates(
                        extract_feature_values(sample),
                        error,
                        sample.industry_code or self._config.default_industry,
                        learning_rate=self._config.learning_rate,
                        max_delta=self._config.max_feature_delta,
                        min_delta=self._config.min_feature_delta,
                    )
                )
        return events, updates

    @staticmethod
    def _label(score: float, proposal: TuningProposal) -> str:
        return "GOOD" if score >= proposal.base_weights.thresholds.good else "BAD"

    @staticmethod
    def _skipped_events(batch: BatchResult) -> list[LearningEventRecord]:
        return [
            LearningEventRecord(
                interview_id=error.record_id,
                status=EVENT_SKIPPED_INVALID,
                detail={"reason": error.reason},
            )
            for error in batch.errors
        ]

    @staticmethod
    def _system_events(result: LearningCycleResult) -> list[SystemEventRecord]:
        if result.stability is None or result.stability.passed:
            return []
        grouped: dict[str, list[dict[str, Any]]] = {}
        for violation in result.stability.violations:
            grouped.setdefault(violation.event_type, []).append(violation.to_dict())
        return [
            SystemEventRecord(
                event_type=event_type,
                severity="warning",
                payload={
                    "cycle_id": result.cycle_id,
                    "status": result.status,
                    "new_weight_version": result.new_weight_version,
                    "violations": violations,
                },
            )
            for event_type, violations in grouped.items()
        ]

    def _cycle_record(self, result: LearningCycleResult, started_at: datetime) -> LearningCycleRecord:
        evaluation = result.proposal.evaluation if result.proposal is not None else None
        return LearningCycleRecord(
            id=result.cycle_id or str(uuid.uuid4()),
            status=result.status,
            window_days=result.window_days,
            started_at=started_at,
            finished_at=self._clock(),
            industry_code=result.industry_code,
            samples_processed=result.processed_count,
            errors_count=result.errors_count,
            model_version_before=result.base_version,
            model_version_after=result.new_weight_version,
            base_mae=round(evaluation.base_mae, 4) if evaluation else None,
            new_mae=round(evaluation.new_mae, 4) if evaluation else None,
            improvement_pct=round(evaluation.improvement_pct, 4) if evaluation else None,
            weight_deltas=result.proposal.deltas_dict() if result.proposal is not None else None,
        )


__all__ = [
    "EVENT_BLOCKED",
    "EVENT_NO_CHANGE",
    "EVENT_PENDING_REVIEW",
    "EVENT_SKIPPED_INVALID",
    "EVENT_WEIGHTS_UPDATED",
    "LearningConfig",
    "LearningCycleResult",
    "LearningLoop",
    "STATUS_BLOCKED",
    "STATUS_FLAGGED_FOR_REVIEW",
    "STATUS_INSUFFICIENT_SAMPLES",
    "STATUS_NEW_VERSION",
    "STATUS_NO_IMPROVEMENT",
]
