"""Per-record batch bookkeeping for learning runs."""

from __future__ import annotations

from dataclasses import dataclass, field

from pydantic import ValidationError

from ..core import InterviewSignals
from ..schemas import LearningSample, MetaPenalty


@dataclass(slots=True, frozen=True)
class RecordError:
    record_id: str
    reason: str


@dataclass(slots=True)
class BatchResult:
    """Success count plus the records that were skipped and why."""

    processed_count: int = 0
    errors: list[RecordError] = field(default_factory=list)

    @property
    def errors_count(self) -> int:
        return len(self.errors)

    def skip(self, record_id: str, reason: str) -> None:
        self.errors.append(RecordError(record_id=record_id, reason=reason))


@dataclass(slots=True, frozen=True)
class ResolvedSample:
    """A learning sample whose outcome payload validated."""

    sample: LearningSample
    actual_score: float
    actual_label: str


def resolve_samples(samples: list[LearningSample]) -> tuple[list[ResolvedSample], BatchResult]:
    """Validate each sample's outcome; malformed rows are skipped individually."""
    resolved: list[ResolvedSample] = []
    batch = BatchResult()
    for sample in samples:
        try:
            outcome = sample.actual_outcome()
        except ValidationError as exc:
            batch.skip(sample.interview_id, f"invalid outcome: {exc.error_count()} error(s)")
            continue
        resolved.append(
            ResolvedSample(
                sample=sample,
                actual_score=outcome.resolved_score(),
                actual_label=outcome.label(),
            )
        )
        batch.processed_count += 1
    return resolved, batch


def sample_signals(sample: LearningSample) -> InterviewSignals:
    meta = tuple(key for key in MetaPenalty if sample.meta_flag(key.value))
    return InterviewSignals(
        risk_flag_codes=tuple(sample.risk_flag_codes),
        meta_penalties=meta,
        industry_code=sample.industry_code,
        source_channel=sample.source_channel,
        english_score=sample.english_score,
        video_present=sample.video_present,
    )


__all__ = ["BatchResult", "RecordError", "ResolvedSample", "resolve_samples", "sample_signals"]
