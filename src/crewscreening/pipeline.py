"""Screening pipeline assembly and execution."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Generic, TypeVar

import pendulum
import structlog
from pydantic import BaseModel, ValidationError

from . import __version__
from .core import ScreeningCore, ScreeningOutcome
from .errors import DecisionAlreadyFinalizedError
from .schemas import InterviewOutcome, InterviewSubmission
from .storage import DecisionLedger, ScoredInterviewRepository, WeightStore
from .storage.repositories import serialize_competencies

RecordT = TypeVar("RecordT", bound=BaseModel)


class InterviewLoadError(ValueError):
    """Raised when loading encounters invalid records; ``partial`` keeps the valid ones."""

    def __init__(self, errors: list[str], partial: list):
        super().__init__("Record loading failed")
        self.errors = errors
        self.partial = partial

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"Record loading failed: {self.errors}"


class JsonlLoader(Generic[RecordT]):
    """Load one pydantic record per JSONL line."""

    def __init__(self, model: type[RecordT]):
        self._model = model

    def load(self, path: Path) -> list[RecordT]:
        records: list[RecordT] = []
        errors: list[str] = []
        with path.open("r", encoding="utf-8") as handle:
            for idx, line in enumerate(handle, start=1):
                raw = line.strip()
                if not raw:
                    continue
                try:
                    payload = json.loads(raw)
                except json.JSONDecodeError as exc:
                    errors.append(f"line {idx}: invalid JSON ({exc})")
                    continue
                try:
                    records.append(self._model.model_validate(payload))
                except ValidationError as exc:
                    errors.append(f"line {idx}: {exc.error_count()} validation error(s)")
                    continue
        if errors:
            raise InterviewLoadError(errors, records)
        return records


class InterviewLoader(JsonlLoader[InterviewSubmission]):
    def __init__(self) -> None:
        super().__init__(InterviewSubmission)


class OutcomeLoader(JsonlLoader[InterviewOutcome]):
    def __init__(self) -> None:
        super().__init__(InterviewOutcome)


class OutputWriter:
    """Persist screening outcomes."""

    def write(self, path: Path, payload: dict | list[dict]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps(payload, ensure_ascii=False, indent=2, default=_json_default),
            encoding="utf-8",
        )


def serialize_outcome(outcome: ScreeningOutcome) -> dict:
    scored = outcome.scored
    return {
        "interview_id": outcome.interview_id,
        "position_code": outcome.position_code,
        "template_code": scored.template_code,
        "competency_scores": serialize_competencies(outcome),
        "raw_final_score": scored.raw_final_score,
        "raw_decision": scored.raw_decision.to_dict(),
        "risk_flags": [flag.to_dict() for flag in scored.risk_flags],
        "skill_gate": scored.skill_gate.to_dict(),
        "answers_meta": scored.answers_meta.to_dict(),
        "breakdown": scored.breakdown.to_dict(),
        "calibration": outcome.calibration.to_dict(),
        "decision": outcome.decision.to_dict(),
        "final_score": outcome.final_score,
        "prediction": {
            "predicted_outcome_score": outcome.prediction.predicted_outcome_score,
            "predicted_label": outcome.prediction.predicted_label,
            "explain": outcome.prediction.explain,
        },
        "metadata": dict(outcome.metadata),
    }


class ScreeningPipeline:
    """End-to-end screening orchestrator.

    One weight snapshot is taken per run so every interview in a batch is scored
    against the same version even if a learning run activates a new one meanwhile.
    """

    def __init__(
        self,
        *,
        core: ScreeningCore,
        store: WeightStore,
        interviews: ScoredInterviewRepository,
        decisions: DecisionLedger,
        loader: InterviewLoader | None = None,
        writer: OutputWriter | None = None,
    ) -> None:
        self._core = core
        self._store = store
        self._interviews = interviews
        self._decisions = decisions
        self._loader = loader or InterviewLoader()
        self._writer = writer or OutputWriter()
        self._logger = structlog.get_logger(__name__)

    def run(
        self,
        *,
        interviews_path: Path,
        output_path: Path,
        audit_logger: "AuditLogger | None" = None,
        finalize: bool = False,
        actor: str = "pipeline",
    ) -> list[dict]:
        load_errors: list[str] = []
        try:
            submissions = self._loader.load(interviews_path)
        except InterviewLoadError as exc:
            submissions = exc.partial
            load_errors.extend(exc.errors)
            self._logger.warning("interviews.partial_load", errors=exc.errors)

        snapshot = self._store.snapshot_or_default()
        self._core.calibration.refresh({item.position_code for item in submissions})

        serialized_results: list[dict] = []
        for submission in submissions:
            if self._interviews.is_finalized(submission.interview_id):
                load_errors.append(f"{submission.interview_id}: already finalized")
                self._logger.warning(
                    "screening.already_finalized", interview_id=submission.interview_id
                )
                continue

            outcome = self._core.evaluate(submission, snapshot=snapshot)
            self._interviews.save(outcome)
            if finalize:
                try:
                    self._decisions.record(
                        submission.interview_id,
                        outcome.final_score,
                        outcome.decision,
                        actor=actor,
                    )
                except DecisionAlreadyFinalizedError:
                    load_errors.append(f"{submission.interview_id}: decision already recorded")
                    self._logger.warning(
                        "screening.decision_exists", interview_id=submission.interview_id
                    )
                else:
                    self._interviews.finalize(submission.interview_id)

            entry = serialize_outcome(outcome)
            serialized_results.append(entry)

            if audit_logger:
                audit_logger.append(
                    {
                        "interview_id": submission.interview_id,
                        "position_code": submission.position_code,
                        "raw_final_score": outcome.scored.raw_final_score,
                        "final_score": outcome.final_score,
                        "decision": outcome.decision.decision,
                        "policy_code": outcome.decision.policy_code,
                        "policy_version": outcome.decision.policy_version,
                        "risk_flags": [flag.code for flag in outcome.scored.risk_flags],
                        "weight_version": snapshot.label,
                        "finalized": finalize,
                    }
                )

            self._logger.info(
                "screening.result",
                interview_id=submission.interview_id,
                position_code=submission.position_code,
                decision=outcome.decision.decision,
                policy_code=outcome.decision.policy_code,
                raw_final_score=outcome.scored.raw_final_score,
                final_score=outcome.final_score,
                weight_version=snapshot.label,
            )

        metadata = {
            "interview_count": len(submissions),
            "scored_count": len(serialized_results),
            "errors": load_errors,
            "weight_version": snapshot.label,
            "weights_fallback": snapshot.is_fallback,
            "timestamp": pendulum.now("UTC").to_iso8601_string(),
            "app_version": __version__,
        }
        payload_with_meta = {
            "metadata": metadata,
            "results": serialized_results,
        }

        self._writer.write(output_path, payload_with_meta)
        return serialized_results


def _json_default(value):  # type: ignore[override]
    if isinstance(value, pendulum.DateTime):
        return value.to_iso8601_string()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class AuditLogger:
    """Append-only audit logger writing JSON lines."""

    def __init__(self, path: Path):
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def append(self, record: dict) -> None:
        with self._path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record, ensure_ascii=False, default=_json_default))
            handle.write("\n")


__all__ = [
    "AuditLogger",
    "InterviewLoadError",
    "InterviewLoader",
    "JsonlLoader",
    "OutcomeLoader",
    "OutputWriter",
    "ScreeningPipeline",
    "serialize_outcome",
]
