"""Versioned weight store with an atomic active-pointer swap."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, sessionmaker

from ..errors import WeightStoreConsistencyError
from ..schemas import DEFAULT_WEIGHT_SET, WeightSet, WeightSnapshot, parse_weight_set
from .db import as_utc, utcnow
from .models import ModelWeightRow, WeightAuditRow


class WeightStatus(str, Enum):
    DRAFT = "draft"
    CANDIDATE = "candidate"
    ACTIVE = "active"
    SUPERSEDED = "superseded"


ACTIVATABLE_STATUSES = frozenset(
    {WeightStatus.CANDIDATE.value, WeightStatus.SUPERSEDED.value, WeightStatus.ACTIVE.value}
)


@dataclass(slots=True, frozen=True)
class ActivationResult:
    success: bool
    version: int
    reason: str | None = None
    previous_version: int | None = None


@dataclass(slots=True, frozen=True)
class WeightVersionInfo:
    version: int
    status: str
    is_active: bool
    is_frozen: bool
    frozen_at: datetime | None
    frozen_notes: str | None
    notes: str | None
    created_at: datetime
    activated_at: datetime | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "status": self.status,
            "is_active": self.is_active,
            "is_frozen": self.is_frozen,
            "frozen_at": self.frozen_at.isoformat() if self.frozen_at else None,
            "frozen_notes": self.frozen_notes,
            "notes": self.notes,
            "created_at": self.created_at.isoformat(),
            "activated_at": self.activated_at.isoformat() if self.activated_at else None,
        }


class WeightStore:
    """Stores weight versions moving through draft -> candidate -> active -> superseded.

    ``is_frozen`` is orthogonal to the status and vetoes every activation path.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock or utcnow
        self._logger = structlog.get_logger(__name__)

    # ------------------------------------------------------------------ reads
    def active_snapshot(self) -> WeightSnapshot | None:
        with self._session_factory() as session:
            rows = session.scalars(
                select(ModelWeightRow).where(ModelWeightRow.is_active.is_(True))
            ).all()
            if not rows:
                return None
            if len(rows) > 1:
                self._raise_consistency([row.model_version for row in rows])
            row = rows[0]
            return WeightSnapshot(
                version=row.model_version,
                weights=parse_weight_set(row.weights_json),
                is_frozen=row.is_frozen,
            )

    def snapshot_or_default(self) -> WeightSnapshot:
        """Active snapshot, or the built-in defaults when nothing is active."""
        snapshot = self.active_snapshot()
        if snapshot is None:
            self._logger.warning("weights.no_active_version")
            return WeightSnapshot.fallback()
        return snapshot

    def load(self, version: int) -> WeightSet | None:
        with self._session_factory() as session:
            row = session.get(ModelWeightRow, version)
            return parse_weight_set(row.weights_json) if row else None

    def get(self, version: int) -> WeightVersionInfo | None:
        with self._session_factory() as session:
            row = session.get(ModelWeightRow, version)
            return self._info(row) if row else None

    def list_versions(self) -> list[WeightVersionInfo]:
        with self._session_factory() as session:
            rows = session.scalars(
                select(ModelWeightRow).order_by(ModelWeightRow.model_version)
            ).all()
            return [self._info(row) for row in rows]

    def audit_trail(self, version: int | None = None) -> list[dict[str, Any]]:
        with self._session_factory() as session:
            query = select(WeightAuditRow).order_by(WeightAuditRow.id)
            if version is not None:
                query = query.where(WeightAuditRow.model_version == version)
            return [
                {
                    "model_version": row.model_version,
                    "action": row.action,
                    "outcome": row.outcome,
                    "actor": row.actor,
                    "notes": row.notes,
                    "detail": row.detail,
                    "created_at": as_utc(row.created_at),
                }
                for row in session.scalars(query)
            ]

    # ----------------------------------------------------------------- writes
    def create_draft(
        self,
        weights: WeightSet,
        *,
        notes: str | None = None,
        actor: str = "system",
    ) -> int:
        with self._session_factory.begin() as session:
            version = self._next_version(session)
            session.add(
                ModelWeightRow(
                    model_version=version,
                    weights_json=weights.to_json(),
                    status=WeightStatus.DRAFT.value,
                    is_active=False,
                    is_frozen=False,
                    notes=notes,
                    created_at=self._clock(),
                )
            )
            self._audit(session, version, "create_draft", actor=actor, notes=notes)
        self._logger.info("weights.draft_created", version=version, actor=actor)
        return version

    def promote_to_candidate(self, version: int, *, actor: str = "system") -> bool:
        with self._session_factory.begin() as session:
            row = session.get(ModelWeightRow, version)
            if row is None or row.status != WeightStatus.DRAFT.value or row.is_frozen:
                reason = "not_found" if row is None else ("frozen" if row.is_frozen else row.status)
                self._audit(session, version, "promote", outcome="refused", actor=actor, notes=reason)
                self._logger.warning("weights.promote_refused", version=version, reason=reason)
                return False
            row.status = WeightStatus.CANDIDATE.value
            self._audit(session, version, "promote", actor=actor)
        self._logger.info("weights.promoted", version=version, actor=actor)
        return True

    def activate(self, version: int, *, actor: str = "system") -> ActivationResult:
        """Atomically make ``version`` the single active weight set.

        Frozen, unknown and draft versions are refused with a typed result.
        """
        with self._session_factory.begin() as session:
            row = session.get(ModelWeightRow, version, with_for_update=True)
            if row is None:
                self._audit(session, version, "activate", outcome="refused", actor=actor, notes="not_found")
                result = ActivationResult(success=False, version=version, reason="not_found")
            elif row.is_frozen:
                self._audit(session, version, "activate", outcome="refused", actor=actor, notes="frozen")
                result = ActivationResult(success=False, version=version, reason="frozen")
            elif row.status not in ACTIVATABLE_STATUSES:
                self._audit(session, version, "activate", outcome="refused", actor=actor, notes="not_eligible")
                result = ActivationResult(success=False, version=version, reason="not_eligible")
            else:
                active_versions = session.scalars(
                    select(ModelWeightRow.model_version).where(ModelWeightRow.is_active.is_(True))
                ).all()
                if len(active_versions) > 1:
                    self._raise_consistency(list(active_versions))
                previous = active_versions[0] if active_versions else None
                if previous == version:
                    result = ActivationResult(success=True, version=version, previous_version=version)
                else:
                    now = self._clock()
                    # Deactivate and activate inside one transaction.
                    session.execute(
                        update(ModelWeightRow)
                        .where(ModelWeightRow.is_active.is_(True))
                        .values(is_active=False, status=WeightStatus.SUPERSEDED.value)
                    )
                    session.flush()
                    row.is_active = True
                    row.status = WeightStatus.ACTIVE.value
                    row.activated_at = now
                    self._audit(
                        session,
                        version,
                        "activate",
                        actor=actor,
                        detail={"previous_version": previous},
                    )
                    result = ActivationResult(success=True, version=version, previous_version=previous)

        if result.success:
            self._logger.info(
                "weights.activated",
                version=version,
                previous_version=result.previous_version,
                actor=actor,
            )
        else:
            self._logger.warning("weights.activation_refused", version=version, reason=result.reason)
        return result

    def rollback(self, *, actor: str = "system") -> ActivationResult | None:
        """Re-activate the most recently superseded, non-frozen version."""
        with self._session_factory() as session:
            candidate = session.scalars(
                select(ModelWeightRow.model_version)
                .where(
                    ModelWeightRow.status == WeightStatus.SUPERSEDED.value,
                    ModelWeightRow.is_frozen.is_(False),
                )
                .order_by(
                    ModelWeightRow.activated_at.desc(),
                    ModelWeightRow.model_version.desc(),
                )
                .limit(1)
            ).first()
        if candidate is None:
            self._logger.warning("weights.rollback_unavailable")
            return None
        return self.activate(candidate, actor=actor)

    def freeze(self, version: int, *, notes: str | None = None, actor: str = "system") -> bool:
        with self._session_factory.begin() as session:
            row = session.get(ModelWeightRow, version)
            if row is None:
                return False
            row.is_frozen = True
            row.frozen_at = self._clock()
            row.frozen_notes = notes
            self._audit(session, version, "freeze", actor=actor, notes=notes)
        self._logger.info("weights.frozen", version=version, actor=actor, notes=notes)
        return True

    def unfreeze(self, version: int, *, actor: str = "system") -> bool:
        with self._session_factory.begin() as session:
            row = session.get(ModelWeightRow, version)
            if row is None:
                return False
            row.is_frozen = False
            row.frozen_at = None
            row.frozen_notes = None
            self._audit(session, version, "unfreeze", actor=actor)
        self._logger.info("weights.unfrozen", version=version, actor=actor)
        return True

    def seed_default(self, *, actor: str = "system") -> int | None:
        """Install the built-in weights as the first active version of an empty store."""
        with self._session_factory() as session:
            existing = session.scalar(select(func.count()).select_from(ModelWeightRow))
        if existing:
            return None
        version = self.create_draft(DEFAULT_WEIGHT_SET, notes="Built-in default weights", actor=actor)
        self.promote_to_candidate(version, actor=actor)
        self.activate(version, actor=actor)
        return version

    # ---------------------------------------------------------------- helpers
    @staticmethod
    def _next_version(session: Session) -> int:
        current = session.scalar(select(func.max(ModelWeightRow.model_version)))
        return (current or 0) + 1

    def _audit(
        self,
        session: Session,
        version: int | None,
        action: str,
        *,
        outcome: str = "ok",
        actor: str = "system",
        notes: str | None = None,
        detail: dict[str, Any] | None = None,
    ) -> None:
        session.add(
            WeightAuditRow(
                model_version=version,
                action=action,
                outcome=outcome,
                actor=actor,
                notes=notes,
                detail=detail,
                created_at=self._clock(),
            )
        )

    def _raise_consistency(self, versions: list[int]) -> None:
        self._logger.critical("weights.consistency_violation", active_versions=versions)
        raise WeightStoreConsistencyError(versions)

    @staticmethod
    def _info(row: ModelWeightRow) -> WeightVersionInfo:
        return WeightVersionInfo(
            version=row.model_version,
            status=row.status,
            is_active=row.is_active,
            is_frozen=row.is_frozen,
            frozen_at=as_utc(row.frozen_at),
            frozen_notes=row.frozen_notes,
            notes=row.notes,
            created_at=as_utc(row.created_at),
            activated_at=as_utc(row.activated_at),
        )


__all__ = [
    "ACTIVATABLE_STATUSES",
    "ActivationResult",
    "WeightStatus",
    "WeightStore",
    "WeightVersionInfo",
]
