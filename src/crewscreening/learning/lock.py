"""Named database lock that keeps learning runs from overlapping."""

from __future__ import annotations

import os
import socket
import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Callable, Iterator

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from ..errors import LearningRunLockedError
from ..storage.db import as_utc, utcnow
from ..storage.models import LearningLockRow

DEFAULT_LOCK_NAME = "learning_cycle"
DEFAULT_MAX_RUNTIME_SECONDS = 3600


def default_owner() -> str:
    return f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"


class LearningRunLock:
    """Lease-style lock stored in ``learning_locks``.

    A lease expires after ``max_runtime_seconds`` so a crashed run cannot block
    later runs forever; an expired lease is taken over with a conditional update.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        name: str = DEFAULT_LOCK_NAME,
        max_runtime_seconds: int = DEFAULT_MAX_RUNTIME_SECONDS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if max_runtime_seconds <= 0:
            raise ValueError("max_runtime_seconds must be positive")
        self._session_factory = session_factory
        self._name = name
        self._max_runtime = timedelta(seconds=max_runtime_seconds)
        self._clock = clock or utcnow
        self._logger = structlog.get_logger(__name__)

    @property
    def name(self) -> str:
        return self._name

    def acquire(self, owner: str) -> bool:
        now = self._clock()
        expires_at = now + self._max_runtime
        try:
            with self._session_factory.begin() as session:
                taken_over = session.execute(
                    update(LearningLockRow)
                    .where(
                        LearningLockRow.name == self._name,
                        LearningLockRow.expires_at < now,
                    )
                    .values(owner=owner, acquired_at=now, expires_at=expires_at)
                ).rowcount
                if not taken_over:
                    session.add(
                        LearningLockRow(
                            name=self._name,
                            owner=owner,
                            acquired_at=now,
                            expires_at=expires_at,
                        )
                    )
                    session.flush()
        except IntegrityError:
            self._logger.info("learning_lock.busy", name=self._name, owner=owner)
            return False
        self._logger.info(
            "learning_lock.acquired",
            name=self._name,
            owner=owner,
            expires_at=expires_at.isoformat(),
        )
        return True

    def release(self, owner: str) -> bool:
        with self._session_factory.begin() as session:
            deleted = session.execute(
                delete(LearningLockRow).where(
                    LearningLockRow.name == self._name,
                    LearningLockRow.owner == owner,
                )
            ).rowcount
        if deleted:
            self._logger.info("learning_lock.released", name=self._name, owner=owner)
        else:
            self._logger.warning("learning_lock.release_missed", name=self._name, owner=owner)
        return bool(deleted)

    def holder(self) -> str | None:
        """Current owner, or ``None`` when the lock is free or its lease expired."""
        with self._session_factory() as session:
            row = session.scalars(
                select(LearningLockRow).where(LearningLockRow.name == self._name)
            ).first()
            if row is None or as_utc(row.expires_at) < self._clock():
                return None
            return row.owner

    @contextmanager
    def hold(self, owner: str | None = None) -> Iterator[str]:
        owner = owner or default_owner()
        if not self.acquire(owner):
            raise LearningRunLockedError(self._name, self.holder())
        try:
            yield owner
        finally:
            self.release(owner)


__all__ = [
    "DEFAULT_LOCK_NAME",
    "DEFAULT_MAX_RUNTIME_SECONDS",
    "LearningRunLock",
    "default_owner",
]
