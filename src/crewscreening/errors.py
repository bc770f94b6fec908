"""Exception types raised by the screening core."""

from __future__ import annotations


class CrewScreeningError(Exception):
    """Base class for screening errors."""


class InvalidWeightSetError(CrewScreeningError, ValueError):
    """Raised when a stored or supplied weight set fails schema validation."""

    def __init__(self, errors: list[str]):
        super().__init__("Invalid weight set")
        self.errors = errors

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"Invalid weight set: {self.errors}"


class WeightStoreConsistencyError(CrewScreeningError):
    """More than one weight version is flagged active."""

    def __init__(self, active_versions: list[int]):
        super().__init__(f"Multiple active weight versions: {active_versions}")
        self.active_versions = active_versions


class DecisionAlreadyFinalizedError(CrewScreeningError):
    """A finalized interview or decision cannot be overwritten in place."""

    def __init__(self, interview_id: str):
        super().__init__(f"Interview {interview_id!r} is already finalized")
        self.interview_id = interview_id


class LearningRunLockedError(CrewScreeningError):
    """Another learning run currently holds the lock."""

    def __init__(self, name: str, holder: str | None = None):
        message = f"Lock {name!r} is held"
        if holder:
            message = f"{message} by {holder!r}"
        super().__init__(message)
        self.name = name
        self.holder = holder


__all__ = [
    "CrewScreeningError",
    "InvalidWeightSetError",
    "WeightStoreConsistencyError",
    "DecisionAlreadyFinalizedError",
    "LearningRunLockedError",
]
