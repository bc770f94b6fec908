"""Tagged weight-set schema shared by scoring, prediction and tuning."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..errors import InvalidWeightSetError

DEFAULT_FLAG_KEY = "default"

_FLAG_CODE_RE = re.compile(r"^[A-Z][A-Z0-9_]*$")


class MetaPenalty(str, Enum):
    """Answer-completeness penalties derived from interview structure."""

    SPARSE_ANSWERS = "sparse_answers"
    INCOMPLETE_INTERVIEW = "incomplete_interview"
    VERY_SHORT_ANSWERS = "very_short_answers"


class AssessmentBoost(str, Enum):
    ENGLISH_B2_PLUS = "english_b2_plus"
    VIDEO_PRESENT = "video_present"


class BoostTable(BaseModel):
    """Positive adjustments grouped by the signal they key on."""

    industry: dict[str, float] = Field(default_factory=dict)
    source_channel: dict[str, float] = Field(default_factory=dict)
    assessment: dict[AssessmentBoost, float] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid", frozen=True)

    @field_validator("industry", "source_channel", "assessment")
    @classmethod
    def _non_negative(cls, value: dict[Any, float]) -> dict[Any, float]:
        negative = [str(getattr(key, "value", key)) for key, amount in value.items() if amount < 0]
        if negative:
            raise ValueError(f"boosts must be >= 0: {negative}")
        return value


class WeightThresholds(BaseModel):
    good: float = Field(default=50.0, ge=0, le=100)

    model_config = ConfigDict(extra="forbid", frozen=True)


class WeightSet(BaseModel):
    """All tunable scoring parameters of one model version."""

    risk_flag_penalties: dict[str, float] = Field(
        default_factory=lambda: {DEFAULT_FLAG_KEY: -3.0}
    )
    meta_penalties: dict[MetaPenalty, float] = Field(
        default_factory=lambda: {
            MetaPenalty.SPARSE_ANSWERS: -5.0,
            MetaPenalty.INCOMPLETE_INTERVIEW: -10.0,
            MetaPenalty.VERY_SHORT_ANSWERS: -3.0,
        }
    )
    boosts: BoostTable = Field(
        default_factory=lambda: BoostTable(
            industry={"maritime": 3.0},
            source_channel={"referral": 2.0, "company_invite": 2.0},
            assessment={
                AssessmentBoost.ENGLISH_B2_PLUS: 2.0,
                AssessmentBoost.VIDEO_PRESENT: 1.0,
            },
        )
    )
    thresholds: WeightThresholds = Field(default_factory=WeightThresholds)

    model_config = ConfigDict(extra="forbid", frozen=True)

    @field_validator("risk_flag_penalties")
    @classmethod
    def _check_flag_penalties(cls, value: dict[str, float]) -> dict[str, float]:
        if DEFAULT_FLAG_KEY not in value:
            raise ValueError("risk_flag_penalties requires a 'default' entry")
        for key, amount in value.items():
            if key != DEFAULT_FLAG_KEY and not _FLAG_CODE_RE.match(key):
                raise ValueError(f"invalid risk flag code {key!r}")
            if amount > 0:
                raise ValueError(f"risk flag penalty for {key!r} must be <= 0")
        return value

    @field_validator("meta_penalties")
    @classmethod
    def _check_meta_penalties(cls, value: dict[MetaPenalty, float]) -> dict[MetaPenalty, float]:
        for key, amount in value.items():
            if amount > 0:
                raise ValueError(f"meta penalty for {key.value!r} must be <= 0")
        return value

    def flag_penalty(self, code: str) -> float:
        """Penalty for a flag code, falling back to the default bucket."""
        if code in self.risk_flag_penalties:
            return self.risk_flag_penalties[code]
        return self.risk_flag_penalties[DEFAULT_FLAG_KEY]

    def meta_penalty(self, key: MetaPenalty) -> float:
        return self.meta_penalties.get(key, 0.0)

    def flatten(self) -> dict[str, float]:
        """Return every tunable weight keyed by ``<category>:<name>``."""
        flat: dict[str, float] = {}
        for code, amount in self.risk_flag_penalties.items():
            flat[f"risk_flag:{code}"] = amount
        for key, amount in self.meta_penalties.items():
            flat[f"meta:{key.value}"] = amount
        for code, amount in self.boosts.industry.items():
            flat[f"industry:{code}"] = amount
        for code, amount in self.boosts.source_channel.items():
            flat[f"source:{code}"] = amount
        for key, amount in self.boosts.assessment.items():
            flat[f"assessment:{key.value}"] = amount
        return flat

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


def is_valid_flag_code(code: str) -> bool:
    return bool(_FLAG_CODE_RE.match(code))


def parse_weight_set(raw: Any) -> WeightSet:
    """Validate a stored payload, raising :class:`InvalidWeightSetError`."""
    if isinstance(raw, WeightSet):
        return raw
    if not isinstance(raw, dict):
        raise InvalidWeightSetError(["weight set must be a mapping"])
    try:
        return WeightSet.model_validate(raw)
    except ValidationError as exc:
        errors = [
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        ]
        raise InvalidWeightSetError(errors) from exc


DEFAULT_WEIGHT_SET = WeightSet()

FALLBACK_VERSION_LABEL = "builtin_default"


@dataclass(slots=True, frozen=True)
class WeightSnapshot:
    """Immutable view of one weight version handed to scoring readers."""

    version: int | None
    weights: WeightSet
    is_fallback: bool = False
    is_frozen: bool = False

    @property
    def label(self) -> str:
        if self.version is None:
            return FALLBACK_VERSION_LABEL
        return f"v{self.version}"

    @classmethod
    def fallback(cls) -> "WeightSnapshot":
        return cls(version=None, weights=DEFAULT_WEIGHT_SET, is_fallback=True)


__all__ = [
    "DEFAULT_FLAG_KEY",
    "DEFAULT_WEIGHT_SET",
    "FALLBACK_VERSION_LABEL",
    "AssessmentBoost",
    "BoostTable",
    "MetaPenalty",
    "WeightSet",
    "WeightSnapshot",
    "WeightThresholds",
    "is_valid_flag_code",
    "parse_weight_set",
]
