"""Pydantic configuration schema for CLI YAML input."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class _Section(BaseModel):
    model_config = ConfigDict(extra="forbid")


class DatabaseSection(_Section):
    url: str | None = None
    echo: bool | None = None


class ScoringSection(_Section):
    missing_dimension_threshold: float | None = Field(default=None, ge=0, le=1)
    sparse_answer_fraction: float | None = Field(default=None, ge=0, le=1)
    short_answer_chars: int | None = Field(default=None, ge=1)
    english_boost_min_score: float | None = Field(default=None, ge=0, le=100)
    default_gate_threshold: float | None = Field(default=None, ge=0, le=100)
    skill_gates: dict[str, float] | None = None
    raw_hire_threshold: float | None = None
    raw_hold_threshold: float | None = None
    templates: dict[str, dict[str, Any]] | None = None


class CalibrationSection(_Section):
    min_sample_size: int | None = Field(default=None, ge=2)
    window_days: int | None = Field(default=None, ge=1)
    max_population: int | None = Field(default=None, ge=1)
    std_floor: float | None = Field(default=None, gt=0)
    target_mean: float | None = None
    target_scale: float | None = None


class PolicySection(_Section):
    hire_threshold: float | None = None
    hold_threshold: float | None = None
    policy_version: str | None = None
    block_hire_on_high_severity: bool | None = None


class TuningSection(_Section):
    min_occurrences: int | None = Field(default=None, ge=1)
    flag_scale: float | None = None
    flag_bounds: tuple[float, float] | None = None
    sparse_scale: float | None = None
    sparse_bounds: tuple[float, float] | None = None
    incomplete_scale: float | None = None
    incomplete_bounds: tuple[float, float] | None = None
    source_min_correlation: float | None = None
    source_scale: float | None = None
    source_max_boost: float | None = Field(default=None, ge=0)
    neutral_mean: float | None = None


class LearningSection(_Section):
    window_days: int | None = Field(default=None, ge=1)
    min_samples: int | None = Field(default=None, ge=1)
    auto_activate: bool | None = None
    learning_rate: float | None = None
    max_feature_delta: float | None = None
    min_feature_delta: float | None = None
    min_learning_error: float | None = None
    default_industry: str | None = None
    lock_name: str | None = None
    lock_max_runtime_seconds: int | None = Field(default=None, ge=1)


class StabilitySection(_Section):
    volatility_max_ratio: float | None = Field(default=None, gt=0)
    unstable_balance_threshold: float | None = Field(default=None, ge=0, le=1)
    unstable_min_samples: int | None = Field(default=None, ge=1)
    on_violation: Literal["block", "review"] | None = None


class AppConfig(_Section):
    database: DatabaseSection = Field(default_factory=DatabaseSection)
    scoring: ScoringSection = Field(default_factory=ScoringSection)
    calibration: CalibrationSection = Field(default_factory=CalibrationSection)
    policy: PolicySection = Field(default_factory=PolicySection)
    tuning: TuningSection = Field(default_factory=TuningSection)
    learning: LearningSection = Field(default_factory=LearningSection)
    stability: StabilitySection = Field(default_factory=StabilitySection)

    def to_settings(self) -> dict[str, Any]:
        """Non-empty sections as plain mappings for ``create_container``."""
        settings: dict[str, Any] = {}
        for name in type(self).model_fields:
            section = getattr(self, name).model_dump(exclude_none=True)
            if section:
                settings[name] = section
        return settings


def load_config(raw: Any) -> AppConfig:
    if raw is None:
        return AppConfig()
    if not isinstance(raw, dict):
        raise TypeError("Config must be a mapping")
    return AppConfig.model_validate(raw)


__all__ = [
    "AppConfig",
    "CalibrationSection",
    "DatabaseSection",
    "LearningSection",
    "PolicySection",
    "ScoringSection",
    "StabilitySection",
    "TuningSection",
    "load_config",
]
