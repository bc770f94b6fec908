"""Ordered decision rules mapping a calibrated score to HIRE / HOLD / REJECT."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from .competency import SkillGateResult
from .risk_flags import RiskFlag, Severity, highest_severity

DecisionType = Literal["HIRE", "HOLD", "REJECT"]

POLICY_AUTO_REJECT = "POLICY_AUTO_REJECT_CRITICAL_RF"
POLICY_GATE_FAIL = "POLICY_HOLD_GATE_FAIL"
POLICY_HIGH_FLAG_BLOCK = "POLICY_HOLD_HIGH_FLAG_BLOCK"
POLICY_HIRE = "POLICY_HIRE_THRESHOLD"
POLICY_HOLD = "POLICY_HOLD_THRESHOLD"
POLICY_REJECT = "POLICY_REJECT_LOW_SCORE"


@dataclass
class PolicyConfig:
    """Thresholds and optional rules for the decision policy."""

    hire_threshold: float = 50.0
    hold_threshold: float = 40.0
    policy_version: str = "v1"
    block_hire_on_high_severity: bool = False

    def __post_init__(self) -> None:
        if self.hold_threshold > self.hire_threshold:
            raise ValueError("hold_threshold must not exceed hire_threshold")


@dataclass(slots=True, frozen=True)
class DecisionResult:
    decision: DecisionType
    policy_code: str
    policy_version: str
    reason: str

    def to_dict(self) -> dict:
        return {
            "decision": self.decision,
            "policy_code": self.policy_code,
            "policy_version": self.policy_version,
            "reason": self.reason,
        }


class DecisionPolicy:
    """First-match rule evaluation over score, skill gate and risk flags."""

    def __init__(self, *, config: PolicyConfig | None = None) -> None:
        self._config = config or PolicyConfig()

    @property
    def config(self) -> PolicyConfig:
        return self._config

    def decide(
        self,
        calibrated_score: float,
        skill_gate: SkillGateResult,
        risk_flags: list[RiskFlag],
    ) -> DecisionResult:
        auto_reject = [flag for flag in risk_flags if flag.causes_auto_reject]
        if auto_reject:
            cited = highest_severity(auto_reject)
            return self._result("REJECT", POLICY_AUTO_REJECT, self._flag_reason(cited))

        if not skill_gate.passed:
            reason = (
                f"Skill gate failed: {skill_gate.competency_code} "
                f"{skill_gate.role_competence_score:g} < {skill_gate.gate_threshold:g}"
            )
            return self._result("HOLD", POLICY_GATE_FAIL, self._with_flag(reason, risk_flags))

        cited = highest_severity(risk_flags)
        if calibrated_score >= self._config.hire_threshold:
            if (
                self._config.block_hire_on_high_severity
                and cited is not None
                and cited.severity.rank >= Severity.HIGH.rank
            ):
                reason = f"Hire blocked by {cited.severity.value} severity flag"
                return self._result(
                    "HOLD", POLICY_HIGH_FLAG_BLOCK, self._with_flag(reason, risk_flags)
                )
            reason = (
                f"Score {calibrated_score:g} >= hire threshold {self._config.hire_threshold:g}"
            )
            return self._result("HIRE", POLICY_HIRE, self._with_flag(reason, risk_flags))

        if calibrated_score >= self._config.hold_threshold:
            reason = (
                f"Score {calibrated_score:g} within hold band "
                f"[{self._config.hold_threshold:g}, {self._config.hire_threshold:g})"
            )
            return self._result("HOLD", POLICY_HOLD, self._with_flag(reason, risk_flags))

        reason = f"Score {calibrated_score:g} < hold threshold {self._config.hold_threshold:g}"
        return self._result("REJECT", POLICY_REJECT, self._with_flag(reason, risk_flags))

    def _result(self, decision: DecisionType, code: str, reason: str) -> DecisionResult:
        return DecisionResult(
            decision=decision,
            policy_code=code,
            policy_version=self._config.policy_version,
            reason=reason,
        )

    @staticmethod
    def _flag_reason(flag: RiskFlag) -> str:
        if flag.evidence:
            return f"{flag.name}: {'; '.join(flag.evidence)}"
        return flag.name

    def _with_flag(self, reason: str, risk_flags: list[RiskFlag]) -> str:
        cited = highest_severity(risk_flags)
        if cited is None:
            return reason
        return f"{reason}; highest risk flag {cited.code} ({cited.severity.value})"


__all__ = [
    "DecisionType",
    "DecisionPolicy",
    "DecisionResult",
    "PolicyConfig",
    "POLICY_AUTO_REJECT",
    "POLICY_GATE_FAIL",
    "POLICY_HIGH_FLAG_BLOCK",
    "POLICY_HIRE",
    "POLICY_HOLD",
    "POLICY_REJECT",
]
