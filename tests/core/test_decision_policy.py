from __future__ import annotations

import pytest

from crewscreening.core import DecisionPolicy, PolicyConfig, RiskFlag, Severity, SkillGateResult


def build_gate(passed: bool = True) -> SkillGateResult:
    return SkillGateResult(
        competency_code="role_competence",
        role_competence_score=70.0 if passed else 30.0,
        gate_threshold=45.0,
        passed=passed,
    )


def build_flag(code: str, severity: Severity, *, auto_reject: bool = False) -> RiskFlag:
    return RiskFlag(
        code=code,
        name=code.title(),
        severity=severity,
        penalty=-3.0,
        evidence=("evidence",),
        causes_auto_reject=auto_reject,
    )


@pytest.mark.parametrize("score", [0, 10, 39.9, 40, 49.9, 50, 75, 99.9, 100])
def test_auto_reject_flag_always_rejects(score):
    policy = DecisionPolicy()
    flag = RiskFlag(
        code="RF_AGGRESSION",
        name="Aggressive language",
        severity=Severity.CRITICAL,
        penalty=-3.0,
        evidence=("idiot",),
        causes_auto_reject=True,
    )

    result = policy.decide(score, build_gate(), [flag])

    assert result.decision == "REJECT"
    assert result.policy_code == "POLICY_AUTO_REJECT_CRITICAL_RF"
    assert result.reason == "Aggressive language: idiot"


def test_gate_failure_holds_even_with_high_score():
    result = DecisionPolicy().decide(95, build_gate(passed=False), [])

    assert result.decision == "HOLD"
    assert result.policy_code == "POLICY_HOLD_GATE_FAIL"
    assert result.reason.startswith("Skill gate failed: role_competence 30 < 45")


@pytest.mark.parametrize(
    ("score", "decision", "code"),
    [
        (50, "HIRE", "POLICY_HIRE_THRESHOLD"),
        (49.99, "HOLD", "POLICY_HOLD_THRESHOLD"),
        (40, "HOLD", "POLICY_HOLD_THRESHOLD"),
        (39.99, "REJECT", "POLICY_REJECT_LOW_SCORE"),
    ],
)
def test_threshold_bands(score, decision, code):
    result = DecisionPolicy().decide(score, build_gate(), [])

    assert result.decision == decision
    assert result.policy_code == code
    assert result.policy_version == "v1"


def test_reason_cites_highest_severity_flag():
    flags = [
        build_flag("RF_EGO", Severity.MEDIUM),
        build_flag("RF_BLAME", Severity.HIGH),
        build_flag("RF_INCONSIST", Severity.HIGH),
    ]

    result = DecisionPolicy().decide(62, build_gate(), flags)

    assert result.decision == "HIRE"
    assert result.reason.endswith("highest risk flag RF_BLAME (high)")


def test_optional_high_flag_block_downgrades_hire():
    policy = DecisionPolicy(config=PolicyConfig(block_hire_on_high_severity=True))

    blocked = policy.decide(80, build_gate(), [build_flag("RF_BLAME", Severity.HIGH)])
    medium = policy.decide(80, build_gate(), [build_flag("RF_EGO", Severity.MEDIUM)])

    assert blocked.decision == "HOLD"
    assert blocked.policy_code == "POLICY_HOLD_HIGH_FLAG_BLOCK"
    assert medium.decision == "HIRE"


def test_policy_config_validates_band_order():
    with pytest.raises(ValueError):
        PolicyConfig(hire_threshold=40, hold_threshold=60)
