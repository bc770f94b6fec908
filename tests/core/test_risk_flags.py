from __future__ import annotations

from typing import Any

from crewscreening.core import RiskFlagDetector, Severity
from crewscreening.core.risk_flags import highest_severity, normalize_text
from crewscreening.schemas import InterviewAnswer, InterviewSubmission, WeightSet


def build_submission(*texts: str, **kwargs: Any) -> InterviewSubmission:
    answers = kwargs.pop("answers", None) or [
        InterviewAnswer(slot=index, competency_code="communication", answer_text=text)
        for index, text in enumerate(texts, start=1)
    ]
    return InterviewSubmission(interview_id="I-1", answers=answers, **kwargs)


def test_detects_blame_with_literal_evidence():
    detector = RiskFlagDetector()
    submission = build_submission("The engine failed but it was not my fault at all.")

    flags = detector.detect(submission)

    assert [flag.code for flag in flags] == ["RF_BLAME"]
    assert flags[0].evidence == ("not my fault",)
    assert flags[0].severity is Severity.HIGH
    assert flags[0].penalty == 0.0


def test_keyword_matching_respects_word_boundaries():
    detector = RiskFlagDetector()
    submission = build_submission("We used a stupidly simple checklist for mooring.")

    assert detector.detect(submission) == []


def test_turkish_keywords_match_without_diacritics():
    detector = RiskFlagDetector()
    submission = build_submission("Açıkçası bu benim işim değil, kaptan halletsin.")

    flags = detector.detect(submission)

    assert [flag.code for flag in flags] == ["RF_AVOID"]
    assert normalize_text("İŞİM DEĞİL") == "isim degil"


def test_aggression_is_critical_and_auto_rejects():
    detector = RiskFlagDetector()
    submission = build_submission("The bosun is an idiot and I told him to shut up.")

    flags = detector.detect(submission)

    assert flags[0].code == "RF_AGGRESSION"
    assert flags[0].causes_auto_reject is True
    assert flags[0].severity is Severity.CRITICAL
    assert flags[0].evidence == ("idiot", "shut up")


def test_shouting_requires_exclamations_and_upper_case_words():
    detector = RiskFlagDetector()
    shouting = build_submission("I SAID STOP THAT NOW!! nobody listened")
    calm = build_submission("I SAID STOP THAT NOW. nobody listened")

    flags = detector.detect(shouting)

    assert [flag.code for flag in flags] == ["RF_AGGRESSION"]
    assert flags[0].evidence == ("shouting: SAID STOP THAT",)
    assert detector.detect(calm) == []


def test_reviewer_evidence_flags_and_weight_penalties():
    detector = RiskFlagDetector()
    weights = WeightSet(risk_flag_penalties={"default": -3.0, "RF_EGO": -6.0})
    submission = build_submission(
        answers=[
            InterviewAnswer(slot=1, competency_code="teamwork", evidence_flags=["rf_ego"]),
            InterviewAnswer(slot=2, competency_code="integrity", evidence_flags=["RF_CUSTOM", "bad code!"]),
        ]
    )

    flags = detector.detect(submission, weights)

    assert [flag.code for flag in flags] == ["RF_EGO", "RF_CUSTOM"]
    assert flags[0].evidence == ("slot 1: reviewer flag",)
    assert flags[0].penalty == -6.0
    assert flags[1].severity is Severity.LOW
    assert flags[1].name == "RF_CUSTOM"
    assert flags[1].penalty == -3.0


def test_highest_severity_picks_first_of_top_rank():
    detector = RiskFlagDetector()
    flags = detector.detect(
        build_submission("I am the best on board. It was their fault. That is not what i said.")
    )

    assert [flag.code for flag in flags] == ["RF_BLAME", "RF_INCONSIST", "RF_EGO"]
    assert highest_severity(flags).code == "RF_BLAME"
    assert highest_severity([]) is None
