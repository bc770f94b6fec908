from __future__ import annotations

import pytest

from crewscreening.core import CompetencyScorer
from crewscreening.schemas import CompetencyDimension, CompetencyTemplate, InterviewAnswer


def build_template() -> CompetencyTemplate:
    return CompetencyTemplate(
        template_code="deck_v1",
        dimensions=[
            CompetencyDimension(code="communication", weight=0.4),
            CompetencyDimension(code="technical", weight=0.3),
            CompetencyDimension(code="problem_solving", weight=0.3),
        ],
        role_competence_code="technical",
    )


def test_ratings_are_averaged_per_dimension():
    scorer = CompetencyScorer()
    answers = [
        InterviewAnswer(slot=1, competency_code="communication", rating=3),
        InterviewAnswer(slot=2, competency_code="communication", rating=4),
        InterviewAnswer(slot=3, competency_code="technical", rating=5),
    ]

    breakdown = scorer.score(answers, build_template())

    communication = breakdown.scores["communication"]
    assert communication.score == pytest.approx(70.0)
    assert communication.raw_rating == pytest.approx(3.5)
    assert communication.answer_count == 2
    assert communication.source == "rating"
    assert breakdown.scores["technical"].score == pytest.approx(100.0)
    assert breakdown.missing_codes == ["problem_solving"]


def test_rating_takes_precedence_over_text():
    scorer = CompetencyScorer()
    answer = InterviewAnswer(
        slot=1,
        competency_code="technical",
        rating=2,
        answer_text="x" * 400,
    )

    assert scorer.answer_score(answer) == pytest.approx(40.0)


@pytest.mark.parametrize(
    ("length", "expected"),
    [(0, 0.0), (10, 35.0), (29, 35.0), (30, 50.0), (79, 50.0), (150, 70.0), (300, 85.0), (350, 95.0)],
)
def test_text_length_bands(length, expected):
    assert CompetencyScorer().text_length_score(length) == expected


def test_unmapped_answers_are_reported():
    scorer = CompetencyScorer()
    answers = [
        InterviewAnswer(slot=1, competency_code="technical", rating=4),
        InterviewAnswer(slot=7, competency_code="cooking", rating=5),
    ]

    breakdown = scorer.score(answers, build_template())

    assert breakdown.unmapped_answers == [7]
    assert breakdown.score_map()["technical"] == pytest.approx(80.0)


def test_mixed_rating_and_text_answers():
    scorer = CompetencyScorer()
    answers = [
        InterviewAnswer(slot=1, competency_code="technical", rating=5),
        InterviewAnswer(slot=2, competency_code="technical", answer_text="short"),
    ]

    score = scorer.score(answers, build_template()).scores["technical"]

    assert score.source == "mixed"
    assert score.score == pytest.approx((100.0 + 35.0) / 2)
