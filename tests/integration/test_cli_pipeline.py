from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from crewscreening.cli import app

DEFAULT_CODES = [
    "communication",
    "accountability",
    "teamwork",
    "stress_resilience",
    "adaptability",
    "learning_agility",
    "integrity",
    "role_competence",
]


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'crew.db'}"


def build_interview(interview_id: str, rating: int) -> dict:
    return {
        "interview_id": interview_id,
        "position_code": "able_seaman",
        "industry_code": "maritime",
        "answers": [
            {"slot": slot, "competency_code": code, "rating": rating}
            for slot, code in enumerate(DEFAULT_CODES, start=1)
        ],
    }


def write_jsonl(path: Path, lines: list[str]) -> Path:
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def invoke(runner: CliRunner, database_url: str, *args: str):
    return runner.invoke(app, [*args, "--database-url", database_url])


def test_cli_scores_imports_outcomes_and_learns(
    tmp_path: Path, runner: CliRunner, database_url: str
) -> None:
    interviews_path = write_jsonl(
        tmp_path / "interviews.jsonl",
        [json.dumps(build_interview("I-001", 4)), json.dumps(build_interview("I-002", 3))],
    )
    outcomes_path = write_jsonl(
        tmp_path / "outcomes.jsonl",
        [
            json.dumps({"interview_id": "I-001", "hired": True, "started": True}),
            json.dumps({"interview_id": "I-002", "outcome_score": 40}),
            json.dumps({"interview_id": "I-003", "performance_rating": 9}),
        ],
    )
    output_path = tmp_path / "out" / "results.json"

    seeded = invoke(runner, database_url, "seed-weights")
    assert seeded.exit_code == 0, seeded.output
    assert "Seeded default weights as v1." in seeded.output

    again = invoke(runner, database_url, "seed-weights")
    assert "nothing seeded" in again.output

    scored = invoke(
        runner,
        database_url,
        "score",
        "--interviews",
        str(interviews_path),
        "--output",
        str(output_path),
    )
    assert scored.exit_code == 0, scored.output
    rendered = json.loads(output_path.read_text(encoding="utf-8"))
    assert [item["interview_id"] for item in rendered["results"]] == ["I-001", "I-002"]
    assert rendered["metadata"]["weight_version"] == "v1"

    imported = invoke(runner, database_url, "import-outcomes", "--outcomes", str(outcomes_path))
    assert imported.exit_code == 0, imported.output
    assert "Imported 2 outcomes (1 skipped)." in imported.output

    learned = invoke(runner, database_url, "learn", "--dry-run")
    assert learned.exit_code == 0, learned.output
    assert '"status": "insufficient_samples"' in learned.output
    assert '"dry_run": true' in learned.output


def test_cli_version_management(runner: CliRunner, database_url: str) -> None:
    invoke(runner, database_url, "seed-weights")

    listed = invoke(runner, database_url, "versions", "--log-level", "ERROR")
    assert listed.exit_code == 0, listed.output
    versions = json.loads(listed.stdout)
    assert versions[0]["version"] == 1
    assert versions[0]["is_active"] is True

    refused = invoke(runner, database_url, "activate", "99")
    assert refused.exit_code == 1
    assert "not_found" in refused.output

    rollback = invoke(runner, database_url, "rollback")
    assert rollback.exit_code == 1
    assert "no superseded version" in rollback.output

    frozen = invoke(runner, database_url, "freeze", "1", "--notes", "incident review")
    assert frozen.exit_code == 0, frozen.output

    health = invoke(runner, database_url, "health", "--log-level", "ERROR")
    assert health.exit_code == 0, health.output
    report = json.loads(health.stdout)
    assert report["active_version"] == 1
    assert report["is_frozen"] is True
    assert report["frozen_notes"] == "incident review"

    unfrozen = invoke(runner, database_url, "unfreeze", "1")
    assert unfrozen.exit_code == 0, unfrozen.output
    assert invoke(runner, database_url, "freeze", "7").exit_code == 1


def test_cli_rejects_unknown_config_keys(
    tmp_path: Path, runner: CliRunner, database_url: str
) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text("policy:\n  hire_treshold: 60\n", encoding="utf-8")

    result = invoke(runner, database_url, "versions", "--config", str(config_path))

    assert result.exit_code != 0


def test_cli_learn_runs_cycle(runner: CliRunner, database_url: str) -> None:
    result = invoke(runner, database_url, "learn", "--window-days", "30", "--log-level", "ERROR")

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["status"] == "insufficient_samples"
    assert payload["window_days"] == 30
    assert payload["cycle_id"]
