"""Typer CLI entrypoint for the screening core and its learning loop."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

import typer
import yaml
from pydantic import ValidationError

from .container import ScreeningContainer, create_container
from .errors import LearningRunLockedError, WeightStoreConsistencyError
from .health import build_health_report
from .logging import configure_logging
from .pipeline import AuditLogger, InterviewLoadError, OutcomeLoader
from .schemas.config import load_config

app = typer.Typer(help="Seafarer interview screening CLI.")

ConfigOption = typer.Option(None, exists=True, readable=True, dir_okay=False, help="YAML config path.")
DatabaseOption = typer.Option(None, "--database-url", help="SQLAlchemy database URL.")
LogLevelOption = typer.Option("INFO", help="Log level for structured logging.")


def _build_container(
    config: Optional[Path],
    database_url: Optional[str],
    log_level: str,
) -> ScreeningContainer:
    raw: Any = {}
    if config:
        with config.open("r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle) or {}
        if not isinstance(raw, dict):
            raise typer.BadParameter("Config file must be a YAML object", param_name="config")
    try:
        settings = load_config(raw).to_settings()
    except ValidationError as exc:
        raise typer.BadParameter(str(exc), param_name="config") from exc

    if database_url:
        settings.setdefault("database", {})["url"] = database_url

    configure_logging(log_level)
    return create_container(settings=settings)


def _echo_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


@app.command()
def score(
    interviews: Path = typer.Option(..., exists=True, readable=True, dir_okay=False, help="Interviews JSONL path."),
    output: Path = typer.Option(
        ...,
        exists=False,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
        help="Output JSON path.",
    ),
    finalize: bool = typer.Option(False, help="Record decisions and lock the interviews."),
    audit_log: Optional[Path] = typer.Option(None, dir_okay=False, help="Audit log output (JSONL)."),
    config: Optional[Path] = ConfigOption,
    database_url: Optional[str] = DatabaseOption,
    log_level: str = LogLevelOption,
) -> None:
    """Score completed interviews against the active weight version."""
    container = _build_container(config, database_url, log_level)
    pipeline = container.pipeline()
    audit_logger = AuditLogger(audit_log) if audit_log else None
    try:
        results = pipeline.run(
            interviews_path=interviews,
            output_path=output,
            audit_logger=audit_logger,
            finalize=finalize,
        )
    except WeightStoreConsistencyError as exc:
        typer.echo(f"Weight store inconsistent: {exc}", err=True)
        raise typer.Exit(code=3) from exc
    typer.echo(f"Processed {len(results)} interviews. Results saved to {output}.")


@app.command()
def learn(
    window_days: Optional[int] = typer.Option(None, min=1, help="Lookback window in days."),
    industry: Optional[str] = typer.Option(None, help="Restrict the run to one industry."),
    dry_run: bool = typer.Option(False, help="Report proposed changes without persisting."),
    config: Optional[Path] = ConfigOption,
    database_url: Optional[str] = DatabaseOption,
    log_level: str = LogLevelOption,
) -> None:
    """Run one learning cycle over recent outcomes."""
    container = _build_container(config, database_url, log_level)
    loop = container.learning_loop()
    try:
        result = loop.run_learning_cycle(
            window_days=window_days,
            industry_filter=industry,
            dry_run=dry_run,
        )
    except LearningRunLockedError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=2) from exc
    _echo_json(result.to_dict())


@app.command()
def activate(
    version: int = typer.Argument(..., help="Weight version to activate."),
    actor: str = typer.Option("cli", help="Recorded in the audit trail."),
    config: Optional[Path] = ConfigOption,
    database_url: Optional[str] = DatabaseOption,
    log_level: str = LogLevelOption,
) -> None:
    """Make a candidate or superseded weight version the active one."""
    container = _build_container(config, database_url, log_level)
    result = container.weight_store().activate(version, actor=actor)
    if not result.success:
        typer.echo(f"Activation of v{version} refused: {result.reason}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Activated v{version} (previous: {result.previous_version}).")


@app.command()
def rollback(
    actor: str = typer.Option("cli", help="Recorded in the audit trail."),
    config: Optional[Path] = ConfigOption,
    database_url: Optional[str] = DatabaseOption,
    log_level: str = LogLevelOption,
) -> None:
    """Re-activate the most recently superseded, unfrozen version."""
    container = _build_container(config, database_url, log_level)
    result = container.weight_store().rollback(actor=actor)
    if result is None or not result.success:
        reason = "no superseded version" if result is None else result.reason
        typer.echo(f"Rollback refused: {reason}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Rolled back to v{result.version} (previous: {result.previous_version}).")


@app.command()
def freeze(
    version: int = typer.Argument(..., help="Weight version to freeze."),
    notes: Optional[str] = typer.Option(None, help="Why the version is frozen."),
    actor: str = typer.Option("cli", help="Recorded in the audit trail."),
    config: Optional[Path] = ConfigOption,
    database_url: Optional[str] = DatabaseOption,
    log_level: str = LogLevelOption,
) -> None:
    """Exclude a weight version from activation."""
    container = _build_container(config, database_url, log_level)
    if not container.weight_store().freeze(version, notes=notes, actor=actor):
        typer.echo(f"Weight version v{version} not found.", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Frozen v{version}.")


@app.command()
def unfreeze(
    version: int = typer.Argument(..., help="Weight version to unfreeze."),
    actor: str = typer.Option("cli", help="Recorded in the audit trail."),
    config: Optional[Path] = ConfigOption,
    database_url: Optional[str] = DatabaseOption,
    log_level: str = LogLevelOption,
) -> None:
    """Allow a frozen weight version to be activated again."""
    container = _build_container(config, database_url, log_level)
    if not container.weight_store().unfreeze(version, actor=actor):
        typer.echo(f"Weight version v{version} not found.", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Unfrozen v{version}.")


@app.command()
def versions(
    config: Optional[Path] = ConfigOption,
    database_url: Optional[str] = DatabaseOption,
    log_level: str = LogLevelOption,
) -> None:
    """List stored weight versions."""
    container = _build_container(config, database_url, log_level)
    _echo_json([info.to_dict() for info in container.weight_store().list_versions()])


@app.command()
def health(
    period_days: int = typer.Option(30, min=1, help="Reporting period in days."),
    config: Optional[Path] = ConfigOption,
    database_url: Optional[str] = DatabaseOption,
    log_level: str = LogLevelOption,
) -> None:
    """Print the stability and health report."""
    container = _build_container(config, database_url, log_level)
    try:
        report = build_health_report(
            container.weight_store(),
            container.learning_history(),
            container.stability_guard(),
            period_days=period_days,
        )
    except WeightStoreConsistencyError as exc:
        typer.echo(f"Weight store inconsistent: {exc}", err=True)
        raise typer.Exit(code=3) from exc
    _echo_json(report.to_dict())


@app.command("seed-weights")
def seed_weights(
    config: Optional[Path] = ConfigOption,
    database_url: Optional[str] = DatabaseOption,
    log_level: str = LogLevelOption,
) -> None:
    """Install the built-in default weights into an empty store."""
    container = _build_container(config, database_url, log_level)
    version = container.weight_store().seed_default(actor="cli")
    if version is None:
        typer.echo("Weight store already populated; nothing seeded.")
        return
    typer.echo(f"Seeded default weights as v{version}.")


@app.command("import-outcomes")
def import_outcomes(
    outcomes: Path = typer.Option(..., exists=True, readable=True, dir_okay=False, help="Outcomes JSONL path."),
    config: Optional[Path] = ConfigOption,
    database_url: Optional[str] = DatabaseOption,
    log_level: str = LogLevelOption,
) -> None:
    """Record real hiring outcomes for later learning cycles."""
    container = _build_container(config, database_url, log_level)
    errors: list[str] = []
    try:
        records = OutcomeLoader().load(outcomes)
    except InterviewLoadError as exc:
        records = exc.partial
        errors = exc.errors
    repository = container.outcome_repository()
    for record in records:
        repository.record(record)
    typer.echo(f"Imported {len(records)} outcomes ({len(errors)} skipped).")
    for error in errors:
        typer.echo(f"  {error}", err=True)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
