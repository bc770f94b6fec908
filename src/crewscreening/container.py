"""Dependency injection container for the screening system."""

from __future__ import annotations

from dependency_injector import containers, providers

from .core import (
    CalibrationConfig,
    CalibrationLayer,
    CompetencyScorer,
    DecisionPolicy,
    OutcomePredictor,
    PolicyConfig,
    RawScoreEngine,
    RiskFlagDetector,
    ScoringConfig,
    ScreeningCore,
)
from .learning import (
    LearningConfig,
    LearningLoop,
    LearningRunLock,
    StabilityConfig,
    StabilityGuard,
    TuningConfig,
    TuningService,
)
from .pipeline import ScreeningPipeline
from .storage import (
    DecisionLedger,
    LearningHistoryRepository,
    OutcomeRepository,
    ScoredInterviewRepository,
    WeightStore,
    create_db_engine,
    create_session_factory,
)


class ScreeningContainer(containers.DeclarativeContainer):
    """Dependency-injector container definition."""

    config = providers.Configuration()

    engine = providers.Singleton(
        create_db_engine,
        url=config.database.url,
        echo=config.database.echo,
    )
    session_factory = providers.Singleton(create_session_factory, engine=engine)

    weight_store = providers.Singleton(WeightStore, session_factory=session_factory)
    interview_repository = providers.Singleton(
        ScoredInterviewRepository, session_factory=session_factory
    )
    outcome_repository = providers.Singleton(OutcomeRepository, session_factory=session_factory)
    decision_ledger = providers.Singleton(DecisionLedger, session_factory=session_factory)
    learning_history = providers.Singleton(
        LearningHistoryRepository, session_factory=session_factory
    )

    scoring_config = providers.Singleton(ScoringConfig)
    calibration_config = providers.Singleton(CalibrationConfig)
    policy_config = providers.Singleton(PolicyConfig)
    tuning_config = providers.Singleton(TuningConfig)
    learning_config = providers.Singleton(LearningConfig)
    stability_config = providers.Singleton(StabilityConfig)

    detector = providers.Singleton(RiskFlagDetector)
    scorer = providers.Singleton(CompetencyScorer)
    score_engine = providers.Singleton(
        RawScoreEngine,
        scorer=scorer,
        detector=detector,
        config=scoring_config,
    )
    calibration = providers.Singleton(
        CalibrationLayer,
        population=interview_repository,
        config=calibration_config,
    )
    decision_policy = providers.Singleton(DecisionPolicy, config=policy_config)
    predictor = providers.Singleton(
        OutcomePredictor,
        english_min_score=scoring_config.provided.english_boost_min_score,
    )

    screening_core = providers.Singleton(
        ScreeningCore,
        engine=score_engine,
        calibration=calibration,
        policy=decision_policy,
        predictor=predictor,
    )

    tuning_service = providers.Singleton(TuningService, config=tuning_config, predictor=predictor)
    stability_guard = providers.Singleton(StabilityGuard, config=stability_config)
    learning_lock = providers.Singleton(
        LearningRunLock,
        session_factory=session_factory,
        name=learning_config.provided.lock_name,
        max_runtime_seconds=learning_config.provided.lock_max_runtime_seconds,
    )

    learning_loop = providers.Factory(
        LearningLoop,
        store=weight_store,
        history=learning_history,
        tuning=tuning_service,
        guard=stability_guard,
        lock=learning_lock,
        predictor=predictor,
        config=learning_config,
    )

    pipeline = providers.Factory(
        ScreeningPipeline,
        core=screening_core,
        store=weight_store,
        interviews=interview_repository,
        decisions=decision_ledger,
    )


def create_container(*, settings: dict | None = None) -> ScreeningContainer:
    """Instantiate container with optional overrides."""

    container = ScreeningContainer()

    if not settings:
        return container

    database_settings = settings.get("database", {}) if isinstance(settings, dict) else {}
    if database_settings:
        container.config.from_dict({"database": database_settings})

    if "scoring" in settings:
        container.scoring_config.override(
            providers.Singleton(ScoringConfig, **settings["scoring"])
        )

    if "calibration" in settings:
        container.calibration_config.override(
            providers.Singleton(CalibrationConfig, **settings["calibration"])
        )

    if "policy" in settings:
        container.policy_config.override(providers.Singleton(PolicyConfig, **settings["policy"]))

    if "tuning" in settings:
        tuning = {
            key: tuple(value) if key.endswith("_bounds") else value
            for key, value in settings["tuning"].items()
        }
        container.tuning_config.override(providers.Singleton(TuningConfig, **tuning))

    if "learning" in settings:
        container.learning_config.override(
            providers.Singleton(LearningConfig, **settings["learning"])
        )

    if "stability" in settings:
        container.stability_config.override(
            providers.Singleton(StabilityConfig, **settings["stability"])
        )

    return container


__all__ = ["ScreeningContainer", "create_container"]
