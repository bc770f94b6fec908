from __future__ import annotations

from crewscreening.container import create_container
from crewscreening.learning import LearningLoop
from crewscreening.schemas.config import load_config


def test_create_container_with_overrides():
    settings = load_config(
        {
            "database": {"url": "sqlite://"},
            "scoring": {"default_gate_threshold": 50, "english_boost_min_score": 80},
            "calibration": {"min_sample_size": 40},
            "policy": {"hire_threshold": 55, "hold_threshold": 45, "policy_version": "v2"},
            "tuning": {"flag_bounds": [-25, -2]},
            "learning": {"min_samples": 50, "auto_activate": True},
            "stability": {"volatility_max_ratio": 0.5, "on_violation": "review"},
        }
    ).to_settings()

    container = create_container(settings=settings)

    assert container.scoring_config().default_gate_threshold == 50
    assert container.predictor()._english_min_score == 80
    assert container.calibration()._config.min_sample_size == 40
    assert container.decision_policy().config.policy_version == "v2"
    assert container.tuning_service()._config.flag_bounds == (-25.0, -2.0)
    assert container.learning_config().min_samples == 50
    assert container.stability_guard().config.on_violation == "review"
    assert str(container.engine().url) == "sqlite://"
    assert isinstance(container.learning_loop(), LearningLoop)


def test_create_container_defaults_share_singletons():
    container = create_container(settings={"database": {"url": "sqlite://"}})

    core = container.screening_core()
    assert core is container.screening_core()
    assert core.calibration is container.calibration()
    assert container.learning_lock().name == "learning_cycle"
    assert container.pipeline() is not container.pipeline()
