from __future__ import annotations

import random

import pytest
from sqlalchemy import func, select, text
from sqlalchemy.exc import IntegrityError

from crewscreening.errors import WeightStoreConsistencyError
from crewscreening.schemas import DEFAULT_WEIGHT_SET, WeightSet
from crewscreening.storage import WeightStore
from crewscreening.storage.models import ModelWeightRow


def active_versions(session_factory) -> list[int]:
    with session_factory() as session:
        return list(
            session.scalars(
                select(ModelWeightRow.model_version).where(ModelWeightRow.is_active.is_(True))
            )
        )


def build_weights(default_penalty: float = -3.0) -> WeightSet:
    return WeightSet(risk_flag_penalties={"default": default_penalty})


def create_candidate(store: WeightStore, weights: WeightSet | None = None) -> int:
    version = store.create_draft(weights or build_weights())
    assert store.promote_to_candidate(version)
    return version


def test_seed_default_installs_first_active_version(session_factory):
    store = WeightStore(session_factory)

    version = store.seed_default()

    assert version == 1
    snapshot = store.active_snapshot()
    assert snapshot.version == 1
    assert snapshot.weights == DEFAULT_WEIGHT_SET
    assert store.seed_default() is None


def test_empty_store_falls_back_to_defaults(session_factory):
    store = WeightStore(session_factory)

    assert store.active_snapshot() is None
    snapshot = store.snapshot_or_default()
    assert snapshot.is_fallback is True
    assert snapshot.weights == DEFAULT_WEIGHT_SET


def test_activation_swaps_active_version_atomically(session_factory):
    store = WeightStore(session_factory)
    first = create_candidate(store)
    second = create_candidate(store, build_weights(-4.0))

    assert store.activate(first).success
    result = store.activate(second, actor="ops")

    assert result.success is True
    assert result.previous_version == first
    assert active_versions(session_factory) == [second]
    assert store.get(first).status == "superseded"
    assert store.get(second).status == "active"
    assert store.active_snapshot().weights.flag_penalty("RF_X") == -4.0


def test_activating_frozen_version_fails_and_changes_nothing(session_factory):
    store = WeightStore(session_factory)
    first = create_candidate(store)
    second = create_candidate(store)
    store.activate(first)
    store.freeze(second, notes="suspicious batch")

    for _ in range(3):
        result = store.activate(second)
        assert result.success is False
        assert result.reason == "frozen"
        assert active_versions(session_factory) == [first]

    refusals = [
        entry for entry in store.audit_trail(second) if entry["outcome"] == "refused"
    ]
    assert len(refusals) == 3


def test_unknown_and_draft_versions_are_refused(session_factory):
    store = WeightStore(session_factory)
    draft = store.create_draft(build_weights())

    assert store.activate(99).reason == "not_found"
    assert store.activate(draft).reason == "not_eligible"
    assert active_versions(session_factory) == []


def test_promote_only_from_unfrozen_draft(session_factory):
    store = WeightStore(session_factory)
    draft = store.create_draft(build_weights())
    store.freeze(draft)

    assert store.promote_to_candidate(draft) is False
    store.unfreeze(draft)
    assert store.promote_to_candidate(draft) is True
    assert store.promote_to_candidate(draft) is False


def test_single_active_invariant_across_random_operations(session_factory):
    store = WeightStore(session_factory)
    versions = [create_candidate(store, build_weights(-float(i + 1))) for i in range(5)]
    rng = random.Random(7)

    for _ in range(60):
        version = rng.choice(versions + [42])
        operation = rng.choice(["activate", "activate", "freeze", "unfreeze", "rollback"])
        if operation == "activate":
            store.activate(version)
        elif operation == "freeze":
            store.freeze(version)
        elif operation == "unfreeze":
            store.unfreeze(version)
        else:
            store.rollback()

        assert len(active_versions(session_factory)) <= 1

    store.unfreeze(versions[0])
    store.activate(versions[0])
    assert active_versions(session_factory) == [versions[0]]


def test_rollback_reactivates_latest_superseded_version(session_factory):
    store = WeightStore(session_factory)
    first = create_candidate(store)
    second = create_candidate(store)
    store.activate(first)
    store.activate(second)

    result = store.rollback()

    assert result.success is True
    assert result.version == first
    assert active_versions(session_factory) == [first]


def test_rollback_without_history_returns_none(session_factory):
    store = WeightStore(session_factory)
    store.seed_default()

    assert store.rollback() is None


def test_freeze_records_notes_and_timestamp(session_factory):
    store = WeightStore(session_factory)
    version = store.seed_default()

    assert store.freeze(version, notes="incident review", actor="qa")

    info = store.get(version)
    assert info.is_frozen is True
    assert info.frozen_notes == "incident review"
    assert info.frozen_at is not None
    assert store.active_snapshot().is_frozen is True
    assert store.freeze(404) is False


def test_multiple_active_versions_raise_loudly(session_factory):
    store = WeightStore(session_factory)
    first = create_candidate(store)
    second = create_candidate(store)
    with session_factory.begin() as session:
        session.execute(text("DROP INDEX uq_model_weights_single_active"))
        session.execute(text("UPDATE model_weights SET is_active = 1"))

    with pytest.raises(WeightStoreConsistencyError) as excinfo:
        store.active_snapshot()

    assert sorted(excinfo.value.active_versions) == [first, second]


def test_database_index_blocks_second_active_row(session_factory):
    store = WeightStore(session_factory)
    create_candidate(store)
    create_candidate(store)

    with pytest.raises(IntegrityError):
        with session_factory.begin() as session:
            session.execute(text("UPDATE model_weights SET is_active = 1"))

    with session_factory() as session:
        assert session.scalar(
            select(func.count()).select_from(ModelWeightRow).where(ModelWeightRow.is_active.is_(True))
        ) == 0


def test_list_versions_and_audit_trail(session_factory):
    store = WeightStore(session_factory)
    version = store.seed_default(actor="bootstrap")

    infos = store.list_versions()
    actions = [entry["action"] for entry in store.audit_trail(version)]

    assert [info.version for info in infos] == [version]
    assert infos[0].to_dict()["status"] == "active"
    assert actions == ["create_draft", "promote", "activate"]
    assert store.load(version) == DEFAULT_WEIGHT_SET
    assert store.load(99) is None
