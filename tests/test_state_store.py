import json

import pytest

from conftest import NOW
from restic_orchestrator.core.exceptions import StateFileUnreadableError
from restic_orchestrator.state.store import OrchestrationState, StateStore


def test_missing_file_gives_defaults(tmp_path):
    state = StateStore(tmp_path / "state.json").load()

    assert state == OrchestrationState()
    assert state.repository_initialized is None
    assert state.last_backup_successful


def test_save_then_load_keeps_all_fields(tmp_path):
    store = StateStore(tmp_path / "nested" / "state.json")
    state = OrchestrationState(
        repository_initialized=True,
        last_maintenance_at=NOW,
        last_deep_maintenance_at=NOW,
        maintenance_counter=4,
        last_backup_successful=False,
    )

    store.save(state)

    assert store.load() == state
    assert [p.name for p in store.path.parent.iterdir()] == ["state.json"]


def test_corrupt_file_is_tolerated_by_load_but_not_by_read(tmp_path):
    path = tmp_path / "state.json"
    path.write_text("{not json", encoding="utf-8")
    store = StateStore(path)

    assert store.load() == OrchestrationState()
    with pytest.raises(StateFileUnreadableError):
        store.read()


def test_partial_file_defaults_missing_keys(tmp_path):
    path = tmp_path / "state.json"
    path.write_text(json.dumps({"maintenance_counter": 2}), encoding="utf-8")

    state = StateStore(path).load()

    assert state.maintenance_counter == 2
    assert state.last_maintenance_at is None
    assert state.last_maintenance_successful


def test_timestamps_are_stored_as_iso_strings(tmp_path):
    store = StateStore(tmp_path / "state.json")
    store.save(OrchestrationState(last_maintenance_at=NOW))

    data = json.loads(store.path.read_text(encoding="utf-8"))

    assert data["last_maintenance_at"] == "2026-03-14T02:30:00"
    assert data["last_deep_maintenance_at"] is None
