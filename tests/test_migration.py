import json

from utils.migration import ALREADY_MIGRATED, DATABASE_UNAVAILABLE, MigrationManager
from utils.storage import StorageBackend


def _seed_legacy(backend, students, settings=None):
    backend.local_store.set_item("students", json.dumps(students))
    if settings is not None:
        backend.local_store.set_item("settings", json.dumps(settings))


def test_copies_legacy_data_into_database(backend):
    _seed_legacy(backend, [{"id": "1"}, {"id": "2"}], {"schoolName": "Legacy School"})

    result = MigrationManager(backend).migrate()

    assert result.success
    assert result.students_count == 2
    assert result.settings_migrated is True
    assert backend.get("students") == [{"id": "1"}, {"id": "2"}]
    assert backend.get("settings") == {"schoolName": "Legacy School"}


def test_second_run_is_a_no_op(backend):
    _seed_legacy(backend, [{"id": "1"}])
    MigrationManager(backend).migrate()
    # newer data in the database must never be replaced by legacy data
    backend.put("students", [{"id": "1"}, {"id": "new"}])

    result = MigrationManager(backend).migrate()

    assert result.success
    assert result.already_migrated
    assert result.error == ALREADY_MIGRATED
    assert result.students_count == 2
    assert backend.get("students") == [{"id": "1"}, {"id": "new"}]


def test_nothing_to_migrate(backend):
    result = MigrationManager(backend).migrate()
    assert result.success
    assert result.students_count == 0
    assert result.settings_migrated is False
    assert backend.get("students") is None


def test_local_fallback_cannot_migrate(local_config):
    backend = StorageBackend(local_config)
    backend.init()
    result = MigrationManager(backend).migrate()
    assert not result.success
    assert result.error == DATABASE_UNAVAILABLE


def test_corrupt_legacy_data_is_reported(backend):
    backend.local_store.set_item("students", "{broken")
    result = MigrationManager(backend).migrate()
    assert not result.success
    assert result.error
    assert result.to_dict()["success"] is False
