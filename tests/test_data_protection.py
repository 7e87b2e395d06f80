from datetime import datetime, timedelta, timezone

from utils.data_protection import (
    BACKUP_CHECK_KEY,
    create_backup_heartbeat,
    detect_data_loss,
    get_time_since_backup,
    record_backup,
)


def test_fresh_store_is_not_data_loss(backend):
    assert detect_data_loss(backend) is False


def test_heartbeat_with_data_present(backend):
    backend.put("students", [])
    backend.put("settings", {})
    create_backup_heartbeat(backend)
    assert detect_data_loss(backend) is False


def test_heartbeat_without_data_means_loss(backend):
    backend.put("students", [])
    backend.put("settings", {})
    create_backup_heartbeat(backend)
    backend.remove("students")
    assert detect_data_loss(backend) is True


def test_heartbeat_is_epoch_millis(backend):
    create_backup_heartbeat(backend)
    value = backend.get(BACKUP_CHECK_KEY)
    assert isinstance(value, int)
    assert value > 1_600_000_000_000


def test_time_since_backup(backend):
    now = datetime(2026, 5, 10, 12, 0, tzinfo=timezone.utc)
    assert get_time_since_backup(backend, now=now) is None

    record_backup(backend, when=now - timedelta(hours=3))
    assert get_time_since_backup(backend, now=now) == "today"

    record_backup(backend, when=now - timedelta(days=1, hours=1))
    assert get_time_since_backup(backend, now=now) == "yesterday"

    record_backup(backend, when=now - timedelta(days=5))
    assert get_time_since_backup(backend, now=now) == "5 days ago"


def test_unreadable_backup_date(backend):
    backend.put("repota_last_backup", "yesterday-ish")
    assert get_time_since_backup(backend) is None
