import threading

from utils.autosave import AutoSaveCoordinator
from utils.data_protection import BACKUP_CHECK_KEY
from utils.storage import WriteResult


def test_burst_of_updates_writes_once_with_final_value(backend):
    saver = AutoSaveCoordinator(backend, "students", delay_ms=100)
    for i in range(10):
        saver.update([{"id": str(i)}])

    assert saver.wait_idle(timeout=5)
    assert saver.write_count == 1
    assert backend.get("students") == [{"id": "9"}]
    saver.close()


def test_flush_writes_immediately(backend):
    saver = AutoSaveCoordinator(backend, "settings", delay_ms=60_000)
    saver.update({"schoolName": "Now"})
    assert saver.is_saving

    result = saver.flush()

    assert result.ok
    assert not saver.is_saving
    assert backend.get("settings") == {"schoolName": "Now"}
    saver.close()


def test_flush_with_nothing_pending(backend):
    saver = AutoSaveCoordinator(backend, "settings")
    assert saver.flush() is None
    assert saver.write_count == 0


def test_cancel_drops_pending_value(backend):
    saver = AutoSaveCoordinator(backend, "students", delay_ms=60_000)
    saver.update([1])
    saver.cancel()
    assert saver.wait_idle(timeout=1)
    assert backend.get("students") is None


def test_snapshot_taken_at_update_time(backend):
    saver = AutoSaveCoordinator(backend, "students", delay_ms=60_000)
    value = [{"id": "1"}]
    saver.update(value)
    value.append({"id": "2"})
    saver.flush()
    assert backend.get("students") == [{"id": "1"}]


def test_successful_save_writes_heartbeat(backend):
    saver = AutoSaveCoordinator(backend, "students", delay_ms=0)
    saver.update([])
    saver.flush()
    assert backend.get(BACKUP_CHECK_KEY) is not None


def test_last_saved_never_moves_backwards(backend):
    times = iter([200.0, 100.0])
    saver = AutoSaveCoordinator(backend, "students", delay_ms=60_000, clock=lambda: next(times))
    saver.update([1])
    saver.flush()
    first = saver.last_saved
    saver.update([2])
    saver.flush()
    assert saver.last_saved == first
    assert saver.write_count == 2


def test_error_callback_receives_quota_failure(backend):
    errors = []
    backend.config.db_quota_bytes = 10
    backend.db_store.quota_bytes = 10
    saver = AutoSaveCoordinator(
        backend, "students", delay_ms=60_000, on_error=lambda key, result: errors.append((key, result))
    )
    saver.update(["x" * 100])
    result = saver.flush()
    assert not result.ok
    assert saver.last_error is result
    assert errors and errors[0][0] == "students"
    assert isinstance(errors[0][1], WriteResult)
    assert errors[0][1].quota_exceeded
    assert saver.last_saved is None


def test_flush_returns_result_of_write_done_by_timer(backend):
    backend.db_store.quota_bytes = 10
    saver = AutoSaveCoordinator(backend, "students", delay_ms=0)
    saver.update(["x" * 100])
    assert saver.wait_idle(timeout=5)

    result = saver.flush()

    assert result is not None
    assert result.quota_exceeded
    assert result is saver.last_result


def test_flush_result_follows_latest_update(backend):
    saver = AutoSaveCoordinator(backend, "students", delay_ms=0)
    saver.update([1])
    assert saver.wait_idle(timeout=5)
    assert saver.flush().ok
    assert backend.get("students") == [1]


def test_concurrent_updates_from_threads(backend):
    saver = AutoSaveCoordinator(backend, "students", delay_ms=50)

    def worker(n):
        for i in range(20):
            saver.update([n, i])

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    saver.close()

    saved = backend.get("students")
    assert saved is not None
    assert saved[1] == 19


def test_update_after_close_is_ignored(backend):
    saver = AutoSaveCoordinator(backend, "students", delay_ms=0)
    saver.close()
    saver.update([1])
    assert not saver.is_saving
    assert backend.get("students") is None
