"""
Debounced writer for one storage key.

Every update() stores a snapshot of the latest value and restarts a single
timer. When the timer fires the settled value is written once, so ten edits
inside the window cost one write. Writes for a coordinator are serialised by
its own lock; separate coordinators target separate keys and need no locking
between them.
"""

import copy
import logging
import threading
import time
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from utils.data_protection import create_backup_heartbeat
from utils.storage import StorageBackend, WriteResult

logger = logging.getLogger(__name__)

DEFAULT_DELAY_MS = 500

_NOTHING = object()


class AutoSaveCoordinator:
    def __init__(
        self,
        backend: StorageBackend,
        key: str,
        delay_ms: int = DEFAULT_DELAY_MS,
        on_saved: Optional[Callable[[str, Any], None]] = None,
        on_error: Optional[Callable[[str, WriteResult], None]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.backend = backend
        self.key = key
        self.delay = max(delay_ms, 0) / 1000.0
        self.on_saved = on_saved
        self.on_error = on_error
        self.clock = clock

        self.write_count = 0
        self.last_error: Optional[WriteResult] = None
        self._last_saved_ts: Optional[float] = None
        self.last_result: Optional[WriteResult] = None
        self._update_seq = 0
        self._result_seq = 0
        self._pending = _NOTHING
        self._timer: Optional[threading.Timer] = None
        self._in_flight = 0
        self._state_lock = threading.Lock()
        self._write_lock = threading.Lock()
        self._idle = threading.Event()
        self._idle.set()
        self._closed = False

    # -----------------------------
    # Public API
    # -----------------------------
    def update(self, value: Any) -> None:
        """Schedule value to be written after the quiet period."""
        snapshot = copy.deepcopy(value)
        with self._state_lock:
            if self._closed:
                logger.warning(f"Autosave for '{self.key}' is closed; update ignored")
                return
            self._pending = snapshot
            self._update_seq += 1
            self._idle.clear()
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.delay, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def flush(self) -> Optional[WriteResult]:
        """Write any pending value now instead of waiting for the timer.

        Returns the result of the write that holds the latest update, even
        when the timer thread performed that write. None if nothing was ever
        updated.
        """
        with self._state_lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            seq = self._update_seq
        result = self._fire()
        if result is not None:
            return result
        with self._state_lock:
            if seq and self._result_seq == seq:
                return self.last_result
        return None

    def cancel(self) -> None:
        """Drop the pending value without writing it."""
        with self._state_lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._pending = _NOTHING
            if self._in_flight == 0:
                self._idle.set()

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until nothing is pending or in flight. Returns False on timeout."""
        return self._idle.wait(timeout)

    def close(self, timeout: float = 5.0) -> None:
        self.flush()
        # a timer thread may still be mid-write
        self.wait_idle(timeout)
        with self._state_lock:
            self._closed = True

    @property
    def is_saving(self) -> bool:
        with self._state_lock:
            return self._pending is not _NOTHING or self._in_flight > 0

    @property
    def last_saved(self) -> Optional[datetime]:
        if self._last_saved_ts is None:
            return None
        return datetime.fromtimestamp(self._last_saved_ts, tz=timezone.utc)

    # -----------------------------
    # Internals
    # -----------------------------
    def _fire(self) -> Optional[WriteResult]:
        # pending value is taken under the write lock: writes land in update order
        with self._write_lock:
            with self._state_lock:
                value = self._pending
                self._pending = _NOTHING
                seq = self._update_seq
                if value is _NOTHING:
                    if self._in_flight == 0:
                        self._idle.set()
                    return None
                self._in_flight += 1

            result = None
            try:
                result = self.backend.write(self.key, value)
                if result.ok:
                    self.write_count += 1
                    self._mark_saved(self.clock())
                    create_backup_heartbeat(self.backend)
            except Exception as e:
                logger.error(f"Autosave for '{self.key}' failed: {e}")
                result = WriteResult(False, "io_error", str(e))
            finally:
                with self._state_lock:
                    self._in_flight -= 1
                    self.last_result = result
                    self._result_seq = seq
                    if self._in_flight == 0 and self._pending is _NOTHING:
                        self._idle.set()

        if result.ok:
            self.last_error = None
            logger.debug(f"Autosaved '{self.key}' at {self.last_saved}")
            if self.on_saved is not None:
                self.on_saved(self.key, value)
        else:
            self.last_error = result
            logger.warning(f"⚠️ Autosave for '{self.key}' did not happen: {result.error}")
            if self.on_error is not None:
                self.on_error(self.key, result)
        return result

    def _mark_saved(self, completed_at: float) -> None:
        # Completion order wins; an older completion never rolls the stamp back
        if self._last_saved_ts is None or completed_at > self._last_saved_ts:
            self._last_saved_ts = completed_at
