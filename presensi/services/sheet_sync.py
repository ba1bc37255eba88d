"""Serialized mirroring of the attendance table onto the spreadsheet.

A single worker thread drains a FIFO of sync tasks, so at most one "replace
the whole tab" call is ever in flight no matter how many requests asked for
one. Each task retries with linear backoff and always resolves its future
with a ``{"ok": ...}`` dict; sync failures never raise into a request.
"""

from __future__ import annotations

import enum
import logging
import queue
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Callable

from flask import current_app
from sqlalchemy.orm import joinedload

from ..app import db
from ..constants import SHEET_SYNC_FAILED
from ..models import Attendance, Participant
from ..shared import sheets
from ..shared.sheet_format import (
    build_attendance_values,
    build_participant_values,
    sheet_rows_from_attendance,
)

logger = logging.getLogger("presensi.sync")

EXTENSION_KEY = "sheet_sync"


class SyncState(str, enum.Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    FAILED_EXHAUSTED = "FAILED_EXHAUSTED"


@dataclass(eq=False)
class SyncTask:
    future: Future = field(default_factory=Future)
    state: SyncState = SyncState.PENDING
    attempts: int = 0


_STOP = object()


class SheetSyncQueue:
    def __init__(
        self,
        runner: Callable[[], dict],
        attempts: int = 3,
        backoff: float = 0.3,
        sleep: Callable[[float], None] = time.sleep,
        name: str = "sheet-sync",
    ):
        self.runner = runner
        self.attempts = max(1, attempts)
        self.backoff = backoff
        self.sleep = sleep
        self.name = name
        self._tasks: queue.Queue = queue.Queue()
        self._lock = threading.Lock()
        self._worker: threading.Thread | None = None

    def _ensure_worker(self) -> None:
        # caller holds self._lock
        if self._worker is None or not self._worker.is_alive():
            self._worker = threading.Thread(
                target=self._work, name=self.name, daemon=True
            )
            self._worker.start()

    def submit(self) -> SyncTask:
        task = SyncTask()
        with self._lock:
            self._ensure_worker()
            self._tasks.put(task)
        return task

    def enqueue(self) -> Future:
        """Schedule one sync; the future resolves to ``{"ok": bool, ...}``."""
        return self.submit().future

    def join(self) -> None:
        """Block until every queued task has settled."""
        self._tasks.join()

    def shutdown(self) -> None:
        with self._lock:
            worker = self._worker
            if worker is None or not worker.is_alive():
                return
            self._tasks.put(_STOP)
        worker.join()
        # tasks submitted while the stop marker was queued still need a worker
        with self._lock:
            if not self._tasks.empty():
                self._ensure_worker()

    def _work(self) -> None:
        while True:
            task = self._tasks.get()
            try:
                if task is _STOP:
                    return
                self._run(task)
            finally:
                self._tasks.task_done()

    def _run(self, task: SyncTask) -> None:
        # a caller-cancelled future still gets its sync; only the result is dropped
        deliver = task.future.set_running_or_notify_cancel()
        task.state = SyncState.RUNNING
        result: dict = {"ok": False}
        for attempt in range(1, self.attempts + 1):
            task.attempts = attempt
            try:
                outcome = self.runner()
            except Exception:
                logger.exception("[SHEET-SYNC] attempt=%d result=error", attempt)
                outcome = None
            if isinstance(outcome, dict) and outcome.get("ok"):
                result = outcome
                break
            logger.warning(
                "[SHEET-SYNC] attempt=%d/%d result=%s",
                attempt,
                self.attempts,
                outcome.get("reason", "failed") if isinstance(outcome, dict) else "error",
            )
            if attempt < self.attempts:
                self.sleep(self.backoff * attempt)

        if result.get("ok"):
            task.state = SyncState.SUCCESS
            logger.info("[SHEET-SYNC] attempts=%d result=ok", task.attempts)
        else:
            task.state = SyncState.FAILED_EXHAUSTED
            result = {"ok": False}
        if deliver:
            task.future.set_result(result)


def sync_attendance_sheet() -> dict:
    """Replace the attendance tab with a fresh snapshot of the table."""

    client = sheets.get_sheets_client()
    if client is None:
        return {"ok": False, "reason": "missing_config"}
    rows = (
        Attendance.query.options(joinedload(Attendance.participant))
        .join(Participant, Attendance.participant_id == Participant.id)
        .order_by(
            Attendance.event_date.desc(),
            Attendance.created_at.asc(),
            Participant.name.asc(),
        )
        .all()
    )
    values = build_attendance_values(sheet_rows_from_attendance(rows))
    client.replace_values(
        current_app.config["GOOGLE_SHEETS_ATTENDANCE_SHEET_NAME"], values
    )
    sessions = len({row.event_date for row in rows})
    return {"ok": True, "sessions": sessions, "rows": len(rows)}


def sync_participants_sheet() -> dict:
    """Rewrite the participants tab from the participants table."""

    client = sheets.get_sheets_client()
    if client is None:
        return {"ok": False, "reason": "missing_config"}
    participants = Participant.query.order_by(
        Participant.created_at.asc(), Participant.name.asc()
    ).all()
    client.replace_values(
        current_app.config["GOOGLE_SHEETS_PARTICIPANTS_SHEET_NAME"],
        build_participant_values(participants),
    )
    return {"ok": True, "rows": len(participants)}


def _runner_for(app) -> Callable[[], dict]:
    def run() -> dict:
        with app.app_context():
            return sync_attendance_sheet()

    return run


def init_sheet_sync(app) -> SheetSyncQueue:
    sync_queue = SheetSyncQueue(
        _runner_for(app),
        attempts=app.config["SHEET_SYNC_ATTEMPTS"],
        backoff=app.config["SHEET_SYNC_BACKOFF_SECONDS"],
    )
    app.extensions[EXTENSION_KEY] = sync_queue
    return sync_queue


def get_sync_queue() -> SheetSyncQueue:
    return current_app.extensions[EXTENSION_KEY]


def request_attendance_sync() -> str | None:
    """Sync after an attendance change; return a warning code on failure.

    Waits for the queued task (and any ahead of it) to settle. Returns
    ``None`` when mirroring is not configured.
    """

    if not sheets.sheets_configured():
        logger.debug("[SHEET-SYNC] skipped: spreadsheet not configured")
        return None
    result = get_sync_queue().enqueue().result()
    if result.get("ok"):
        return None
    return SHEET_SYNC_FAILED
