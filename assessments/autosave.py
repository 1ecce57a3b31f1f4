"""
Module: assessments.autosave

Purpose:
    Debounced, non-blocking persistence of in-progress answers.
    Bursts of edits to the same question collapse into one write carrying
    the latest value; each question is written independently.

Key Classes:
    - AutosavePipeline: per-(attempt, question) coalescing write queue
    - AutosaveWarning: a write that was rejected or gave up after retries

Used By:
    - assessments.views: the save endpoint pushes validated payloads here

Each write carries the time its request arrived; the deadline is judged
against that, not against when the debounced write finally runs.

Submit never relies on this queue having drained; it scores whatever
reached the database.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import defaultdict
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from typing import Callable, Dict, List, Optional, Tuple

from django.db import close_old_connections
from django.utils import timezone

from .conf import engine_setting
from .exceptions import ExamEngineError
from .store import record_response

logger = logging.getLogger(__name__)

Key = Tuple[int, int]
Writer = Callable[[int, int, dict, datetime], object]
Pending = Tuple[dict, datetime]


@dataclass(frozen=True)
class AutosaveWarning:
    attempt_id: int
    question_id: int
    message: str

    def as_dict(self) -> dict:
        return {"question_id": self.question_id, "message": self.message}


class AutosavePipeline:
    """
    Coalescing write queue keyed by (attempt_id, question_id).

    Usage:
        pipeline = AutosavePipeline(store.record_response)
        pipeline.push(attempt_id, question_id, {"selected_option_ids": [3]}, received_at)
        ...
        warnings = pipeline.drain_warnings(attempt_id)

    Only the most recent pending payload per key survives; a push inside
    the debounce window replaces it and restarts the window. At most one
    write per key is in flight, so writes for one question apply in order
    while other questions proceed in parallel.
    """

    def __init__(
        self,
        writer: Writer,
        debounce_seconds: float = 0.5,
        max_retries: int = 3,
        backoff_seconds: float = 0.1,
        max_workers: int = 4,
        synchronous: bool = False,
    ):
        self._writer = writer
        self._debounce = debounce_seconds
        self._max_retries = max_retries
        self._backoff = backoff_seconds
        self._synchronous = synchronous

        self._lock = threading.Lock()
        self._pending: Dict[Key, Pending] = {}
        self._timers: Dict[Key, threading.Timer] = {}
        self._inflight: Dict[Key, Future] = {}
        self._warnings: Dict[int, List[AutosaveWarning]] = defaultdict(list)
        self._executor = None if synchronous else ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="autosave"
        )

    @property
    def is_synchronous(self) -> bool:
        return self._synchronous

    # --- Public API ---

    def push(self, attempt_id: int, question_id: int, payload: dict,
             received_at: Optional[datetime] = None) -> None:
        """
        Queue the latest answer for a question, superseding any pending one.

        ``received_at`` is when the request reached the server (defaults to now).
        """
        key = (attempt_id, question_id)
        entry = (payload, received_at or timezone.now())
        if self._synchronous:
            self._write_with_retry(key, entry)
            return

        with self._lock:
            self._pending[key] = entry
            timer = self._timers.pop(key, None)
            if timer is not None:
                timer.cancel()
            timer = threading.Timer(self._debounce, self._dispatch, args=(key,))
            timer.daemon = True
            self._timers[key] = timer
        timer.start()

    def flush(self, attempt_id: Optional[int] = None, timeout: Optional[float] = None) -> int:
        """
        Write pending answers now (all, or one attempt's) and wait for them.

        Returns:
            Number of writes waited on.
        """
        if self._synchronous:
            return 0

        deadline = None if timeout is None else time.monotonic() + timeout
        waited = 0
        while True:
            with self._lock:
                keys = [k for k in self._pending if attempt_id is None or k[0] == attempt_id]
                for key in keys:
                    timer = self._timers.pop(key, None)
                    if timer is not None:
                        timer.cancel()
            for key in keys:
                self._dispatch(key)

            with self._lock:
                futures = [f for k, f in self._inflight.items() if attempt_id is None or k[0] == attempt_id]
            if not futures:
                return waited

            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            done, not_done = wait(futures, timeout=remaining)
            waited += len(done)
            if not_done:
                return waited

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending) + len(self._inflight)

    def drain_warnings(self, attempt_id: int) -> List[AutosaveWarning]:
        with self._lock:
            return self._warnings.pop(attempt_id, [])

    def forget(self, attempt_id: int) -> List[AutosaveWarning]:
        """
        Drop what is still held for a finished attempt; returns its last warnings.

        Writes still queued are discarded since the store would reject them.
        """
        with self._lock:
            for key in [k for k in self._pending if k[0] == attempt_id]:
                del self._pending[key]
                timer = self._timers.pop(key, None)
                if timer is not None:
                    timer.cancel()
            return self._warnings.pop(attempt_id, [])

    def shutdown(self) -> None:
        """Flush everything and stop the worker threads."""
        self.flush()
        if self._executor is not None:
            self._executor.shutdown(wait=True)

    # --- Internals ---

    def _dispatch(self, key: Key) -> None:
        with self._lock:
            self._timers.pop(key, None)
            if key in self._inflight:
                # The running write re-dispatches when it finishes
                return
            entry = self._pending.pop(key, None)
            if entry is None:
                return
            self._inflight[key] = self._executor.submit(self._run, key, entry)

    def _run(self, key: Key, entry: Pending) -> None:
        try:
            self._write_with_retry(key, entry)
        finally:
            with self._lock:
                self._inflight.pop(key, None)
                ready = key in self._pending and key not in self._timers
            if ready:
                self._dispatch(key)

    def _write_with_retry(self, key: Key, entry: Pending) -> None:
        attempt_id, question_id = key
        payload, received_at = entry
        for attempt_no in range(self._max_retries + 1):
            try:
                self._writer(attempt_id, question_id, payload, received_at)
                return
            except ExamEngineError as e:
                # Rejections (closed attempt, bad payload) will not succeed on retry
                logger.warning(f"Autosave rejected for attempt {attempt_id} question {question_id}: {e.detail}")
                self._warn(key, e.detail)
                return
            except Exception as e:
                if attempt_no >= self._max_retries:
                    logger.error(
                        f"Autosave gave up for attempt {attempt_id} question {question_id} "
                        f"after {attempt_no + 1} tries: {e}"
                    )
                    self._warn(key, "Your answer could not be saved. Please try again.")
                    return
                delay = self._backoff * (2 ** attempt_no)
                logger.warning(
                    f"Autosave failed for attempt {attempt_id} question {question_id} "
                    f"(try {attempt_no + 1}), retrying in {delay:.2f}s: {e}"
                )
                time.sleep(delay)

    def _warn(self, key: Key, message: str) -> None:
        attempt_id, question_id = key
        with self._lock:
            self._warnings[attempt_id].append(AutosaveWarning(attempt_id, question_id, message))


def persist_response(attempt_id: int, question_id: int, payload: dict, received_at: Optional[datetime] = None):
    """Writer for worker threads; releases the thread's DB connection afterwards."""
    try:
        return record_response(attempt_id, question_id, payload, now=received_at)
    finally:
        close_old_connections()


@lru_cache(maxsize=None)
def get_pipeline() -> AutosavePipeline:
    """Process-wide pipeline built from EXAM_ENGINE settings."""
    synchronous = not engine_setting("AUTOSAVE_ASYNC")
    return AutosavePipeline(
        # Inline writes share the request's connection
        writer=record_response if synchronous else persist_response,
        debounce_seconds=engine_setting("AUTOSAVE_DEBOUNCE_SECONDS"),
        max_retries=engine_setting("AUTOSAVE_MAX_RETRIES"),
        backoff_seconds=engine_setting("AUTOSAVE_BACKOFF_SECONDS"),
        max_workers=engine_setting("AUTOSAVE_WORKERS"),
        synchronous=synchronous,
    )
