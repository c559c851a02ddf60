"""Per-object compression status lifecycle.

States: pending, done, error, skipped (absent = no row written yet).

    absent -> pending -> done | error
    absent -> skipped

Each write overwrites the row for that id; nothing serializes concurrent
deliveries for the same id, so the last write wins.
"""

from __future__ import annotations

import contextlib
import logging
from enum import Enum
from typing import Any, Callable, Dict, Iterator, Optional

from compress_webhook.core.utils import utc_now_iso
from compress_webhook.services.dispatcher import CompressionResult
from compress_webhook.services.storage import RecordStore

logger = logging.getLogger(__name__)


class State(str, Enum):
    PENDING = "pending"
    DONE = "done"
    ERROR = "error"
    SKIPPED = "skipped"


TERMINAL_STATES = frozenset({State.DONE, State.ERROR, State.SKIPPED})

INTERNAL_ERROR_MARKER = "internal"

# Every write sets all of these so a redelivery never inherits stale values.
RESULT_FIELDS = (
    "compressed_size_bytes",
    "compression_ratio",
    "hit_target",
    "overwrote",
    "pass_used",
)


def _cleared(*names: str) -> Dict[str, Any]:
    return {name: None for name in names}


class StatusTracker:
    """Owns every write to the status table."""

    def __init__(
        self,
        records: RecordStore,
        table: str = "pdf_storage",
        clock: Callable[[], str] = utc_now_iso,
    ) -> None:
        self.records = records
        self.table = table
        self.clock = clock

    def _write(self, record_id: Any, fields: Dict[str, Any]) -> None:
        if record_id is None:
            logger.warning("[status] Record has no id; not persisting status=%s", fields.get("status"))
            return
        self.records.update(self.table, record_id, fields)
        logger.info("[%s] Status updated: %s", record_id, fields.get("status"))

    def mark_pending(self, record_id: Any) -> None:
        self._write(record_id, {
            **_cleared("processing_finished_at", "processing_error", *RESULT_FIELDS),
            "status": State.PENDING.value,
            "processing_started_at": self.clock(),
        })

    def mark_done(self, record_id: Any, result: CompressionResult) -> None:
        self._write(record_id, {
            "status": State.DONE.value,
            "processing_finished_at": self.clock(),
            "compressed_size_bytes": result.compressed_bytes,
            "compression_ratio": result.ratio,
            "hit_target": result.hit_target,
            "overwrote": result.overwrote,
            "pass_used": result.pass_used,
            "processing_error": None,
        })

    def mark_error(self, record_id: Any, marker: str = INTERNAL_ERROR_MARKER) -> None:
        self._write(record_id, {
            **_cleared(*RESULT_FIELDS),
            "status": State.ERROR.value,
            "processing_finished_at": self.clock(),
            "processing_error": marker,
        })

    def mark_skipped(self, record_id: Any, reason: str = "") -> None:
        if reason:
            logger.info("[%s] Skipping: %s", record_id, reason)
        self._write(record_id, {
            **_cleared("processing_started_at", "processing_finished_at", "processing_error", *RESULT_FIELDS),
            "status": State.SKIPPED.value,
        })

    @contextlib.contextmanager
    def tracking(self, record_id: Any) -> Iterator["TrackedJob"]:
        """Write ``pending`` and guarantee a terminal write on every exit.

        If the block leaves without recording ``done`` or ``error`` (including
        when it raises), an ``error`` row is written best-effort. A failure of
        that write is logged and swallowed; the block's own exception still
        propagates.
        """
        self.mark_pending(record_id)
        job = TrackedJob(self, record_id)
        try:
            yield job
        except Exception as exc:
            if job.state is None:
                job.fail_quietly(getattr(exc, "marker", INTERNAL_ERROR_MARKER))
            raise
        else:
            if job.state is None:
                logger.warning("[%s] Tracking block exited without a terminal status", record_id)
                job.fail_quietly(INTERNAL_ERROR_MARKER)


class TrackedJob:
    """Handle for one in-flight object inside ``StatusTracker.tracking``."""

    def __init__(self, tracker: StatusTracker, record_id: Any) -> None:
        self.tracker = tracker
        self.record_id = record_id
        self.state: Optional[State] = None

    def done(self, result: CompressionResult) -> None:
        self.tracker.mark_done(self.record_id, result)
        self.state = State.DONE

    def error(self, marker: str) -> None:
        self.tracker.mark_error(self.record_id, marker)
        self.state = State.ERROR

    def fail_quietly(self, marker: str) -> None:
        try:
            self.error(marker)
        except Exception:
            logger.exception("[%s] Could not record error status", self.record_id)
