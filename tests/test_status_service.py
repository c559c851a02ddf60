import pytest

from compress_webhook.core.exceptions import StorageIOError, TooLarge, UpstreamFailure
from compress_webhook.services.dispatcher import CompressionResult
from compress_webhook.services.status_service import TERMINAL_STATES, State, StatusTracker

from conftest import FakeRecordStore

NOW = "2026-01-01T00:00:00+00:00"


def _tracker(records):
    return StatusTracker(records, table="pdf_storage", clock=lambda: NOW)


def test_pending_then_done_records_metrics(records):
    tracker = _tracker(records)
    result = CompressionResult(ok=True, original_bytes=10, compressed_bytes=6, ratio=0.6, overwrote=True, pass_used=1, hit_target=False)

    with tracker.tracking(7) as job:
        assert records.row(7)["status"] == "pending"
        job.done(result)

    row = records.row(7)
    assert records.statuses(7) == ["pending", "done"]
    assert row["processing_started_at"] == NOW
    assert row["processing_finished_at"] == NOW
    assert row["compressed_size_bytes"] == 6
    assert row["compression_ratio"] == 0.6
    assert row["overwrote"] is True
    assert row["hit_target"] is False
    assert row["pass_used"] == 1


def test_exception_inside_block_writes_error_and_propagates(records):
    tracker = _tracker(records)
    with pytest.raises(RuntimeError):
        with tracker.tracking(7):
            raise RuntimeError("boom")

    row = records.row(7)
    assert row["status"] == "error"
    assert row["processing_finished_at"] == NOW
    assert row["processing_error"] == "internal"
    assert row["compressed_size_bytes"] is None
    assert row["compression_ratio"] is None


@pytest.mark.parametrize(
    "error, marker",
    [
        (TooLarge(), "too_large"),
        (UpstreamFailure("HTTP 500"), "upstream_failure"),
        (UpstreamFailure.timeout(120), "timeout"),
        (StorageIOError("nope", operation="update"), "storage_io"),
    ],
)
def test_error_marker_follows_exception(records, error, marker):
    tracker = _tracker(records)
    with pytest.raises(type(error)):
        with tracker.tracking(1):
            raise error
    assert records.row(1)["processing_error"] == marker


def test_block_without_terminal_write_is_finalized(records):
    tracker = _tracker(records)
    with tracker.tracking(3):
        pass
    assert records.statuses(3) == ["pending", "error"]


def test_failed_finalizer_write_is_swallowed():
    records = FakeRecordStore(fail_statuses={"error"})
    tracker = _tracker(records)
    with pytest.raises(UpstreamFailure):
        with tracker.tracking(5):
            raise UpstreamFailure("worker down")
    assert records.statuses(5) == ["pending"]


def test_skipped_never_sets_started_at(records):
    tracker = _tracker(records)
    tracker.mark_skipped(9, "size 1000 <= threshold 204800")
    assert records.row(9) == {
        "status": "skipped",
        "processing_started_at": None,
        "processing_finished_at": None,
        "processing_error": None,
        "compressed_size_bytes": None,
        "compression_ratio": None,
        "hit_target": None,
        "overwrote": None,
        "pass_used": None,
    }


def test_later_delivery_overwrites_terminal_state(records):
    tracker = _tracker(records)
    tracker.mark_skipped(4)
    with tracker.tracking(4) as job:
        job.error("too_large")
    with tracker.tracking(4) as job:
        job.done(CompressionResult(ok=True, compressed_bytes=1, ratio=0.1, overwrote=True, pass_used=1, hit_target=True))

    assert records.row(4) == {
        "status": "done",
        "processing_started_at": NOW,
        "processing_finished_at": NOW,
        "processing_error": None,
        "compressed_size_bytes": 1,
        "compression_ratio": 0.1,
        "hit_target": True,
        "overwrote": True,
        "pass_used": 1,
    }


def test_error_redelivery_clears_previous_metrics(records):
    tracker = _tracker(records)
    with tracker.tracking(1) as job:
        job.done(CompressionResult(ok=True, compressed_bytes=300000, ratio=0.6, overwrote=True, pass_used=2, hit_target=True))
    with tracker.tracking(1) as job:
        job.error("upstream_failure")

    assert records.row(1) == {
        "status": "error",
        "processing_started_at": NOW,
        "processing_finished_at": NOW,
        "processing_error": "upstream_failure",
        "compressed_size_bytes": None,
        "compression_ratio": None,
        "hit_target": None,
        "overwrote": None,
        "pass_used": None,
    }


def test_pending_clears_previous_outcome(records):
    tracker = _tracker(records)
    tracker.mark_error(6, "timeout")
    tracker.mark_pending(6)
    row = records.row(6)
    assert row["status"] == "pending"
    assert row["processing_finished_at"] is None
    assert row["processing_error"] is None
    assert row["compressed_size_bytes"] is None


def test_missing_id_skips_writes(records):
    tracker = _tracker(records)
    with tracker.tracking(None) as job:
        job.done(CompressionResult(ok=True))
    assert records.writes == []


def test_terminal_states():
    assert TERMINAL_STATES == {State.DONE, State.ERROR, State.SKIPPED}
    assert State.PENDING not in TERMINAL_STATES
