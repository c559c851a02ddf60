from compress_webhook.core.exceptions import TooLarge, UpstreamFailure
from compress_webhook.services.webhook_service import handle_event

from conftest import FakeCompressor, FakeRecordStore, make_config, make_runtime


def test_scenario_a_large_document_is_compressed():
    records = FakeRecordStore()
    compressor = FakeCompressor({"ok": True, "original_bytes": 500000, "compressed_bytes": 300000, "ratio": 0.6})
    runtime = make_runtime(records=records, compressor=compressor)

    body, status = handle_event({"record": {"id": 1, "name": "doc.pdf", "metadata": {"size": 500000}}}, runtime)

    assert status == 200
    assert body["ok"] is True
    assert len(compressor.calls) == 1
    locator, overwrite = compressor.calls[0]
    assert (locator.bucket, locator.name) == ("Class Writing Uploads", "doc.pdf")
    assert overwrite is True
    row = records.row(1)
    assert row["status"] == "done"
    assert row["compressed_size_bytes"] == 300000
    assert row["compression_ratio"] == 0.6
    assert records.statuses(1) == ["pending", "done"]


def test_scenario_b_small_document_is_skipped():
    records = FakeRecordStore()
    compressor = FakeCompressor()
    runtime = make_runtime(records=records, compressor=compressor)

    body, status = handle_event({"record": {"id": 2, "name": "small.pdf", "metadata": {"size": 1000}}}, runtime)

    assert status == 200
    assert body["skipped"] is True
    assert compressor.calls == []
    assert records.row(2)["status"] == "skipped"
    assert records.row(2)["processing_started_at"] is None
    assert "pending" not in records.statuses(2)


def test_scenario_c_worker_timeout_records_error():
    records = FakeRecordStore()
    compressor = FakeCompressor(error=UpstreamFailure.timeout(120))
    runtime = make_runtime(records=records, compressor=compressor)

    body, status = handle_event({"record": {"id": 3, "name": "doc.pdf", "size": 900000}}, runtime)

    assert status == 504
    assert body["ok"] is False
    row = records.row(3)
    assert row["status"] == "error"
    assert row["processing_finished_at"]
    assert row["processing_error"] == "timeout"
    assert row["compressed_size_bytes"] is None
    assert row["compression_ratio"] is None


def test_unexpected_fault_is_contained():
    records = FakeRecordStore()
    compressor = FakeCompressor(error=KeyError("surprise"))
    runtime = make_runtime(records=records, compressor=compressor)

    body, status = handle_event({"new": {"id": 4, "name": "doc.pdf"}}, runtime)

    assert status == 500
    assert body["ok"] is False
    assert records.row(4)["status"] == "error"
    assert records.row(4)["processing_error"] == "internal"


def test_unknown_size_is_processed():
    compressor = FakeCompressor({"ok": True, "compressed_bytes": 1, "ratio": 0.1})
    runtime = make_runtime(compressor=compressor)
    _, status = handle_event({"record": {"id": 5, "name": "doc.pdf"}}, runtime)
    assert status == 200
    assert len(compressor.calls) == 1


def test_too_large_is_marked_distinctly():
    records = FakeRecordStore()
    compressor = FakeCompressor(error=TooLarge(details={"error": "too_large", "size_mb": 700}))
    runtime = make_runtime(records=records, compressor=compressor)

    body, status = handle_event({"record": {"id": 6, "name": "huge.pdf", "size": 10**9}}, runtime)

    assert status == 200
    assert body == {"error": "too_large", "size_mb": 700, "ok": False}
    assert records.row(6)["status"] == "error"
    assert records.row(6)["processing_error"] == "too_large"


def test_generic_upstream_failure_is_502():
    records = FakeRecordStore()
    runtime = make_runtime(records=records, compressor=FakeCompressor(error=UpstreamFailure("compressor-service HTTP 500")))
    body, status = handle_event({"record": {"id": 7, "name": "doc.pdf"}}, runtime)
    assert status == 502
    assert body["error"] == "compressor-service HTTP 500"
    assert records.row(7)["processing_error"] == "upstream_failure"


def test_done_write_failure_still_finalizes_error():
    records = FakeRecordStore(fail_statuses={"done"})
    runtime = make_runtime(records=records, compressor=FakeCompressor({"ok": True, "compressed_bytes": 1}))
    body, status = handle_event({"record": {"id": 8, "name": "doc.pdf"}}, runtime)
    assert status == 502
    assert body["error_type"] == "StorageIOError"
    assert records.statuses(8) == ["pending", "error"]


def test_missing_locator_is_rejected_before_any_write():
    records = FakeRecordStore()
    compressor = FakeCompressor()
    runtime = make_runtime(config=make_config(default_bucket=""), records=records, compressor=compressor)

    body, status = handle_event({"record": {"id": 9, "name": "doc.pdf"}}, runtime)

    assert status == 400
    assert body["error_type"] == "MissingLocator"
    assert records.writes == []
    assert compressor.calls == []


def test_bad_bearer_token_is_rejected_before_any_write():
    records = FakeRecordStore()
    runtime = make_runtime(config=make_config(webhook_secret="s3cret"), records=records)

    body, status = handle_event({"record": {"id": 10, "name": "doc.pdf"}}, runtime, auth_header="Bearer wrong")
    assert status == 401
    assert records.writes == []

    _, status = handle_event({"record": {"id": 10, "name": "doc.pdf"}}, runtime, auth_header="Bearer s3cret")
    assert status == 200


def test_missing_configuration_is_reported():
    runtime = make_runtime(config=make_config(compressor_url=""))
    body, status = handle_event({"record": {"id": 11, "name": "doc.pdf"}}, runtime)
    assert status == 500
    assert body["error_type"] == "ConfigurationError"
    assert "PDF_COMPRESSOR_URL" in body["error"]


def test_non_object_body_is_rejected():
    body, status = handle_event(None, make_runtime())
    assert status == 400
    assert body["error_type"] == "ValidationError"


def test_overwrite_flag_can_be_disabled_per_event():
    compressor = FakeCompressor({"ok": True})
    runtime = make_runtime(compressor=compressor)
    handle_event({"record": {"id": 12, "name": "doc.pdf"}, "overwrite": False}, runtime)
    assert compressor.calls[0][1] is False


def test_successful_redelivery_clears_too_large_marker():
    records = FakeRecordStore()
    event = {"record": {"id": 13, "name": "doc.pdf", "size": 900000}}

    handle_event(event, make_runtime(records=records, compressor=FakeCompressor(error=TooLarge())))
    assert records.row(13)["processing_error"] == "too_large"

    done = FakeCompressor({"ok": True, "original_bytes": 900000, "compressed_bytes": 1, "ratio": 0.0})
    _, status = handle_event(event, make_runtime(records=records, compressor=done))

    assert status == 200
    row = records.row(13)
    assert row["status"] == "done"
    assert row["processing_error"] is None
    assert row["compressed_size_bytes"] == 1
