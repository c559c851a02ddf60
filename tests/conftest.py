import pytest

from compress_webhook.bootstrap import Runtime
from compress_webhook.config import RuntimeConfig
from compress_webhook.core.exceptions import StorageIOError
from compress_webhook.services.dispatcher import normalize_result


class FakeBlobStore:
    def __init__(self, objects=None, fail_on=()):
        self.objects = dict(objects or {})
        self.fail_on = set(fail_on)
        self.uploads = []
        self.deleted = []

    def download(self, bucket, name):
        if "download" in self.fail_on or (bucket, name) not in self.objects:
            raise StorageIOError(f"download failed: {bucket}/{name}", operation="download")
        return self.objects[(bucket, name)]

    def upload(self, bucket, name, data, *, content_type, overwrite, cache_control):
        if "upload" in self.fail_on:
            raise StorageIOError("upload failed (HTTP 409): The resource already exists", operation="upload")
        self.uploads.append({
            "bucket": bucket,
            "name": name,
            "data": data,
            "content_type": content_type,
            "overwrite": overwrite,
            "cache_control": cache_control,
        })
        self.objects[(bucket, name)] = data

    def delete(self, bucket, name):
        if "delete" in self.fail_on:
            raise StorageIOError("delete failed", operation="delete")
        self.deleted.append((bucket, name))
        self.objects.pop((bucket, name), None)


class FakeRecordStore:
    """PATCH semantics: fields merge into the row for that id."""

    def __init__(self, fail_tables=(), fail_statuses=()):
        self.rows = {}
        self.writes = []
        self.fail_tables = set(fail_tables)
        self.fail_statuses = set(fail_statuses)

    def update(self, table, record_id, fields):
        if table in self.fail_tables or fields.get("status") in self.fail_statuses:
            raise StorageIOError(f"update failed for {table}", operation="update")
        self.writes.append((table, record_id, dict(fields)))
        self.rows.setdefault((table, record_id), {}).update(fields)

    def row(self, record_id, table="pdf_storage"):
        return self.rows.get((table, record_id))

    def statuses(self, record_id, table="pdf_storage"):
        return [f.get("status") for t, rid, f in self.writes if t == table and rid == record_id]


class FakeCompressor:
    def __init__(self, body=None, error=None):
        self.body = body if body is not None else {"ok": True}
        self.error = error
        self.calls = []

    def compress(self, locator, overwrite=True):
        self.calls.append((locator, overwrite))
        if self.error is not None:
            raise self.error
        return normalize_result(self.body)


def make_config(**overrides):
    values = dict(
        supabase_url="https://proj.supabase.co",
        supabase_service_role="service-role",
        default_bucket="Class Writing Uploads",
        compressor_url="https://worker.example.com",
        compressor_secret="worker-secret",
        allowed_origins=("https://admin.example.net", "*.example.com"),
        threshold_bytes=204800,
    )
    values.update(overrides)
    return RuntimeConfig(**values)


def make_runtime(config=None, blobs=None, records=None, compressor=None):
    return Runtime(
        config=config or make_config(),
        blobs=blobs if blobs is not None else FakeBlobStore(),
        records=records if records is not None else FakeRecordStore(),
        compressor=compressor if compressor is not None else FakeCompressor(),
    )


@pytest.fixture
def records():
    return FakeRecordStore()


@pytest.fixture
def blobs():
    return FakeBlobStore()
