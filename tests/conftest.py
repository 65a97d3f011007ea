import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone

import httpx
import pytest
from minio.error import S3Error

from storefront_media.client import MediaClient
from storefront_media.config import Settings
from storefront_media.schemas import UploadRequest

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def s3_error(code: str, message: str = "S3 error") -> S3Error:
    return S3Error(
        code=code,
        message=message,
        resource="/media",
        request_id="req-1",
        host_id="host-1",
        response=None,
    )


@dataclass
class FakeObjectInfo:
    object_name: str
    is_dir: bool = False
    size: int | None = None
    content_type: str | None = None
    last_modified: datetime | None = None


@dataclass
class StoredBlob:
    data: bytes
    content_type: str
    metadata: dict = field(default_factory=dict)


class FakeMinio:
    """In-memory stand-in for ``minio.Minio`` covering the calls we make."""

    def __init__(self, fail_with: Exception | None = None, gate: threading.Event | None = None):
        self.buckets: set[str] = {"media"}
        self.objects: dict[tuple[str, str], StoredBlob] = {}
        self.fail_with = fail_with
        self.gate = gate
        self.put_calls = 0
        self.put_done = threading.Event()

    def put_object(
        self,
        bucket_name,
        object_name,
        data,
        length,
        content_type="application/octet-stream",
        metadata=None,
        part_size=0,
        progress=None,
    ):
        self.put_calls += 1
        try:
            if progress is not None:
                progress.set_meta(object_name=object_name, total_length=length)
            if self.fail_with is not None:
                raise self.fail_with
            chunks = []
            while True:
                chunk = data.read(part_size or length)
                if not chunk:
                    break
                if progress is not None:
                    progress.update(len(chunk))
                chunks.append(chunk)
                if self.gate is not None and not self.gate.wait(timeout=5):
                    raise RuntimeError("gate was never opened")
            self.objects[(bucket_name, object_name)] = StoredBlob(
                b"".join(chunks), content_type, dict(metadata or {}),
            )
        finally:
            self.put_done.set()

    def presigned_get_object(self, bucket_name, object_name, expires=None):
        return f"https://minio.test/{bucket_name}/{object_name}?X-Amz-Signature=fake"

    def stat_object(self, bucket_name, object_name):
        blob = self.objects.get((bucket_name, object_name))
        if blob is None:
            raise s3_error("NoSuchKey", "Object does not exist")
        return FakeObjectInfo(
            object_name=object_name,
            size=len(blob.data),
            content_type=blob.content_type,
            last_modified=datetime(2026, 1, 1, tzinfo=timezone.utc),
        )

    def remove_object(self, bucket_name, object_name):
        self.objects.pop((bucket_name, object_name), None)

    def list_objects(self, bucket_name, prefix=None, recursive=False):
        prefix = prefix or ""
        seen_dirs: set[str] = set()
        for (bucket, name) in sorted(self.objects):
            if bucket != bucket_name or not name.startswith(prefix):
                continue
            rest = name[len(prefix):]
            if "/" in rest and not recursive:
                child = prefix + rest.split("/", 1)[0] + "/"
                if child not in seen_dirs:
                    seen_dirs.add(child)
                    yield FakeObjectInfo(object_name=child, is_dir=True)
                continue
            yield FakeObjectInfo(object_name=name, size=len(self.objects[(bucket, name)].data))

    def bucket_exists(self, bucket_name):
        return bucket_name in self.buckets

    def make_bucket(self, bucket_name):
        self.buckets.add(bucket_name)


def mock_http(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def make_request(**overrides) -> UploadRequest:
    values = {
        "file_bytes": PNG_BYTES,
        "file_name": "photo_01.png",
        "mime_type": "image/png",
    }
    values.update(overrides)
    return UploadRequest(**values)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        legacy_api_key="legacy-key",
        legacy_upload_url="https://api.imgbb.test/1/upload",
        relay_url="http://relay.test/api/upload",
        relay_upstream_url="https://upstream.test/api/1/upload",
        relay_upstream_api_key="upstream-key",
        minio_bucket="media",
        request_timeout_seconds=5,
    )


@pytest.fixture
def fake_minio() -> FakeMinio:
    return FakeMinio()


@pytest.fixture
def media_client_factory(settings, fake_minio):
    """Build a MediaClient whose HTTP calls go to ``handler``."""

    def factory(handler=None, **settings_overrides) -> MediaClient:
        cfg = settings.model_copy(update=settings_overrides) if settings_overrides else settings
        if handler is None:
            def handler(request):
                raise AssertionError(f"unexpected HTTP call to {request.url}")
        return MediaClient(cfg, http=mock_http(handler), minio_client=fake_minio)

    return factory
