"""Resumable object-storage uploads (MinIO / S3 multipart).

The MinIO client is synchronous, so each transfer runs in a worker thread.
The client reports every buffered part through the ``progress`` hook; that
hook forwards ProgressEvents to the caller's event loop and is also where a
canceled transfer stops (MinIO aborts the multipart upload when the hook
raises).
"""

import asyncio
import io
import logging
import threading
from datetime import datetime, timedelta, timezone

from minio import Minio
from minio.error import S3Error

from storefront_media.enums import Provider
from storefront_media.errors import UploadCanceled, normalize, normalize_storage_error
from storefront_media.providers.base import ProgressSink, ProviderAdapter
from storefront_media.schemas import (
    ProgressEvent,
    StorageListing,
    StorageRef,
    StoredObject,
    UploadRequest,
    UploadResult,
)

logger = logging.getLogger(__name__)

MIN_PART_SIZE = 5 * 1024 * 1024


class _ChunkProgress(threading.Thread):
    """Progress hook for ``Minio.put_object``.

    MinIO only accepts Thread instances here; this one is never started.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        on_progress: ProgressSink | None,
        abort: threading.Event,
        total_bytes: int,
    ):
        super().__init__(daemon=True)
        self._loop = loop
        self._on_progress = on_progress
        self._abort = abort
        self._total = total_bytes
        self._sent = 0

    def set_meta(self, object_name: str, total_length: int) -> None:
        self._total = total_length or self._total

    def update(self, size: int) -> None:
        if self._abort.is_set():
            raise UploadCanceled(provider=Provider.resumable_storage)
        self._sent += size
        if self._on_progress is None:
            return
        total = self._total or self._sent
        event = ProgressEvent(
            bytes_transferred=self._sent,
            total_bytes=total,
            fraction_complete=min(self._sent / total, 1.0) if total else 1.0,
        )
        self._loop.call_soon_threadsafe(self._on_progress, event)


class ResumableUpload:
    """Handle for one in-flight chunked upload.

    ``await result()`` settles with an UploadResult; ``cancel()`` is a
    no-op once the transfer has finished or was already canceled.
    """

    def __init__(self, path: str, total_bytes: int):
        self.path = path
        self.total_bytes = total_bytes
        self._abort = threading.Event()
        self._canceled = asyncio.Event()
        self._task: asyncio.Task | None = None
        self._outcome: UploadResult | None = None

    @property
    def done(self) -> bool:
        return self._outcome is not None or (self._task is not None and self._task.done())

    @property
    def canceled(self) -> bool:
        return self._canceled.is_set()

    def cancel(self) -> None:
        if self.done or self._canceled.is_set():
            return
        logger.info("Canceling upload of %s", self.path)
        self._abort.set()
        self._canceled.set()

    async def result(self) -> UploadResult:
        if self._outcome is not None:
            return self._outcome
        if self._task is None:
            raise RuntimeError("upload was never started")

        if not self._task.done():
            cancel_wait = asyncio.ensure_future(self._canceled.wait())
            try:
                await asyncio.wait({self._task, cancel_wait}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                cancel_wait.cancel()

        if self._task.done():
            self._outcome = self._task.result()
        else:
            self._outcome = UploadResult.failure(UploadCanceled(provider=Provider.resumable_storage))
        return self._outcome


class ObjectStorageAdapter(ProviderAdapter):
    provider = Provider.resumable_storage
    supports_progress = True

    def __init__(
        self,
        client: Minio,
        bucket: str,
        public_base_url: str = "",
        signed_url_expiry: timedelta = timedelta(days=7),
        part_size: int = MIN_PART_SIZE,
    ):
        self._client = client
        self.bucket = bucket
        self._public_base_url = public_base_url.rstrip("/")
        self._signed_url_expiry = signed_url_expiry
        self._part_size = max(part_size, MIN_PART_SIZE)

    # -- uploads -----------------------------------------------------------

    def start(
        self,
        request: UploadRequest,
        destination_path: str,
        on_progress: ProgressSink | None = None,
    ) -> ResumableUpload:
        """Begin a transfer on the running loop and return its handle."""
        loop = asyncio.get_running_loop()
        upload = ResumableUpload(destination_path, request.size_bytes)
        progress = _ChunkProgress(loop, on_progress, upload._abort, request.size_bytes)
        upload._task = loop.create_task(self._transfer(request, destination_path, progress))
        return upload

    async def send(self, request: UploadRequest, destination_path: str) -> UploadResult:
        return await self.send_with_progress(request, destination_path, None)

    async def send_with_progress(
        self,
        request: UploadRequest,
        destination_path: str,
        on_progress: ProgressSink | None,
    ) -> UploadResult:
        result = await self.start(request, destination_path, on_progress).result()
        return result.raise_for_error()

    async def _transfer(
        self,
        request: UploadRequest,
        destination_path: str,
        progress: _ChunkProgress,
    ) -> UploadResult:
        logger.info("Uploading to object storage: %s/%s", self.bucket, destination_path)
        try:
            await asyncio.to_thread(self._put, request, destination_path, progress)
            url = await asyncio.to_thread(self.object_url, destination_path)
        except Exception as exc:
            error = normalize(exc, self.provider)
            logger.warning(
                "Object storage upload of %s failed: %s (%s)",
                destination_path, error.kind.value, error.raw_code,
            )
            return UploadResult.failure(error, self.provider)

        logger.info("Upload successful: %s", url)
        return UploadResult.ok(
            provider=self.provider,
            remote_id=destination_path,
            primary_url=url,
            size_bytes=request.size_bytes,
            mime_type=request.mime_type,
            created_at=datetime.now(timezone.utc),
            path=destination_path,
        )

    def _put(self, request: UploadRequest, destination_path: str, progress: _ChunkProgress) -> None:
        self._client.put_object(
            bucket_name=self.bucket,
            object_name=destination_path,
            data=io.BytesIO(request.file_bytes),
            length=len(request.file_bytes),
            content_type=request.mime_type,
            metadata={
                "original-name": request.file_name,
                "uploaded-at": datetime.now(timezone.utc).isoformat(),
            },
            part_size=self._part_size,
            progress=progress,
        )

    # -- object access -----------------------------------------------------

    def object_url(self, path: str) -> str:
        """Public URL when a public base is configured, else a presigned GET."""
        if self._public_base_url:
            return f"{self._public_base_url}/{self.bucket}/{path}"
        return self._client.presigned_get_object(
            bucket_name=self.bucket,
            object_name=path,
            expires=self._signed_url_expiry,
        )

    async def get_object(self, path: str) -> StoredObject:
        try:
            stat = await asyncio.to_thread(self._client.stat_object, self.bucket, path)
            url = await asyncio.to_thread(self.object_url, path)
        except S3Error as exc:
            raise normalize_storage_error(exc) from exc
        return StoredObject(
            path=path,
            url=url,
            size_bytes=stat.size,
            mime_type=stat.content_type,
            updated_at=stat.last_modified,
        )

    async def delete(self, path: str) -> None:
        # S3 deletes are silent for missing keys; stat first so callers see NOT_FOUND
        try:
            await asyncio.to_thread(self._client.stat_object, self.bucket, path)
            await asyncio.to_thread(self._client.remove_object, self.bucket, path)
        except S3Error as exc:
            raise normalize_storage_error(exc) from exc
        logger.info("Successfully deleted: %s", path)

    async def list_folder(self, folder: str) -> StorageListing:
        """Immediate children of ``folder``, split into files and sub-folders."""
        prefix = folder.strip("/")
        prefix = f"{prefix}/" if prefix else ""
        try:
            objects = await asyncio.to_thread(
                lambda: list(self._client.list_objects(self.bucket, prefix=prefix, recursive=False))
            )
        except S3Error as exc:
            raise normalize_storage_error(exc) from exc

        listing = StorageListing()
        for obj in objects:
            path = obj.object_name.rstrip("/")
            ref = StorageRef(path=path, name=path.rsplit("/", 1)[-1])
            if obj.is_dir:
                listing.folders.append(ref)
            else:
                listing.files.append(ref)
        return listing

    def bucket_exists(self) -> bool:
        return self._client.bucket_exists(self.bucket)

    def ensure_bucket(self) -> None:
        """Create the media bucket if it doesn't exist."""
        if not self.bucket_exists():
            self._client.make_bucket(self.bucket)
            logger.info("Created MinIO bucket: %s", self.bucket)
        else:
            logger.info("MinIO bucket already exists: %s", self.bucket)

