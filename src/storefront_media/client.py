"""Process-wide media client: built once from Settings, passed where needed."""

import logging
from datetime import timedelta

import httpx
from minio import Minio

from storefront_media.config import Settings
from storefront_media.enums import Provider
from storefront_media.orchestrator import BatchProgressSink, UploadOrchestrator
from storefront_media.providers import (
    LegacyDirectAdapter,
    ObjectStorageAdapter,
    ProgressSink,
    RelayUploadAdapter,
    ResumableUpload,
)
from storefront_media.schemas import UploadRequest, UploadResult
from storefront_media.validation import ImagePolicy, validate

logger = logging.getLogger(__name__)


def get_minio_client(settings: Settings) -> Minio:
    """Create a MinIO client."""
    return Minio(
        settings.minio_endpoint,
        access_key=settings.minio_access_key,
        secret_key=settings.minio_secret_key,
        secure=settings.minio_use_ssl,
    )


class MediaClient:
    def __init__(
        self,
        settings: Settings,
        http: httpx.AsyncClient | None = None,
        minio_client: Minio | None = None,
    ):
        self.settings = settings
        self.http = http or httpx.AsyncClient(timeout=settings.request_timeout_seconds)
        self.policy = ImagePolicy.from_settings(settings)

        self.storage = ObjectStorageAdapter(
            minio_client or get_minio_client(settings),
            bucket=settings.minio_bucket,
            public_base_url=settings.storage_public_base_url,
            signed_url_expiry=timedelta(minutes=settings.signed_url_expiry_minutes),
            part_size=settings.upload_part_size_mb * 1024 * 1024,
        )
        adapters = {
            Provider.legacy_direct: LegacyDirectAdapter(
                self.http,
                api_key=settings.legacy_api_key,
                upload_url=settings.legacy_upload_url,
                timeout=settings.request_timeout_seconds,
            ),
            Provider.relay: RelayUploadAdapter(
                self.http,
                relay_url=settings.relay_url,
                timeout=settings.request_timeout_seconds,
            ),
            Provider.resumable_storage: self.storage,
        }
        self.orchestrator = UploadOrchestrator(
            adapters,
            policy=self.policy,
            default_provider=settings.default_provider,
            max_batch_files=settings.max_batch_files,
        )
        logger.info(
            "Media client ready (default provider %s, bucket %s)",
            settings.default_provider.value, settings.minio_bucket,
        )

    async def __aenter__(self) -> "MediaClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.http.aclose()

    def validate(self, request: UploadRequest) -> None:
        validate(request, self.policy)

    async def upload_one(self, request: UploadRequest, on_progress: ProgressSink | None = None) -> UploadResult:
        return await self.orchestrator.upload_one(request, on_progress)

    async def upload_many(
        self,
        requests: list[UploadRequest],
        parallel: bool = True,
        name_prefix: str | None = None,
        on_progress: BatchProgressSink | None = None,
    ) -> list[UploadResult]:
        return await self.orchestrator.upload_many(requests, parallel, name_prefix, on_progress)

    def start_resumable(self, request: UploadRequest, on_progress: ProgressSink | None = None) -> ResumableUpload:
        return self.orchestrator.start_resumable(request, on_progress)
