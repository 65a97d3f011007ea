"""Upload orchestrator: validate, name, dispatch, normalize."""

import asyncio
import logging
from collections.abc import Callable, Mapping, Sequence

from storefront_media import naming
from storefront_media.enums import ErrorKind, Provider
from storefront_media.errors import MediaError, ValidationError, normalize
from storefront_media.providers import ObjectStorageAdapter, ProgressSink, ProviderAdapter, ResumableUpload
from storefront_media.schemas import ProgressEvent, UploadRequest, UploadResult
from storefront_media.validation import DEFAULT_POLICY, ImagePolicy, validate

logger = logging.getLogger(__name__)

BatchProgressSink = Callable[[int, ProgressEvent], None]


class UploadOrchestrator:
    def __init__(
        self,
        adapters: Mapping[Provider, ProviderAdapter],
        policy: ImagePolicy = DEFAULT_POLICY,
        default_provider: Provider = Provider.resumable_storage,
        max_batch_files: int = 50,
    ):
        if default_provider == Provider.legacy_direct:
            raise ValueError("legacy_direct can be selected per upload but not as the default provider")
        self._adapters = dict(adapters)
        self.policy = policy
        self.default_provider = default_provider
        self.max_batch_files = max_batch_files

    def adapter_for(self, provider: Provider | None) -> ProviderAdapter:
        selected = provider or self.default_provider
        adapter = self._adapters.get(selected)
        if adapter is None:
            raise MediaError(
                ErrorKind.internal_error,
                f"Provider {selected.value} is not configured",
                provider=selected,
            )
        return adapter

    def destination_path(self, request: UploadRequest) -> str:
        name = naming.generate(request.file_name, request.custom_name)
        return f"{request.destination_folder_clean}/{name.filename}"

    async def upload_one(
        self,
        request: UploadRequest,
        on_progress: ProgressSink | None = None,
    ) -> UploadResult:
        """Upload a single file. Failures come back as a failed UploadResult."""
        provider = request.provider or self.default_provider
        try:
            validate(request, self.policy)
            path = self.destination_path(request)
        except ValidationError as exc:
            logger.info("Rejected %r: %s", request.file_name, exc.message)
            return UploadResult.failure(exc, provider)

        try:
            adapter = self.adapter_for(provider)
            logger.info("Uploading %r to %s as %s", request.file_name, provider.value, path)
            if on_progress is not None and adapter.supports_progress:
                return await adapter.send_with_progress(request, path, on_progress)
            return await adapter.send(request, path)
        except Exception as exc:
            error = normalize(exc, provider)
            logger.warning(
                "Upload of %r via %s failed: %s %s (%s)",
                request.file_name, provider.value, error.kind.value, error.message, error.raw_code,
            )
            return UploadResult.failure(error, provider)

    def start_resumable(
        self,
        request: UploadRequest,
        on_progress: ProgressSink | None = None,
    ) -> ResumableUpload:
        """Start a cancellable object-storage upload.

        Validation problems raise ValidationError here, before any transfer.
        """
        validate(request, self.policy)
        adapter = self.adapter_for(Provider.resumable_storage)
        if not isinstance(adapter, ObjectStorageAdapter):
            raise MediaError(ErrorKind.internal_error, "Resumable uploads need object storage")
        return adapter.start(request, self.destination_path(request), on_progress)

    async def upload_many(
        self,
        requests: Sequence[UploadRequest],
        parallel: bool = True,
        name_prefix: str | None = None,
        on_progress: BatchProgressSink | None = None,
    ) -> list[UploadResult]:
        """Upload a batch. Result i always belongs to request i."""
        if not requests:
            raise MediaError(ErrorKind.no_file, "No files provided")
        if len(requests) > self.max_batch_files:
            raise ValidationError(f"Maximum {self.max_batch_files} files can be uploaded at once")

        items = [self._batch_item(req, i, name_prefix) for i, req in enumerate(requests, start=1)]

        def sink(index: int) -> ProgressSink | None:
            if on_progress is None:
                return None
            return lambda event: on_progress(index, event)

        if parallel:
            return list(await asyncio.gather(
                *(self.upload_one(item, sink(i)) for i, item in enumerate(items))
            ))

        results: list[UploadResult] = []
        for i, item in enumerate(items):
            results.append(await self.upload_one(item, sink(i)))
        return results

    @staticmethod
    def _batch_item(request: UploadRequest, index: int, name_prefix: str | None) -> UploadRequest:
        if request.custom_name or not name_prefix:
            return request
        return request.model_copy(update={
            "custom_name": naming.batch_custom_name(name_prefix, index, request.file_name),
        })
