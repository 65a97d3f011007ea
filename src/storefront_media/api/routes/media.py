"""Media library endpoints: batch upload, browse, inspect, delete."""

import logging

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from storefront_media.api.deps import get_media_client
from storefront_media.client import MediaClient
from storefront_media.enums import Provider
from storefront_media.schemas import StorageListing, StoredObject, UploadRequest, UploadResult

logger = logging.getLogger(__name__)
router = APIRouter(tags=["media"])


@router.post("/media", response_model=list[UploadResult])
async def upload_media(
    files: list[UploadFile] = File(...),
    folder: str = Form(default="media"),
    provider: Provider | None = Form(default=None),
    name_prefix: str | None = Form(default=None),
    parallel: bool = Form(default=True),
    media: MediaClient = Depends(get_media_client),
):
    requests: list[UploadRequest] = []
    for file in files:
        content = await file.read()
        requests.append(UploadRequest(
            file_bytes=content,
            file_name=file.filename or "",
            mime_type=file.content_type or "application/octet-stream",
            destination_folder=folder,
            provider=provider,
        ))

    results = await media.upload_many(requests, parallel=parallel, name_prefix=name_prefix)
    failed = sum(1 for r in results if not r.success)
    logger.info("Batch upload: %d files, %d failed", len(results), failed)
    return results


@router.get("/media", response_model=StorageListing)
async def list_media(
    folder: str = Query(default="media"),
    media: MediaClient = Depends(get_media_client),
):
    return await media.storage.list_folder(folder)


@router.get("/media/object/{path:path}", response_model=StoredObject)
async def get_media_object(
    path: str,
    media: MediaClient = Depends(get_media_client),
):
    return await media.storage.get_object(path)


@router.delete("/media/object/{path:path}")
async def delete_media_object(
    path: str,
    media: MediaClient = Depends(get_media_client),
) -> dict[str, bool]:
    await media.storage.delete(path)
    return {"deleted": True}
