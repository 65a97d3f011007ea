"""Image host adapters."""

from collections.abc import Iterable
from urllib.parse import urlparse

from storefront_media.enums import Provider
from storefront_media.providers.base import ProgressSink, ProviderAdapter
from storefront_media.providers.legacy import LegacyDirectAdapter
from storefront_media.providers.object_storage import ObjectStorageAdapter, ResumableUpload
from storefront_media.providers.relay import RelayUploadAdapter

LEGACY_HOSTS = ("ibb.co", "imgbb.com")
RELAY_HOSTS = ("freeimage.host", "iili.io")


def _host_matches(host: str, domains: Iterable[str]) -> bool:
    return any(host == d or host.endswith(f".{d}") for d in domains)


def provider_for_url(url: str, storage_hosts: Iterable[str] = ()) -> Provider | None:
    """Which provider an existing image URL points at, if any."""
    host = (urlparse(url).hostname or "").lower()
    if not host:
        return None
    if _host_matches(host, LEGACY_HOSTS):
        return Provider.legacy_direct
    if _host_matches(host, RELAY_HOSTS):
        return Provider.relay
    if _host_matches(host, [h.lower().split(":")[0] for h in storage_hosts if h]):
        return Provider.resumable_storage
    return None


__all__ = [
    "LegacyDirectAdapter",
    "ObjectStorageAdapter",
    "ProgressSink",
    "ProviderAdapter",
    "RelayUploadAdapter",
    "ResumableUpload",
    "provider_for_url",
]
