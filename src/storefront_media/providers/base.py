"""Provider adapter interface shared by all image hosts."""

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from storefront_media.enums import Provider
from storefront_media.schemas import ProgressEvent, UploadRequest, UploadResult

ProgressSink = Callable[[ProgressEvent], None]

# Ordered lookup paths; the first non-empty value wins
FieldPath = tuple[str, ...]


class ProviderAdapter(ABC):
    """One remote image host behind the common ``send`` call shape.

    ``send`` returns a successful UploadResult or raises MediaError.
    Adapters that report progress set ``supports_progress`` and implement
    ``send_with_progress``.
    """

    provider: Provider
    supports_progress: bool = False

    @abstractmethod
    async def send(self, request: UploadRequest, destination_path: str) -> UploadResult:
        ...

    async def send_with_progress(
        self,
        request: UploadRequest,
        destination_path: str,
        on_progress: ProgressSink | None,
    ) -> UploadResult:
        return await self.send(request, destination_path)


def first_populated(obj: Mapping[str, Any] | None, paths: Iterable[FieldPath]) -> Any:
    """Try each path into a nested mapping; return the first non-empty value."""
    for path in paths:
        node: Any = obj
        for key in path:
            if not isinstance(node, Mapping):
                node = None
                break
            node = node.get(key)
        if node not in (None, "", {}, []):
            return node
    return None
