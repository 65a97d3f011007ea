"""Safe, collision-resistant object names."""

import re
import secrets
import string
import time

from storefront_media.errors import ValidationError
from storefront_media.schemas import GeneratedName

MAX_NAME_LENGTH = 200
TOKEN_LENGTH = 6
_BASE36 = string.digits + string.ascii_lowercase

_UNSAFE_RE = re.compile(r"[^\w\-. ]", re.ASCII)
_SPACES_RE = re.compile(r"\s+")
_UNDERSCORES_RE = re.compile(r"_{2,}")


def _clean(text: str) -> str:
    text = _UNSAFE_RE.sub("", text)
    text = _SPACES_RE.sub("_", text)
    text = _UNDERSCORES_RE.sub("_", text)
    return text.lower()


def _fit(base: str, extension: str, limit: int = MAX_NAME_LENGTH) -> str:
    """Trim ``base`` so ``base + extension`` fits in ``limit``; the extension is kept."""
    if len(extension) >= limit:
        return (base + extension)[:limit]
    return base[:limit - len(extension)] + extension


def sanitize_filename(filename: str) -> str:
    base, extension = split_extension(_clean(filename))
    return _fit(base, extension)


def sanitize_folder(folder: str, default: str = "media") -> str:
    """Sanitize each segment of a folder path; "." and ".." segments are dropped."""
    segments = []
    for part in folder.split("/"):
        if part in ("", ".", ".."):
            continue
        cleaned = _clean(part).strip(".")[:MAX_NAME_LENGTH]
        if cleaned:
            segments.append(cleaned)
    return "/".join(segments) or default


def split_extension(name: str) -> tuple[str, str]:
    """Split at the last dot: ("photo.v2", ".png"). No dot → (name, "")."""
    idx = name.rfind(".")
    if idx < 0:
        return name, ""
    return name[:idx], name[idx:]


def random_token(length: int = TOKEN_LENGTH) -> str:
    return "".join(secrets.choice(_BASE36) for _ in range(length))


def generate(original_name: str, custom_name: str | None = None) -> GeneratedName:
    """Build the stored name for an upload.

    Custom names are sanitized and used as given; callers own their
    uniqueness, and one that sanitizes to nothing raises ValidationError.
    Otherwise the sanitized original name gets a ``_{unix_ms}_{token}``
    suffix before its extension, trimming the base so the whole name stays
    within MAX_NAME_LENGTH.
    """
    sanitized = sanitize_filename(original_name)

    if custom_name:
        base, extension = split_extension(sanitize_filename(custom_name))
        if not base:
            raise ValidationError(f"Custom name {custom_name!r} has no usable characters", raw_code="filename")
        return GeneratedName(
            base_name=base,
            sanitized_original_name=sanitized,
            extension=extension,
        )

    base, extension = split_extension(sanitized)
    suffix = f"{int(time.time() * 1000)}_{random_token()}"
    base = base[:max(MAX_NAME_LENGTH - len(suffix) - 1 - len(extension), 0)]
    return GeneratedName(
        base_name=base,
        sanitized_original_name=sanitized,
        uniquing_suffix=suffix,
        extension=extension,
    )


def generate_unique_filename(original_name: str) -> str:
    return generate(original_name).filename


def batch_custom_name(prefix: str, index: int, original_name: str) -> str:
    """Name for the ``index``-th (1-based) file of a prefixed batch."""
    _, extension = split_extension(original_name)
    return f"{prefix}_{index}{extension}"
