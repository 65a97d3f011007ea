"""Image file validation rules, checked before any network call."""

import re
from dataclasses import dataclass

from storefront_media.config import Settings
from storefront_media.enums import Constraint
from storefront_media.errors import ValidationError
from storefront_media.schemas import UploadRequest, ValidationOutcome, Violation

FILENAME_RE = re.compile(r"[\w\-. ]+", re.ASCII)

DEFAULT_MIME_TYPES = frozenset({
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/svg+xml",
    "image/bmp",
    "image/avif",
    "image/heic",
    "image/heif",
})

DEFAULT_EXTENSIONS = frozenset({
    ".jpg", ".jpeg", ".png", ".gif", ".webp",
    ".svg", ".bmp", ".avif", ".heic", ".heif",
})


@dataclass(frozen=True)
class ImagePolicy:
    max_size_bytes: int = 50 * 1024 * 1024
    allowed_mime_types: frozenset[str] = DEFAULT_MIME_TYPES
    allowed_extensions: frozenset[str] = DEFAULT_EXTENSIONS

    @classmethod
    def from_settings(cls, settings: Settings) -> "ImagePolicy":
        return cls(
            max_size_bytes=settings.max_file_size_mb * 1024 * 1024,
            allowed_mime_types=frozenset(m.lower() for m in settings.allowed_mime_types),
            allowed_extensions=frozenset(e.lower() for e in settings.allowed_extensions),
        )


DEFAULT_POLICY = ImagePolicy()


def file_extension(name: str) -> str:
    """Lower-cased extension including the dot; empty when there is none."""
    idx = name.rfind(".")
    return name[idx:].lower() if idx >= 0 else ""


def check_image_file(
    name: str | None,
    size: int | None,
    mime_type: str | None,
    policy: ImagePolicy = DEFAULT_POLICY,
) -> ValidationOutcome:
    """Evaluate every constraint in order. Returns all violations (empty = valid)."""
    violations: list[Violation] = []

    if not name or not size or size <= 0:
        violations.append(Violation(
            constraint=Constraint.empty,
            reason="No file provided" if not name else "File is empty",
        ))

    if size and size > policy.max_size_bytes:
        violations.append(Violation(
            constraint=Constraint.size,
            reason=f"File size exceeds maximum limit of {policy.max_size_bytes // (1024 * 1024)}MB",
        ))

    if (mime_type or "").lower() not in policy.allowed_mime_types:
        allowed = ", ".join(sorted(policy.allowed_mime_types))
        violations.append(Violation(
            constraint=Constraint.mime_type,
            reason=f"File type {mime_type or '(none)'} is not allowed. Allowed types: {allowed}",
        ))

    extension = file_extension(name or "")
    if extension not in policy.allowed_extensions:
        allowed = ", ".join(sorted(policy.allowed_extensions))
        violations.append(Violation(
            constraint=Constraint.extension,
            reason=f"File extension {extension or '(none)'} is not allowed. Allowed extensions: {allowed}",
        ))

    if not FILENAME_RE.fullmatch(name or ""):
        violations.append(Violation(
            constraint=Constraint.filename,
            reason="Filename contains invalid characters",
        ))

    return ValidationOutcome(valid=not violations, violations=violations)


def validate_image_file(
    name: str | None,
    size: int | None,
    mime_type: str | None,
    policy: ImagePolicy = DEFAULT_POLICY,
) -> None:
    """Raise ValidationError for the first violated constraint."""
    outcome = check_image_file(name, size, mime_type, policy)
    if not outcome.valid:
        first = outcome.violations[0]
        raise ValidationError(first.reason, raw_code=first.constraint.value)


def validate(request: UploadRequest, policy: ImagePolicy = DEFAULT_POLICY) -> None:
    validate_image_file(request.file_name, request.size_bytes, request.mime_type, policy)
