"""Media ingestion for the storefront: validate, name and upload images."""

from storefront_media.client import MediaClient
from storefront_media.config import Settings, get_settings
from storefront_media.enums import Constraint, ErrorKind, Provider
from storefront_media.errors import MediaError, UploadCanceled, ValidationError
from storefront_media.naming import generate, generate_unique_filename, sanitize_filename
from storefront_media.orchestrator import UploadOrchestrator
from storefront_media.schemas import (
    GeneratedName,
    ProgressEvent,
    StorageListing,
    UploadRequest,
    UploadResult,
    ValidationOutcome,
)
from storefront_media.validation import check_image_file, validate, validate_image_file

__all__ = [
    "Constraint",
    "ErrorKind",
    "GeneratedName",
    "MediaClient",
    "MediaError",
    "ProgressEvent",
    "Provider",
    "Settings",
    "StorageListing",
    "UploadCanceled",
    "UploadOrchestrator",
    "UploadRequest",
    "UploadResult",
    "ValidationError",
    "ValidationOutcome",
    "check_image_file",
    "generate",
    "generate_unique_filename",
    "get_settings",
    "sanitize_filename",
    "validate",
    "validate_image_file",
]
