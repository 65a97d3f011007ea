import enum


class Provider(str, enum.Enum):
    legacy_direct = "legacy_direct"
    relay = "relay"
    resumable_storage = "resumable_storage"


class ErrorKind(str, enum.Enum):
    validation_failed = "VALIDATION_FAILED"
    no_file = "NO_FILE"
    unauthorized = "UNAUTHORIZED"
    file_too_large = "FILE_TOO_LARGE"
    rate_limit = "RATE_LIMIT"
    upload_failed = "UPLOAD_FAILED"
    no_url = "NO_URL"
    timeout = "TIMEOUT"
    canceled = "CANCELED"
    not_found = "NOT_FOUND"
    internal_error = "INTERNAL_ERROR"


class Constraint(str, enum.Enum):
    empty = "empty"
    size = "size"
    mime_type = "mime_type"
    extension = "extension"
    filename = "filename"
