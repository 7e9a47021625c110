from __future__ import annotations


class ReportError(Exception):
    """Base for every failure the HTTP layer knows how to render."""

    status_code = 500
    message = "Internal server error"

    def __init__(self, message: str | None = None, detail: str | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message
        self.detail = detail


class ValidationError(ReportError):
    status_code = 400
    message = "A description (at least 3 characters) or a photo is required"


class UploadError(ReportError):
    status_code = 400
    message = "File upload failed"


class PayloadTooLarge(UploadError):
    message = "File too large"


class UnsupportedMediaType(UploadError):
    message = "Unsupported file type"


class NotFoundError(ReportError):
    status_code = 404
    message = "Not found"


class StorageError(ReportError):
    status_code = 500
    message = "Internal server error"


class MalformedStoreError(ReportError):
    """The record file exists but cannot be decoded. Never leaves the store."""
