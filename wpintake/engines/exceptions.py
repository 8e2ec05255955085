"""Exceptions raised by the intake engines."""


class IntakeError(Exception):
    """Base exception for all engine errors."""


class ExtractionError(IntakeError):
    """Raised when an uploaded archive cannot be safely extracted."""


class BuildError(IntakeError):
    """Raised when packaging a build fails. No partial artifact is left behind."""


class UnsafePathError(BuildError):
    """Raised when a slug, version or type is not a single safe path component."""

    def __init__(self, field: str, value: str):
        self.field = field
        self.value = value
        super().__init__(f"unsafe {field} for a build path: {value!r}")


class UploadError(IntakeError):
    """Raised when object storage rejects or fails an upload."""


class PublishError(IntakeError):
    """Raised when publishing a built release fails."""

    def __init__(self, message: str, failed: list[str] | None = None):
        self.failed = failed or []
        super().__init__(message)
