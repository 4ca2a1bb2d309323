"""
Exception handling for the clinic files engine.

Every error raised by the engine derives from FileStorageError and carries
a stable error code plus a details mapping for the transport layer.
"""

from typing import Any, Dict, List, Optional


class FileStorageError(Exception):
    """Base exception class for the clinic files engine."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(FileStorageError):
    """Raised when there's a configuration error."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, "CONFIG_ERROR", details)


class ValidationError(FileStorageError):
    """Raised when caller input is rejected."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: str = "VALIDATION_ERROR",
    ) -> None:
        super().__init__(message, error_code, details)


class UnsupportedMediaTypeError(ValidationError):
    """Raised when a file's content type is not in the allowed set."""

    def __init__(self, content_type: str, allowed: List[str]) -> None:
        message = f"Invalid file type '{content_type}'. Allowed: {', '.join(allowed)}"
        super().__init__(
            message,
            {"content_type": content_type, "allowed": list(allowed)},
            "UNSUPPORTED_MEDIA_TYPE",
        )


class DuplicateFileError(ValidationError):
    """Raised when a file id is already attached to the target stage."""

    def __init__(self, file_id: str, attachment_point: str) -> None:
        message = f"File '{file_id}' already exists at {attachment_point}"
        super().__init__(
            message,
            {"file_id": file_id, "attachment_point": attachment_point},
            "DUPLICATE_FILE",
        )


class AttachConflictError(FileStorageError):
    """Raised when a conditional attach keeps losing to concurrent stage updates."""

    def __init__(self, file_id: str, attachment_point: str, attempts: int) -> None:
        message = (
            f"File '{file_id}' could not be attached to {attachment_point}: "
            f"stage changed concurrently on each of {attempts} attempts"
        )
        super().__init__(
            message,
            "ATTACH_CONFLICT",
            {"file_id": file_id, "attachment_point": attachment_point, "attempts": attempts},
        )


class NotFoundError(FileStorageError):
    """Raised when an attachment point, file or chunk object does not resolve."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, "NOT_FOUND", details)


class DecodeError(FileStorageError):
    """Raised when a base64 payload is malformed."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, "DECODE_ERROR", details)


class StorageUnavailableError(FileStorageError):
    """Raised when a backing store is unreachable or a write fails mid-stream."""

    def __init__(
        self, store: str, message: str, details: Optional[Dict[str, Any]] = None
    ) -> None:
        self.store = store
        full_message = f"{store} unavailable: {message}"
        super().__init__(full_message, "STORAGE_UNAVAILABLE", details)


class SizeExceededError(FileStorageError):
    """Raised when an upload is larger than the accepted maximum."""

    def __init__(self, size: int, limit: int) -> None:
        message = (
            f"File too large. Estimated size: {size / 1024 / 1024:.1f}MB, "
            f"max: {limit / 1024 / 1024:.1f}MB"
        )
        super().__init__(message, "SIZE_EXCEEDED", {"size": size, "limit": limit})


class ChunkSequenceError(FileStorageError):
    """Raised when a chunked object cannot be reassembled (gap, duplicate or bad length)."""

    def __init__(self, object_id: str, message: str) -> None:
        self.object_id = object_id
        super().__init__(
            f"Chunk sequence error for object {object_id}: {message}",
            "CHUNK_SEQUENCE_ERROR",
            {"object_id": object_id},
        )
