"""Custom exception hierarchy for the scan capture and annotation engine."""

from __future__ import annotations


class ScanCoreError(Exception):
    """Base exception for all scancore-specific errors."""

    def __init__(self, message: str, details: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(ScanCoreError):
    """Raised when configuration is invalid or missing."""
    pass


class CaptureUnavailable(ScanCoreError):
    """Raised when no sensor frame or view is available at capture time."""
    pass


class GeometryError(ScanCoreError):
    """Raised when geometry operations fail."""
    pass


class DegenerateGeometry(GeometryError):
    """Raised for zero-length vectors, singular matrices or points behind the camera."""
    pass


class SerializationFailure(ScanCoreError):
    """Raised when an annotation document cannot be encoded or decoded."""
    pass


class StorageFailure(ScanCoreError):
    """Raised when the persistence collaborator fails."""
    pass


class S3StorageFailure(StorageFailure):
    """Raised when S3 operations fail."""
    pass
