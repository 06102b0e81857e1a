"""
Defines custom exceptions for the service to allow for more specific error handling.

Every exception carries the HTTP status the web layer answers with.
"""


class ReleaseProxyError(Exception):
    """Base exception for all service-specific errors."""

    http_status = 500


class BadRequestError(ReleaseProxyError):
    """Raised when a request is missing required parameters or has invalid ones."""

    http_status = 400


class NotFoundError(ReleaseProxyError):
    """Raised when the requested application or platform is not in the catalog."""

    http_status = 404


class UpstreamError(ReleaseProxyError):
    """
    Raised when the release API or an asset host fails. Carries the upstream
    status code when one was received.
    """

    http_status = 502

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status
        if status is not None:
            self.http_status = status


class InitializationError(ReleaseProxyError):
    """Raised when a backing module view cannot be constructed."""


class StorageError(ReleaseProxyError):
    """Raised when the backing store fails to read, write or create a path."""


class DirectoryExistsError(StorageError):
    """Raised by `create_directory` when the directory already exists."""


class ConfigurationError(ReleaseProxyError):
    """Raised for issues related to configuration loading or validation."""
