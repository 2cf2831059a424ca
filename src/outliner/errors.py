"""Exception types shared across the outliner package."""

from __future__ import annotations


class OutlinerError(Exception):
    """Base class for outliner errors."""


class BackendUnavailableError(OutlinerError):
    """A storage backend cannot serve the request (not configured, unreachable, failed)."""


class PermissionDeniedError(BackendUnavailableError):
    """The user did not grant (or revoked) access to the storage directory."""


class OutlineNotFoundError(OutlinerError):
    """The requested outline file does not exist in the backend."""


class HostRequestError(BackendUnavailableError):
    """The host process answered a request with ``success: false``."""

    def __init__(self, channel: str, error: str | None = None) -> None:
        self.channel = channel
        self.error = error or "unknown error"
        super().__init__(f"{channel}: {self.error}")


class ImportFormatError(OutlinerError):
    """Imported content is malformed beyond what a warning can describe."""


class NoImporterError(OutlinerError):
    """No registered importer can handle the given file or format id."""


class TemplateNotFoundError(OutlinerError):
    """No starter template is registered under the requested id."""
