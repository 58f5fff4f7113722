"""
API error taxonomy.

Every error carries the HTTP status it maps to and renders to the JSON body
``{"message": ..., "details"?: ..., "error"?: ...}``.
"""

from __future__ import annotations

from typing import Any


class ApiError(Exception):
    status_code = 500
    default_message = "Server error"

    def __init__(
        self,
        message: str | None = None,
        *,
        details: dict[str, Any] | None = None,
        error: str | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.details = details
        self.error = error
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"message": self.message}
        if self.details:
            body["details"] = self.details
        if self.error:
            body["error"] = self.error
        return body


class InvalidRequest(ApiError):
    status_code = 400
    default_message = "Invalid request"


class RecordNotFound(ApiError):
    status_code = 404
    default_message = "Record not found"


class NoFileConfigured(ApiError):
    """Record exists but carries neither a remote URL nor a local path for the requested kind."""

    status_code = 404
    default_message = "No file found for this record"


class LocalFileNotFound(ApiError):
    status_code = 404
    default_message = "File not found"


class RemoteFetchFailed(ApiError):
    """Network error, timeout or non-2xx response from object storage."""

    status_code = 500
    default_message = "Failed to download file from remote storage"

    def __init__(self, message: str | None = None, *, url: str | None = None, reason: str | None = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.url = url
        self.reason = reason


class StreamWriteFailed(ApiError):
    """
    Logged, never raised, when a body stream breaks after headers were sent.
    The response can no longer be changed at that point.
    """

    status_code = 500
    default_message = "Error streaming file"
