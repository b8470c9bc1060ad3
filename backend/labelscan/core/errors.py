"""
Error taxonomy for the analyze-label pipeline.

ValidationError, StorageError and UpstreamError abort the request and are
rendered as {"error": message} by the handler registered in main.create_app.
NormalizationFallback is never surfaced to the caller: the normalizer catches
it and degrades to empty label data.
"""
from typing import Optional


class LabelScanError(Exception):
    """Base class for errors that abort a request."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(LabelScanError):
    """Missing or undecodable image payload."""

    status_code = 400


class StorageError(LabelScanError):
    """Photo upload rejected by object storage."""

    status_code = 500


class UpstreamError(LabelScanError):
    """Model call failed, timed out or returned a non-success status."""

    status_code = 500

    def __init__(self, message: str, *, upstream_status: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.upstream_status = upstream_status
        self.body = body


class NormalizationFallback(Exception):
    """Model output could not be parsed into label data (non-fatal)."""

    def __init__(self, reason: str, raw_text: str):
        super().__init__(reason)
        self.reason = reason
        self.raw_text = raw_text
