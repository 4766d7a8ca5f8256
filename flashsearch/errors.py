"""Error taxonomy shared by the reconciler, search service and routes."""

from __future__ import annotations


class FlashsearchError(Exception):
    """Base error carrying a stable machine-readable code."""

    status = 500

    def __init__(self, code: str, message: str = "") -> None:
        super().__init__(message or code)
        self.code = code


class ValidationError(FlashsearchError):
    """The caller sent something we cannot act on. Never retried."""

    status = 400


class UpstreamError(FlashsearchError):
    """The index store failed (unreachable, write or query failure)."""

    status = 500
