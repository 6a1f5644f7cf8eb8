"""Error types raised by the store client and the dashboard session."""

from __future__ import annotations

from typing import Optional


class CoursedeskError(Exception):
    """Base class for all coursedesk errors."""


class StoreError(CoursedeskError):
    """
    A request to the record store failed (network error, non-success status
    or an unreadable response body). The message is always "fetch failed";
    details live on the attributes.
    """

    def __init__(self, method: str, url: str, status: Optional[int] = None, detail: str = "") -> None:
        super().__init__("fetch failed")
        self.method = method
        self.url = url
        self.status = status
        self.detail = detail

    def __str__(self) -> str:
        where = f"{self.method} {self.url}"
        if self.status is not None:
            where += f" -> {self.status}"
        return f"fetch failed ({where})"


class ValidationError(CoursedeskError):
    """Mutation input rejected locally, before any request was sent."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
