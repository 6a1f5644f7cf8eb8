"""
Runtime settings for the record store connection and the dashboard views.
"""

from __future__ import annotations

import os


class Config:
    """Settings read from the environment. Values that can be malformed are parsed on demand."""

    # Record store (REST). The API base may point at a local proxy, the
    # reference base is always the public host embedded in reference strings.
    REFERENCE_BASE_URL = "https://my.living-apps.de/rest"
    API_BASE_URL = os.environ.get("COURSEDESK_API_URL") or REFERENCE_BASE_URL
    DEFAULT_TIMEOUT_SECONDS = 30.0

    # Pre-registered collection tokens, one per entity type
    COLLECTION_IDS = {
        "rooms": "698f133d8617092fb0ba101c",
        "instructors": "698f1344b2f96ffd533fd861",
        "courses": "698f134492fcb1ed5433f800",
        "participants": "698f134577641afcf6ad489b",
        "registrations": "698f134539995ecb193f525c",
    }

    # Dashboard
    MISSING = "–"
    TOP_COURSES = 6
    RECENT_REGISTRATIONS = 5
    UPCOMING_COURSES = 5
    LABEL_LENGTH = 18

    @classmethod
    def collection_id(cls, collection: str) -> str:
        """Return the store token for a collection name (e.g. 'courses')."""
        try:
            return cls.COLLECTION_IDS[collection]
        except KeyError:
            raise ValueError(f"Unknown collection: {collection!r}") from None

    @classmethod
    def timeout_seconds(cls) -> float:
        """Per-request timeout from COURSEDESK_TIMEOUT, in seconds."""
        raw = os.environ.get("COURSEDESK_TIMEOUT", "").strip()
        if not raw:
            return cls.DEFAULT_TIMEOUT_SECONDS
        try:
            value = float(raw)
        except ValueError:
            raise ValueError(f"COURSEDESK_TIMEOUT must be a number of seconds, got {raw!r}") from None
        if not value > 0 or value == float("inf"):
            raise ValueError(f"COURSEDESK_TIMEOUT must be a positive number of seconds, got {raw!r}")
        return value
