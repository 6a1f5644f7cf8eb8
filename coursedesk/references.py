"""
Cross-collection references.

The record store has no relations. A reference field instead holds the full
URL of the target record:

    https://my.living-apps.de/rest/apps/<collection_id>/records/<record_id>

Record ids are 24-character hexadecimal tokens. Anything that resolves a
foreign key goes through decode_reference(), never through ad-hoc parsing.
"""

from __future__ import annotations

import re
from typing import Any, Optional
from urllib.parse import urlsplit

from coursedesk.config import Config

_RECORD_ID = re.compile(r"^[a-f0-9]{24}$", re.IGNORECASE)
_TRAILING_ID = re.compile(r"(?:^|/)([a-f0-9]{24})$", re.IGNORECASE)


def is_record_id(value: Any) -> bool:
    return isinstance(value, str) and bool(_RECORD_ID.match(value))


def encode_reference(collection_id: str, record_id: str, base_url: str | None = None) -> str:
    """
    Build the reference string for one record.

    Empty ids are the caller's problem (validate before saving).
    """
    base = (base_url or Config.REFERENCE_BASE_URL).rstrip("/")
    return f"{base}/apps/{collection_id}/records/{record_id}"


def decode_reference(reference: Optional[str]) -> Optional[str]:
    """
    Extract the record id from a reference string.

    Returns None for None, "", non-strings and strings without a trailing id
    segment. Query string, fragment and trailing slashes are ignored.
    """
    if not isinstance(reference, str):
        return None
    text = reference.strip()
    if not text:
        return None

    try:
        path = urlsplit(text).path.rstrip("/")
    except ValueError:
        # e.g. an unbalanced "[" in the host part
        return None
    match = _TRAILING_ID.search(path)
    return match.group(1) if match else None
