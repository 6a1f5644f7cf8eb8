"""
Record store client - list/create/update/delete against the hosted REST API.

One collection per entity type:

    GET    /apps/<collection_id>/records
    POST   /apps/<collection_id>/records            {"fields": {...}}
    PATCH  /apps/<collection_id>/records/<id>       {"fields": {...}}
    DELETE /apps/<collection_id>/records/<id>

Every failure (network, non-2xx, unreadable body) surfaces as StoreError.
There are no retries and no partial results.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Iterator, Optional, Tuple

import requests

from coursedesk.config import Config
from coursedesk.errors import StoreError
from coursedesk.model import COLLECTIONS, Snapshot, entity_type, record_from_api, to_wire_fields
from coursedesk.references import decode_reference

logger = logging.getLogger(__name__)


def _iter_records(payload: Any) -> Iterator[Tuple[str, dict[str, Any]]]:
    """
    Yield (record_id, record) pairs from a list response.

    The store answers with an object keyed by record id; a plain list of
    records carrying `record_id` / `id` is accepted too.
    """
    if isinstance(payload, dict):
        for key, rec in payload.items():
            if isinstance(rec, dict):
                yield str(rec.get("record_id") or rec.get("id") or key), rec
    elif isinstance(payload, list):
        for rec in payload:
            if not isinstance(rec, dict):
                continue
            rid = rec.get("record_id") or rec.get("id")
            if rid:
                yield str(rid), rec


def _created_id(payload: Any) -> Optional[str]:
    if isinstance(payload, str):
        return decode_reference(payload)
    if isinstance(payload, dict):
        for key in ("record_id", "id"):
            if payload.get(key):
                return str(payload[key])
        return decode_reference(payload.get("url"))
    return None


class RecordStoreClient:
    """
    Thin CRUD client over the five entity collections.

    A session passed in is shared by every thread and must be safe for that.
    Without one, each thread gets its own requests.Session.
    """

    def __init__(
        self,
        base_url: str | None = None,
        collection_ids: dict[str, str] | None = None,
        session: requests.Session | None = None,
        timeout: float | None = None,
    ) -> None:
        self.base_url = (base_url or Config.API_BASE_URL).rstrip("/")
        self.collection_ids = dict(collection_ids or Config.COLLECTION_IDS)
        self._session = session
        self._local = threading.local()
        self.timeout = timeout or Config.timeout_seconds()

    @property
    def session(self) -> requests.Session:
        """The injected session, else one requests.Session per calling thread."""
        if self._session is not None:
            return self._session
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._local.session = requests.Session()
        return session

    def _records_url(self, collection: str, record_id: str | None = None) -> str:
        entity_type(collection)
        url = f"{self.base_url}/apps/{self.collection_ids[collection]}/records"
        if record_id is not None:
            url += f"/{record_id}"
        return url

    def _request(self, method: str, url: str, payload: dict[str, Any] | None = None) -> Any:
        logger.debug("%s %s", method, url)
        try:
            resp = self.session.request(method, url, json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.error("%s %s failed: %s", method, url, exc)
            raise StoreError(method, url, detail=str(exc)) from exc

        if not resp.ok:
            logger.error("%s %s returned HTTP %s", method, url, resp.status_code)
            raise StoreError(method, url, status=resp.status_code, detail=resp.text[:200])

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            logger.error("%s %s returned a non-JSON body", method, url)
            raise StoreError(method, url, status=resp.status_code, detail="invalid JSON") from exc

    # -----------------------------------------------------------------------
    # CRUD
    # -----------------------------------------------------------------------

    def list(self, collection: str) -> list[Any]:
        """Fetch every record of one collection (single response, no paging)."""
        url = self._records_url(collection)
        payload = self._request("GET", url)
        if payload is not None and not isinstance(payload, (dict, list)):
            raise StoreError("GET", url, detail="unexpected response shape")
        records = [record_from_api(collection, rid, rec) for rid, rec in _iter_records(payload)]
        logger.debug("Loaded %d %s", len(records), collection)
        return records

    def create(self, collection: str, fields: dict[str, Any]) -> Any:
        """Create a record from attribute-named values; returns the stored record."""
        url = self._records_url(collection)
        wire = to_wire_fields(collection, fields)
        payload = self._request("POST", url, {"fields": wire})

        record_id = _created_id(payload)
        if not record_id:
            raise StoreError("POST", url, detail="response carries no record id")

        if isinstance(payload, dict) and isinstance(payload.get("fields"), dict):
            record = record_from_api(collection, record_id, payload)
        else:
            record = record_from_api(collection, record_id, {"fields": wire})
        logger.info("Created %s record %s", collection, record_id)
        return record

    def update(self, collection: str, record_id: str, fields: dict[str, Any]) -> Any:
        """
        Send a field set for an existing record. The store merges it; fields
        not sent are left as they are, so callers send the full intended set.
        Fields given without a value go out as null and are cleared.
        """
        url = self._records_url(collection, record_id)
        wire = to_wire_fields(collection, fields, clear_blank=True)
        payload = self._request("PATCH", url, {"fields": wire})

        if isinstance(payload, dict) and isinstance(payload.get("fields"), dict):
            record = record_from_api(collection, record_id, payload)
        else:
            record = record_from_api(collection, record_id, {"fields": wire})
        logger.info("Updated %s record %s", collection, record_id)
        return record

    def delete(self, collection: str, record_id: str) -> None:
        self._request("DELETE", self._records_url(collection, record_id))
        logger.info("Deleted %s record %s", collection, record_id)

    # -----------------------------------------------------------------------
    # Full load
    # -----------------------------------------------------------------------

    def load_snapshot(self) -> Snapshot:
        """
        Fetch all five collections concurrently and wait for all of them.

        If any fetch fails the whole load fails with that StoreError; no
        snapshot is built from the collections that did arrive.
        """
        with ThreadPoolExecutor(max_workers=len(COLLECTIONS)) as pool:
            futures = {name: pool.submit(self.list, name) for name in COLLECTIONS}

        results = {name: tuple(future.result()) for name, future in futures.items()}
        snapshot = Snapshot(**results, loaded_at=datetime.now(timezone.utc))
        logger.info(
            "Snapshot loaded: %s",
            ", ".join(f"{len(results[name])} {name}" for name in COLLECTIONS),
        )
        return snapshot
