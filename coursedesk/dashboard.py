"""
Dashboard session: owns the loaded snapshot and routes every mutation.

Cycle:
    reload() -> views read the snapshot -> mutation -> reload() -> views ...

The snapshot has a single writer (reload). Mutations never patch it; after
every successful create/update/delete the five collections are fetched again.
Input is validated before any request goes out.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Optional

from coursedesk.aggregate import DashboardSummary, Lookups, build_lookups, date_part, summarize
from coursedesk.errors import ValidationError
from coursedesk.model import Snapshot, entity_type, record_values
from coursedesk.references import decode_reference, encode_reference, is_record_id
from coursedesk.store import RecordStoreClient

logger = logging.getLogger(__name__)


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_values(collection: str, values: dict[str, Any]) -> None:
    """
    Reject input that must never reach the store:
    - unknown attribute names
    - non-blank values that do not convert (capacity="ten" or "12.7", paid="maybe")
    - dates that are not YYYY-MM-DD / ISO timestamps
    - reference values that are neither a record id nor a reference string
    - registrations without both a participant and a course
    """
    cls = entity_type(collection)

    for attr, value in values.items():
        if attr not in cls.WIRE:
            raise ValidationError(attr, f"Unknown field for {collection}: {attr}")
        if _blank(value):
            continue
        _, convert = cls.WIRE[attr]
        if convert(value) is None:
            raise ValidationError(attr, f"Invalid value for {attr}: {value!r}")
        if attr.endswith("_date") and date_part(str(value)) is None:
            raise ValidationError(attr, f"Invalid date for {attr}: {value!r}")
        if attr in cls.REFERENCES and not is_record_id(value) and decode_reference(value) is None:
            raise ValidationError(attr, f"Not a record reference: {value!r}")

    if collection == "registrations":
        for attr in ("participant", "course"):
            if _blank(values.get(attr)):
                raise ValidationError(attr, f"A registration needs a {attr}")


def _check_record_id(record_id: Any) -> None:
    if not is_record_id(record_id):
        raise ValidationError("record_id", f"Not a record id: {record_id!r}")


class CourseDashboard:
    """The single in-memory view of the store, rebuilt on every reload."""

    def __init__(self, client: RecordStoreClient) -> None:
        self.client = client
        self._snapshot: Optional[Snapshot] = None

    @property
    def loaded(self) -> bool:
        return self._snapshot is not None

    @property
    def snapshot(self) -> Snapshot:
        if self._snapshot is None:
            raise RuntimeError("Nothing loaded yet - call reload() first")
        return self._snapshot

    def reload(self) -> Snapshot:
        """
        Full reload. The previous snapshot is kept if the load fails
        (StoreError propagates to the caller).
        """
        snapshot = self.client.load_snapshot()
        self._snapshot = snapshot
        return snapshot

    def lookups(self) -> Lookups:
        return build_lookups(self.snapshot)

    def summary(self, today: date | None = None) -> DashboardSummary:
        return summarize(self.snapshot, today or date.today())

    def find(self, collection: str, record_id: str) -> Optional[Any]:
        for record in self.snapshot.collection(collection):
            if record.record_id == record_id:
                return record
        return None

    # -----------------------------------------------------------------------
    # Mutations
    # -----------------------------------------------------------------------

    def _encode_references(self, collection: str, values: dict[str, Any]) -> dict[str, Any]:
        """
        Reference attributes may be given as bare ids or as reference strings;
        both are re-encoded so the store only ever receives full references.
        """
        cls = entity_type(collection)
        out = dict(values)
        for attr, target in cls.REFERENCES.items():
            if attr not in out:
                continue
            value = out[attr]
            if _blank(value):
                out[attr] = None
                continue
            record_id = value if is_record_id(value) else decode_reference(value)
            out[attr] = encode_reference(self.client.collection_ids[target], record_id)
        return out

    def create(self, collection: str, values: dict[str, Any]) -> Any:
        validate_values(collection, values)
        record = self.client.create(collection, self._encode_references(collection, values))
        self.reload()
        return record

    def update(self, collection: str, record_id: str, values: dict[str, Any]) -> Any:
        _check_record_id(record_id)
        validate_values(collection, values)
        record = self.client.update(collection, record_id, self._encode_references(collection, values))
        self.reload()
        return record

    def delete(self, collection: str, record_id: str) -> None:
        """Delete one record. Nothing cascades; references to it start dangling."""
        entity_type(collection)
        _check_record_id(record_id)
        self.client.delete(collection, record_id)
        self.reload()

    def save_registration(
        self,
        participant_id: str,
        course_id: str,
        registration_date: str | None = None,
        paid: bool | None = None,
        record_id: str | None = None,
    ) -> Any:
        """
        Create a registration, or rewrite an existing one when `record_id` is set.

        A new registration is dated today and unpaid unless told otherwise. An
        existing one keeps its stored date and paid flag; only the arguments
        given here replace them.
        """
        if not record_id:
            return self.create(
                "registrations",
                {
                    "participant": participant_id,
                    "course": course_id,
                    "registration_date": registration_date or date.today().isoformat(),
                    "paid": bool(paid),
                },
            )

        _check_record_id(record_id)
        validate_values("registrations", {"participant": participant_id, "course": course_id})
        if not self.loaded:
            self.reload()
        existing = self.find("registrations", record_id)
        if existing is None:
            raise ValidationError("record_id", f"Unknown registration: {record_id}")

        values = record_values(existing)
        values["participant"] = participant_id
        values["course"] = course_id
        if registration_date is not None:
            values["registration_date"] = registration_date
        if paid is not None:
            values["paid"] = paid
        return self.update("registrations", record_id, values)

    def toggle_paid(self, registration_id: str) -> Any:
        """Flip the paid flag, sending the registration's full field set."""
        if not self.loaded:
            self.reload()
        registration = self.find("registrations", registration_id)
        if registration is None:
            raise ValidationError("record_id", f"Unknown registration: {registration_id}")

        values = record_values(registration)
        values["paid"] = not registration.paid
        logger.info("Marking registration %s as %s", registration_id, "paid" if values["paid"] else "unpaid")
        return self.update("registrations", registration_id, values)
