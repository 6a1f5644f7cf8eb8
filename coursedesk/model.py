"""
Central data model definitions used across the project.

The record store keeps every entity as a loose bag of fields keyed by German
wire names. This module turns those bags into typed records (and back) so that:
- the rest of the code only ever sees attribute names like `max_participants`
- absent, null and empty values collapse into a single `None`
- numbers that do not parse become `None` instead of crashing a view
"""

from __future__ import annotations

from dataclasses import dataclass, fields as dataclass_fields
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, ClassVar, Dict, Optional, Tuple


# ---------------------------------------------------------------------------
# Field coercion
# ---------------------------------------------------------------------------


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        number = float(str(value).strip())
    except (TypeError, ValueError):
        return None
    # 12.0 is a count, 12.7 is not
    if not number.is_integer():
        return None
    return int(number)


def _decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        out = Decimal(str(value).strip())
    except InvalidOperation:
        return None
    return out if out.is_finite() else None


_TRUE = ("true", "1", "yes", "y")
_FALSE = ("false", "0", "no", "n")


def _flag(value: Any) -> Optional[bool]:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
        return None
    return value is True


# attribute -> (wire key, converter)
WireMap = Dict[str, Tuple[str, Callable[[Any], Any]]]


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass
class Room:
    record_id: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    name: Optional[str] = None
    building: Optional[str] = None
    capacity: Optional[int] = None

    WIRE: ClassVar[WireMap] = {
        "name": ("raumname", _text),
        "building": ("gebaeude", _text),
        "capacity": ("kapazitaet", _int),
    }
    REFERENCES: ClassVar[Dict[str, str]] = {}


@dataclass
class Instructor:
    record_id: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    specialty: Optional[str] = None

    WIRE: ClassVar[WireMap] = {
        "first_name": ("dozent_firstname", _text),
        "last_name": ("dozent_lastname", _text),
        "email": ("email", _text),
        "phone": ("telefon", _text),
        "specialty": ("fachgebiet", _text),
    }
    REFERENCES: ClassVar[Dict[str, str]] = {}


@dataclass
class Course:
    """
    One course. `room` and `instructor` hold reference strings (URLs), not ids;
    decode them with coursedesk.references before joining.
    """

    record_id: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    max_participants: Optional[int] = None
    price: Optional[Decimal] = None
    room: Optional[str] = None
    instructor: Optional[str] = None

    WIRE: ClassVar[WireMap] = {
        "title": ("titel", _text),
        "description": ("beschreibung", _text),
        "start_date": ("startdatum", _text),
        "end_date": ("enddatum", _text),
        "max_participants": ("max_teilnehmer", _int),
        "price": ("preis", _decimal),
        "room": ("raum", _text),
        "instructor": ("dozent", _text),
    }
    REFERENCES: ClassVar[Dict[str, str]] = {"room": "rooms", "instructor": "instructors"}


@dataclass
class Participant:
    record_id: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    birth_date: Optional[str] = None

    WIRE: ClassVar[WireMap] = {
        "first_name": ("teilnehmer_firstname", _text),
        "last_name": ("teilnehmer_lastname", _text),
        "email": ("email", _text),
        "phone": ("telefon", _text),
        "birth_date": ("geburtsdatum", _text),
    }
    REFERENCES: ClassVar[Dict[str, str]] = {}


@dataclass
class Registration:
    """A participant's registration for a course. Both references are required on save."""

    record_id: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    participant: Optional[str] = None
    course: Optional[str] = None
    registration_date: Optional[str] = None
    paid: Optional[bool] = None

    WIRE: ClassVar[WireMap] = {
        "participant": ("teilnehmer", _text),
        "course": ("kurs", _text),
        "registration_date": ("anmeldedatum", _text),
        "paid": ("bezahlt", _flag),
    }
    REFERENCES: ClassVar[Dict[str, str]] = {"participant": "participants", "course": "courses"}


ENTITY_TYPES: Dict[str, type] = {
    "rooms": Room,
    "instructors": Instructor,
    "courses": Course,
    "participants": Participant,
    "registrations": Registration,
}

COLLECTIONS: Tuple[str, ...] = tuple(ENTITY_TYPES)


def entity_type(collection: str) -> type:
    try:
        return ENTITY_TYPES[collection]
    except KeyError:
        raise ValueError(f"Unknown collection: {collection!r}") from None


# ---------------------------------------------------------------------------
# Wire conversion
# ---------------------------------------------------------------------------


def record_from_api(collection: str, record_id: str, payload: dict[str, Any]) -> Any:
    """
    Build a typed record from one store record:
        {"createdat": "...", "updatedat": "...", "fields": {...}}
    Unknown wire fields are ignored, malformed values become None.
    """
    cls = entity_type(collection)
    raw_fields = payload.get("fields") or {}
    if not isinstance(raw_fields, dict):
        raw_fields = {}

    values: dict[str, Any] = {}
    for attr, (wire_key, convert) in cls.WIRE.items():
        values[attr] = convert(raw_fields.get(wire_key))

    return cls(
        record_id=str(record_id),
        created_at=_text(payload.get("createdat")),
        updated_at=_text(payload.get("updatedat")),
        **values,
    )


def to_wire_fields(collection: str, values: dict[str, Any], clear_blank: bool = False) -> dict[str, Any]:
    """
    Convert attribute-named values into the store's `fields` mapping.

    Values are coerced like incoming data. Decimals go out as JSON numbers.
    "No value" entries are left out of the payload, unless `clear_blank` is
    set: then they go out as null so an update clears the stored field.
    """
    cls = entity_type(collection)
    out: dict[str, Any] = {}
    for attr, value in values.items():
        if attr not in cls.WIRE:
            raise ValueError(f"Unknown field for {collection}: {attr!r}")
        wire_key, convert = cls.WIRE[attr]
        value = convert(value)
        if value is None:
            if clear_blank:
                out[wire_key] = None
            continue
        if isinstance(value, Decimal):
            value = float(value)
        out[wire_key] = value
    return out


def record_values(record: Any) -> dict[str, Any]:
    """Return the editable attributes of a record (no id, no timestamps)."""
    return {f.name: getattr(record, f.name) for f in dataclass_fields(record) if f.name in type(record).WIRE}


@dataclass(frozen=True)
class Snapshot:
    """
    The five collections as returned by the last successful full load.
    Never patched in place: a reload builds a new Snapshot.
    """

    rooms: Tuple[Room, ...] = ()
    instructors: Tuple[Instructor, ...] = ()
    courses: Tuple[Course, ...] = ()
    participants: Tuple[Participant, ...] = ()
    registrations: Tuple[Registration, ...] = ()
    loaded_at: Optional[datetime] = None

    def collection(self, name: str) -> Tuple[Any, ...]:
        entity_type(name)
        return getattr(self, name)
