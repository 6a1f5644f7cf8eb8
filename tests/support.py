"""
Shared test helpers: record ids, a fake HTTP session and record builders.

The fake session stands in for requests.Session so no test touches the
network; it records every call so tests can assert "nothing was sent".
"""

from __future__ import annotations

import json
import threading
from decimal import Decimal
from typing import Any

from coursedesk.config import Config
from coursedesk.model import Course, Instructor, Participant, Registration, Room
from coursedesk.references import encode_reference

BASE = "https://store.test/rest"


def rid(n: int) -> str:
    """Deterministic 24-char hex record id."""
    return f"{n:024x}"


def records_url(collection: str, record_id: str | None = None) -> str:
    url = f"{BASE}/apps/{Config.COLLECTION_IDS[collection]}/records"
    return f"{url}/{record_id}" if record_id else url


def ref(collection: str, record_id: str) -> str:
    return encode_reference(Config.COLLECTION_IDS[collection], record_id)


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, body: bytes | None = None) -> None:
        self.status_code = status_code
        if body is None:
            body = b"" if payload is None else json.dumps(payload).encode("utf-8")
        self.content = body
        self.text = body.decode("utf-8", "replace")

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self) -> Any:
        return json.loads(self.content)


class FakeSession:
    """
    routes: {(method, url): FakeResponse | Exception}
    Unrouted requests answer 404.
    """

    def __init__(self, routes: dict[tuple[str, str], Any] | None = None) -> None:
        self.routes = dict(routes or {})
        self.calls: list[tuple[str, str, Any]] = []
        self._lock = threading.Lock()

    def request(self, method: str, url: str, json: Any = None, timeout: Any = None) -> FakeResponse:
        with self._lock:
            self.calls.append((method, url, json))
        result = self.routes.get((method, url))
        if result is None:
            return FakeResponse(404, body=b"not found")
        if isinstance(result, Exception):
            raise result
        return result

    def methods(self) -> list[str]:
        return [method for method, _, _ in self.calls]


def empty_routes() -> dict[tuple[str, str], Any]:
    """Every collection lists as empty."""
    return {("GET", records_url(name)): FakeResponse(200, {}) for name in Config.COLLECTION_IDS}


def room(n: int, name: str = "Raum", capacity: int | None = 20) -> Room:
    return Room(record_id=rid(n), created_at="2024-01-01T10:00:00", name=name, building="A", capacity=capacity)


def instructor(n: int, first: str = "Ada", last: str = "Lovelace") -> Instructor:
    return Instructor(record_id=rid(n), created_at="2024-01-01T10:00:00", first_name=first, last_name=last)


def participant(n: int, first: str = "Max", last: str = "Muster") -> Participant:
    return Participant(record_id=rid(n), created_at="2024-01-01T10:00:00", first_name=first, last_name=last)


def course(
    n: int,
    title: str = "Kurs",
    start: str | None = None,
    end: str | None = None,
    max_participants: int | None = 10,
    price: str | None = None,
    room_id: str | None = None,
    instructor_id: str | None = None,
) -> Course:
    return Course(
        record_id=rid(n),
        created_at="2024-01-01T10:00:00",
        title=title,
        start_date=start,
        end_date=end,
        max_participants=max_participants,
        price=Decimal(price) if price is not None else None,
        room=ref("rooms", room_id) if room_id else None,
        instructor=ref("instructors", instructor_id) if instructor_id else None,
    )


def registration(
    n: int,
    participant_id: str | None,
    course_id: str | None,
    paid: bool | None = False,
    registration_date: str | None = None,
    created_at: str = "2024-01-01T10:00:00",
) -> Registration:
    return Registration(
        record_id=rid(n),
        created_at=created_at,
        participant=ref("participants", participant_id) if participant_id else None,
        course=ref("courses", course_id) if course_id else None,
        registration_date=registration_date,
        paid=paid,
    )
