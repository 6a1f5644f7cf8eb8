"""
Joins and derived dashboard values.

Everything here is a pure function over an in-memory Snapshot: no I/O and no
mutation of the inputs. References are decoded with
coursedesk.references.decode_reference and resolved through id indexes.

Missing data never raises. It degrades to:
- Config.MISSING ("–") for display names
- 0 for counts, ratios and percentages
- None for records that cannot be resolved
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Optional, Sequence

from coursedesk.config import Config
from coursedesk.model import Course, Registration, Snapshot
from coursedesk.references import decode_reference

STATUS_DRAFT = "draft"
STATUS_COMPLETED = "completed"
STATUS_UPCOMING = "upcoming"
STATUS_ACTIVE = "active"


# ---------------------------------------------------------------------------
# Indexes & resolution
# ---------------------------------------------------------------------------


def build_index(records: Iterable[Any]) -> dict[str, Any]:
    """Map record_id -> record. Later duplicates win (the store keeps ids unique)."""
    return {rec.record_id: rec for rec in records}


@dataclass
class Lookups:
    rooms: dict[str, Any]
    instructors: dict[str, Any]
    courses: dict[str, Any]
    participants: dict[str, Any]


def build_lookups(snapshot: Snapshot) -> Lookups:
    return Lookups(
        rooms=build_index(snapshot.rooms),
        instructors=build_index(snapshot.instructors),
        courses=build_index(snapshot.courses),
        participants=build_index(snapshot.participants),
    )


def resolve(reference: Optional[str], index: dict[str, Any]) -> Optional[Any]:
    """Decode a reference string and look it up. None if absent, malformed or dangling."""
    record_id = decode_reference(reference)
    if record_id is None:
        return None
    return index.get(record_id)


def _person_name(first: Optional[str], last: Optional[str]) -> str:
    name = f"{first or ''} {last or ''}".strip()
    return name or Config.MISSING


def room_name(reference: Optional[str], rooms: dict[str, Any]) -> str:
    room = resolve(reference, rooms)
    return room.name if room is not None and room.name else Config.MISSING


def instructor_name(reference: Optional[str], instructors: dict[str, Any]) -> str:
    instructor = resolve(reference, instructors)
    if instructor is None:
        return Config.MISSING
    return _person_name(instructor.first_name, instructor.last_name)


def participant_name(reference: Optional[str], participants: dict[str, Any]) -> str:
    participant = resolve(reference, participants)
    if participant is None:
        return Config.MISSING
    return _person_name(participant.first_name, participant.last_name)


def course_title(reference: Optional[str], courses: dict[str, Any]) -> str:
    course = resolve(reference, courses)
    return course.title if course is not None and course.title else Config.MISSING


def short_label(title: Optional[str], length: int = Config.LABEL_LENGTH) -> str:
    """Chart label: title cut to `length` characters plus an ellipsis."""
    if not title:
        return Config.MISSING
    return title[:length] + ("…" if len(title) > length else "")


# ---------------------------------------------------------------------------
# Counts & rates
# ---------------------------------------------------------------------------


def enrollment_counts(registrations: Iterable[Registration]) -> Counter:
    """
    Registrations per course id. Each registration counts once, for the course
    its reference decodes to; absent or malformed course references are skipped.
    """
    counts: Counter = Counter()
    for reg in registrations:
        course_id = decode_reference(reg.course)
        if course_id is not None:
            counts[course_id] += 1
    return counts


def enrollment_count(course: Course, registrations: Iterable[Registration]) -> int:
    return enrollment_counts(registrations)[course.record_id]


def paid_counts(registrations: Iterable[Registration]) -> Counter:
    return enrollment_counts(reg for reg in registrations if reg.paid)


def unpaid_count(registrations: Iterable[Registration]) -> int:
    """Registrations whose paid flag is False or absent."""
    return sum(1 for reg in registrations if not reg.paid)


def fill_ratio(enrolled: int, capacity: Optional[int]) -> float:
    """enrolled / capacity, or 0.0 when there is no usable capacity."""
    if not capacity or capacity <= 0:
        return 0.0
    return enrolled / capacity


def fill_percentage(enrolled: int, capacity: Optional[int]) -> float:
    """Fill rate in percent, clamped to [0, 100]."""
    return max(0.0, min(fill_ratio(enrolled, capacity) * 100.0, 100.0))


def overall_fill_rate(courses: Iterable[Course], counts: Counter) -> float:
    """
    Seats taken over seats offered across all courses with a capacity, in
    percent (clamped). Courses without capacity are left out entirely.
    """
    enrolled = 0
    capacity = 0
    for course in courses:
        if course.max_participants and course.max_participants > 0:
            enrolled += counts[course.record_id]
            capacity += course.max_participants
    return fill_percentage(enrolled, capacity)


# ---------------------------------------------------------------------------
# Dates & status
# ---------------------------------------------------------------------------


def date_part(value: Optional[str]) -> Optional[str]:
    """
    'YYYY-MM-DD' prefix of a date or ISO timestamp, None if it is not a date.
    The prefix compares correctly as a plain string.
    """
    if not value:
        return None
    prefix = str(value).strip()[:10]
    try:
        date.fromisoformat(prefix)
    except ValueError:
        return None
    return prefix


def course_status(today: date, start: Optional[str], end: Optional[str]) -> str:
    """
    Four-way classification, recomputed on every read:
    - draft:     no start date
    - completed: end date (start date if no end) is before today
    - upcoming:  start date is after today
    - active:    otherwise
    """
    start_day = date_part(start)
    if start_day is None:
        return STATUS_DRAFT

    today_s = today.isoformat()
    last_day = date_part(end) or start_day
    if last_day < today_s:
        return STATUS_COMPLETED
    if start_day > today_s:
        return STATUS_UPCOMING
    return STATUS_ACTIVE


def upcoming_courses(courses: Iterable[Course], today: date, limit: int = Config.UPCOMING_COURSES) -> list[Course]:
    """Courses that have not started yet, soonest first."""
    upcoming = [c for c in courses if course_status(today, c.start_date, c.end_date) == STATUS_UPCOMING]
    upcoming.sort(key=lambda c: date_part(c.start_date) or "")
    return upcoming[:limit]


# ---------------------------------------------------------------------------
# Rankings
# ---------------------------------------------------------------------------


@dataclass
class CourseSummary:
    course: Course
    enrolled: int
    paid: int
    capacity: int
    ratio: float
    percentage: float

    @property
    def label(self) -> str:
        return short_label(self.course.title)


def course_summaries(courses: Iterable[Course], registrations: Sequence[Registration]) -> list[CourseSummary]:
    counts = enrollment_counts(registrations)
    paid = paid_counts(registrations)
    out: list[CourseSummary] = []
    for course in courses:
        enrolled = counts[course.record_id]
        capacity = course.max_participants or 0
        out.append(
            CourseSummary(
                course=course,
                enrolled=enrolled,
                paid=paid[course.record_id],
                capacity=capacity,
                ratio=fill_ratio(enrolled, capacity),
                percentage=fill_percentage(enrolled, capacity),
            )
        )
    return out


def rank_courses_by_fill(
    courses: Iterable[Course], registrations: Sequence[Registration], limit: int = Config.TOP_COURSES
) -> list[CourseSummary]:
    """
    Courses by enrolled/capacity, highest first. Zero-capacity courses rank
    with ratio 0; ties keep input order (stable sort).
    """
    ranked = sorted(course_summaries(courses, registrations), key=lambda s: -s.ratio)
    return ranked[:limit]


def recent_registrations(
    registrations: Iterable[Registration], limit: int = Config.RECENT_REGISTRATIONS
) -> list[Registration]:
    """Newest registrations first: registration date, else creation timestamp."""

    def key(reg: Registration) -> tuple[str, str]:
        day = date_part(reg.registration_date) or date_part(reg.created_at) or ""
        return (day, reg.created_at or "")

    return sorted(registrations, key=key, reverse=True)[:limit]


def course_revenue(course: Course, paid: int) -> Decimal:
    return (course.price or Decimal(0)) * paid


def total_revenue(courses: Iterable[Course], registrations: Sequence[Registration]) -> Decimal:
    """Sum of price x paid registrations over all courses."""
    paid = paid_counts(registrations)
    return sum((course_revenue(c, paid[c.record_id]) for c in courses), Decimal(0))


def revenue_ranking(
    courses: Iterable[Course], registrations: Sequence[Registration], limit: int = Config.TOP_COURSES
) -> list[tuple[Course, Decimal]]:
    """Priced courses by revenue, highest first."""
    paid = paid_counts(registrations)
    rows = [(c, course_revenue(c, paid[c.record_id])) for c in courses if c.price is not None]
    rows.sort(key=lambda row: row[1], reverse=True)
    return rows[:limit]


# ---------------------------------------------------------------------------
# Dashboard summary
# ---------------------------------------------------------------------------


@dataclass
class DashboardSummary:
    today: date
    course_count: int
    participant_count: int
    registration_count: int
    room_count: int
    instructor_count: int
    unpaid_count: int
    active_count: int
    upcoming_count: int
    total_revenue: Decimal
    fill_rate: float
    top_courses: list[CourseSummary] = field(default_factory=list)
    upcoming: list[Course] = field(default_factory=list)
    recent: list[Registration] = field(default_factory=list)
    revenue: list[tuple[Course, Decimal]] = field(default_factory=list)


def summarize(
    snapshot: Snapshot,
    today: date,
    top: int = Config.TOP_COURSES,
    recent: int = Config.RECENT_REGISTRATIONS,
    upcoming: int = Config.UPCOMING_COURSES,
) -> DashboardSummary:
    courses = snapshot.courses
    registrations = snapshot.registrations
    statuses = Counter(course_status(today, c.start_date, c.end_date) for c in courses)

    return DashboardSummary(
        today=today,
        course_count=len(courses),
        participant_count=len(snapshot.participants),
        registration_count=len(registrations),
        room_count=len(snapshot.rooms),
        instructor_count=len(snapshot.instructors),
        unpaid_count=unpaid_count(registrations),
        active_count=statuses[STATUS_ACTIVE],
        upcoming_count=statuses[STATUS_UPCOMING],
        total_revenue=total_revenue(courses, registrations),
        fill_rate=overall_fill_rate(courses, enrollment_counts(registrations)),
        top_courses=rank_courses_by_fill(courses, registrations, top),
        upcoming=upcoming_courses(courses, today, upcoming),
        recent=recent_registrations(registrations, recent),
        revenue=revenue_ranking(courses, registrations, top),
    )
