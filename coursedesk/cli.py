"""
CLI (Command Line Interface).

Terminal front end for the course dashboard, e.g.:

    coursedesk overview
    coursedesk list courses
    coursedesk add rooms name="Raum 1" building=A capacity=20
    coursedesk edit courses <id> title="Python I" room=<room id> max_participants=12
    coursedesk delete participants <id>
    coursedesk register <participant id> <course id> --paid
    coursedesk toggle-paid <registration id>

Every command works on a fresh full load of the record store; every
mutation is followed by another full load.

Exit codes: 0 ok, 1 invalid input (nothing was sent), 3 store failure.
"""

from __future__ import annotations

import argparse
import logging
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Optional

from rich import box
from rich.console import Console
from rich.table import Table

from coursedesk.aggregate import (
    Lookups,
    course_status,
    course_title,
    enrollment_counts,
    fill_percentage,
    instructor_name,
    participant_name,
    room_name,
    short_label,
)
from coursedesk.config import Config
from coursedesk.dashboard import CourseDashboard
from coursedesk.errors import StoreError, ValidationError
from coursedesk.model import COLLECTIONS
from coursedesk.store import RecordStoreClient

console = Console()

EXIT_OK = 0
EXIT_INVALID = 1
EXIT_STORE = 3


def _cell(value: Any) -> str:
    return Config.MISSING if value is None or value == "" else str(value)


def _money(value: Optional[Decimal]) -> str:
    return Config.MISSING if value is None else f"{value:,.2f} €"


def _parse_assignments(items: list[str]) -> dict[str, str]:
    """
    Turn ["title=Python I", "max_participants=12"] into a dict.
    An empty right-hand side clears the field.
    """
    out: dict[str, str] = {}
    for item in items:
        key, sep, value = item.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ValidationError(item, f"Expected key=value, got {item!r}")
        out[key] = value
    return out


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def _render_overview(dashboard: CourseDashboard, today: date) -> None:
    summary = dashboard.summary(today)
    lookups = dashboard.lookups()

    kpis = Table(title=f"Overview ({today.isoformat()})", box=box.SIMPLE, show_header=False)
    kpis.add_column("KPI")
    kpis.add_column("Value", justify="right")
    kpis.add_row("Courses", f"{summary.course_count} ({summary.active_count} active, {summary.upcoming_count} upcoming)")
    kpis.add_row("Participants", str(summary.participant_count))
    kpis.add_row("Registrations", f"{summary.registration_count} ({summary.unpaid_count} unpaid)")
    kpis.add_row("Revenue", _money(summary.total_revenue))
    kpis.add_row("Rooms", str(summary.room_count))
    kpis.add_row("Instructors", str(summary.instructor_count))
    kpis.add_row("Fill rate", f"{summary.fill_rate:.0f}%")
    console.print(kpis)

    if summary.top_courses:
        table = Table(title="Top courses by fill rate", box=box.SIMPLE)
        table.add_column("Course")
        table.add_column("Enrolled", justify="right")
        table.add_column("Paid", justify="right")
        table.add_column("Max", justify="right")
        table.add_column("Fill", justify="right")
        for row in summary.top_courses:
            table.add_row(row.label, str(row.enrolled), str(row.paid), str(row.capacity), f"{row.percentage:.0f}%")
        console.print(table)

    if summary.upcoming:
        table = Table(title="Upcoming courses", box=box.SIMPLE)
        table.add_column("Start")
        table.add_column("Course")
        table.add_column("Room")
        table.add_column("Instructor")
        for course in summary.upcoming:
            table.add_row(
                _cell(course.start_date and course.start_date[:10]),
                _cell(course.title),
                room_name(course.room, lookups.rooms),
                instructor_name(course.instructor, lookups.instructors),
            )
        console.print(table)

    if summary.recent:
        table = Table(title="Recent registrations", box=box.SIMPLE)
        table.add_column("Date")
        table.add_column("Participant")
        table.add_column("Course")
        table.add_column("Status")
        for reg in summary.recent:
            table.add_row(
                _cell((reg.registration_date or reg.created_at or "")[:10]),
                participant_name(reg.participant, lookups.participants),
                course_title(reg.course, lookups.courses),
                "[green]paid[/]" if reg.paid else "[red]open[/]",
            )
        console.print(table)

    if summary.revenue:
        table = Table(title="Revenue by course", box=box.SIMPLE)
        table.add_column("Course")
        table.add_column("Revenue", justify="right")
        for course, amount in summary.revenue:
            table.add_row(short_label(course.title), _money(amount))
        console.print(table)


def _rows(collection: str, dashboard: CourseDashboard, lookups: Lookups, today: date) -> tuple[list[str], list[list[str]]]:
    records = dashboard.snapshot.collection(collection)

    if collection == "rooms":
        return ["ID", "Name", "Building", "Capacity"], [
            [r.record_id, _cell(r.name), _cell(r.building), _cell(r.capacity)] for r in records
        ]
    if collection == "instructors":
        return ["ID", "Name", "Email", "Phone", "Specialty"], [
            [
                r.record_id,
                f"{r.first_name or ''} {r.last_name or ''}".strip() or Config.MISSING,
                _cell(r.email),
                _cell(r.phone),
                _cell(r.specialty),
            ]
            for r in records
        ]
    if collection == "participants":
        return ["ID", "Name", "Email", "Phone", "Born"], [
            [
                r.record_id,
                f"{r.first_name or ''} {r.last_name or ''}".strip() or Config.MISSING,
                _cell(r.email),
                _cell(r.phone),
                _cell(r.birth_date and r.birth_date[:10]),
            ]
            for r in records
        ]
    if collection == "registrations":
        return ["ID", "Participant", "Course", "Date", "Paid"], [
            [
                r.record_id,
                participant_name(r.participant, lookups.participants),
                course_title(r.course, lookups.courses),
                _cell(r.registration_date and r.registration_date[:10]),
                "yes" if r.paid else "no",
            ]
            for r in records
        ]

    counts = enrollment_counts(dashboard.snapshot.registrations)
    rows = []
    for c in records:
        enrolled = counts[c.record_id]
        rows.append(
            [
                c.record_id,
                _cell(c.title),
                _cell(c.start_date and c.start_date[:10]),
                _cell(c.end_date and c.end_date[:10]),
                room_name(c.room, lookups.rooms),
                instructor_name(c.instructor, lookups.instructors),
                f"{enrolled}/{_cell(c.max_participants)}",
                f"{fill_percentage(enrolled, c.max_participants):.0f}%",
                course_status(today, c.start_date, c.end_date),
                _money(c.price),
            ]
        )
    return ["ID", "Title", "Start", "End", "Room", "Instructor", "Enrolled", "Fill", "Status", "Price"], rows


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _cmd_overview(args: argparse.Namespace, dashboard: CourseDashboard) -> int:
    dashboard.reload()
    _render_overview(dashboard, args.today or date.today())
    return EXIT_OK


def _cmd_list(args: argparse.Namespace, dashboard: CourseDashboard) -> int:
    dashboard.reload()
    headers, rows = _rows(args.collection, dashboard, dashboard.lookups(), args.today or date.today())
    if not rows:
        console.print(f"No {args.collection} yet.")
        return EXIT_OK

    table = Table(title=f"{args.collection.capitalize()} ({len(rows)})", box=box.SIMPLE)
    for header in headers:
        table.add_column(header)
    for row in rows:
        table.add_row(*row)
    console.print(table)
    return EXIT_OK


def _cmd_add(args: argparse.Namespace, dashboard: CourseDashboard) -> int:
    record = dashboard.create(args.collection, _parse_assignments(args.values))
    console.print(f"Created {args.collection} record {record.record_id}")
    return EXIT_OK


def _cmd_edit(args: argparse.Namespace, dashboard: CourseDashboard) -> int:
    values = _parse_assignments(args.values)
    if not values:
        console.print("Nothing to change.")
        return EXIT_INVALID
    dashboard.update(args.collection, args.record_id, values)
    console.print(f"Updated {args.collection} record {args.record_id}")
    return EXIT_OK


def _cmd_delete(args: argparse.Namespace, dashboard: CourseDashboard) -> int:
    dashboard.delete(args.collection, args.record_id)
    console.print(f"Deleted {args.collection} record {args.record_id}")
    return EXIT_OK


def _cmd_register(args: argparse.Namespace, dashboard: CourseDashboard) -> int:
    record = dashboard.save_registration(
        args.participant_id,
        args.course_id,
        registration_date=args.date,
        paid=args.paid,
        record_id=args.update,
    )
    console.print(f"Saved registration {record.record_id}")
    return EXIT_OK


def _cmd_toggle_paid(args: argparse.Namespace, dashboard: CourseDashboard) -> int:
    record = dashboard.toggle_paid(args.registration_id)
    console.print(f"Registration {record.record_id}: {'paid' if record.paid else 'open'}")
    return EXIT_OK


COMMANDS: dict[str, Callable[[argparse.Namespace, CourseDashboard], int]] = {
    "overview": _cmd_overview,
    "list": _cmd_list,
    "add": _cmd_add,
    "edit": _cmd_edit,
    "delete": _cmd_delete,
    "register": _cmd_register,
    "toggle-paid": _cmd_toggle_paid,
}


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argparse CLI parser with sub-commands.
    """
    parser = argparse.ArgumentParser(prog="coursedesk", description="Course administration dashboard")
    parser.add_argument("--api-url", type=str, default=None, help="Record store REST root (default: COURSEDESK_API_URL)")
    parser.add_argument("--today", type=date.fromisoformat, default=None, help="Reference date YYYY-MM-DD")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log requests")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("overview", help="KPIs, top courses, upcoming courses, recent registrations")

    p_list = sub.add_parser("list", help="List the records of one collection")
    p_list.add_argument("collection", choices=COLLECTIONS)

    p_add = sub.add_parser("add", help="Create a record from key=value pairs")
    p_add.add_argument("collection", choices=COLLECTIONS)
    p_add.add_argument("values", nargs="*", help="e.g. name=Lab capacity=12")

    p_edit = sub.add_parser("edit", help="Update a record (send the full field set)")
    p_edit.add_argument("collection", choices=COLLECTIONS)
    p_edit.add_argument("record_id", type=str)
    p_edit.add_argument("values", nargs="*", help="e.g. title='Python I' room=<room id>")

    p_delete = sub.add_parser("delete", help="Delete a record (no cascade)")
    p_delete.add_argument("collection", choices=COLLECTIONS)
    p_delete.add_argument("record_id", type=str)

    p_reg = sub.add_parser("register", help="Register a participant for a course")
    p_reg.add_argument("participant_id", type=str)
    p_reg.add_argument("course_id", type=str)
    p_reg.add_argument("--date", type=str, default=None, help="Registration date (default: today, or kept on --update)")
    paid = p_reg.add_mutually_exclusive_group()
    paid.add_argument("--paid", dest="paid", action="store_const", const=True, default=None, help="Mark as paid")
    paid.add_argument("--unpaid", dest="paid", action="store_const", const=False, help="Mark as unpaid")
    p_reg.add_argument("--update", type=str, default=None, metavar="REGISTRATION_ID", help="Edit an existing registration")

    p_toggle = sub.add_parser("toggle-paid", help="Flip the paid flag of a registration")
    p_toggle.add_argument("registration_id", type=str)

    return parser


def main(argv: list[str] | None = None) -> None:
    """
    CLI entry point. Parses args, dispatches to command handlers,
    and exits via SystemExit with a return code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        client = RecordStoreClient(base_url=args.api_url)
    except ValueError as exc:
        parser.error(str(exc))
    dashboard = CourseDashboard(client)
    try:
        code = COMMANDS[args.command](args, dashboard)
    except ValidationError as exc:
        console.print(f"Invalid input: {exc}", markup=False)
        code = EXIT_INVALID
    except StoreError as exc:
        console.print(f"Error: {exc}. Nothing is shown from a partial load; try again.", markup=False)
        code = EXIT_STORE

    raise SystemExit(code)
