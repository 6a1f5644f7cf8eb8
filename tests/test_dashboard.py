"""
Tests for the dashboard session: validation gate, reference encoding on save
and the reload-after-every-mutation cycle.
"""

import unittest
from datetime import date

from coursedesk.config import Config
from coursedesk.dashboard import CourseDashboard, validate_values
from coursedesk.errors import StoreError, ValidationError
from coursedesk.store import RecordStoreClient

from support import BASE, FakeResponse, FakeSession, empty_routes, records_url, ref, rid


def _dashboard(routes) -> tuple[CourseDashboard, FakeSession]:
    session = FakeSession(routes)
    return CourseDashboard(RecordStoreClient(base_url=BASE, session=session)), session


class TestValidation(unittest.TestCase):
    def test_registration_needs_both_references(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            validate_values("registrations", {"participant": rid(1), "course": ""})
        self.assertEqual(ctx.exception.field, "course")

        with self.assertRaises(ValidationError) as ctx:
            validate_values("registrations", {"course": rid(2)})
        self.assertEqual(ctx.exception.field, "participant")

    def test_bad_values(self) -> None:
        cases = [
            ("rooms", {"capacity": "ten"}, "capacity"),
            ("rooms", {"colour": "red"}, "colour"),
            ("courses", {"start_date": "next monday"}, "start_date"),
            ("courses", {"room": "Lab 1"}, "room"),
            ("rooms", {"capacity": "12.7"}, "capacity"),
            ("courses", {"max_participants": 2.5}, "max_participants"),
            ("registrations", {"participant": rid(1), "course": rid(2), "paid": "maybe"}, "paid"),
        ]
        for collection, values, field in cases:
            with self.subTest(values=values):
                with self.assertRaises(ValidationError) as ctx:
                    validate_values(collection, values)
                self.assertEqual(ctx.exception.field, field)

    def test_good_values(self) -> None:
        validate_values("courses", {"title": "Python", "room": rid(1), "instructor": ref("instructors", rid(2)), "price": "9.90"})
        validate_values("registrations", {"participant": rid(1), "course": rid(2), "paid": False})
        validate_values("rooms", {"capacity": ""})


class TestSnapshotOwnership(unittest.TestCase):
    def test_snapshot_before_load(self) -> None:
        dashboard, _ = _dashboard(empty_routes())
        self.assertFalse(dashboard.loaded)
        with self.assertRaises(RuntimeError):
            dashboard.snapshot

    def test_failed_reload_keeps_previous_snapshot(self) -> None:
        routes = empty_routes()
        dashboard, session = _dashboard(routes)
        first = dashboard.reload()

        session.routes[("GET", records_url("participants"))] = FakeResponse(500, body=b"")
        with self.assertRaises(StoreError):
            dashboard.reload()

        self.assertIs(dashboard.snapshot, first)

    def test_summary_uses_snapshot(self) -> None:
        routes = empty_routes()
        routes[("GET", records_url("courses"))] = FakeResponse(
            200, {rid(3): {"fields": {"titel": "Python", "startdatum": "2024-07-01"}}}
        )
        dashboard, _ = _dashboard(routes)
        dashboard.reload()

        summary = dashboard.summary(date(2024, 6, 15))

        self.assertEqual(summary.course_count, 1)
        self.assertEqual(summary.upcoming_count, 1)


class TestMutations(unittest.TestCase):
    def test_invalid_registration_sends_nothing(self) -> None:
        dashboard, session = _dashboard(empty_routes())
        with self.assertRaises(ValidationError):
            dashboard.save_registration(rid(1), "")
        self.assertEqual(session.calls, [])

    def test_create_encodes_references_and_reloads(self) -> None:
        routes = empty_routes()
        routes[("POST", records_url("courses"))] = FakeResponse(200, {"id": rid(9)})
        dashboard, session = _dashboard(routes)

        dashboard.create("courses", {"title": "Python", "room": rid(1), "instructor": ref("instructors", rid(2)) + "/"})

        method, _, body = session.calls[0]
        self.assertEqual(method, "POST")
        fields = body["fields"]
        self.assertEqual(fields["raum"], ref("rooms", rid(1)))
        self.assertEqual(fields["dozent"], ref("instructors", rid(2)))
        self.assertTrue(fields["raum"].startswith(Config.REFERENCE_BASE_URL))
        # followed by a full reload of all five collections
        self.assertEqual(session.methods()[1:], ["GET"] * 5)
        self.assertTrue(dashboard.loaded)

    def test_save_registration_defaults_date(self) -> None:
        routes = empty_routes()
        routes[("POST", records_url("registrations"))] = FakeResponse(200, {"id": rid(9)})
        dashboard, session = _dashboard(routes)

        dashboard.save_registration(rid(1), rid(2))

        fields = session.calls[0][2]["fields"]
        self.assertEqual(fields["teilnehmer"], ref("participants", rid(1)))
        self.assertEqual(fields["kurs"], ref("courses", rid(2)))
        self.assertEqual(fields["anmeldedatum"], date.today().isoformat())
        self.assertIs(fields["bezahlt"], False)

    def test_update_registration_keeps_stored_date_and_paid(self) -> None:
        routes = empty_routes()
        routes[("GET", records_url("registrations"))] = FakeResponse(
            200,
            {
                rid(5): {
                    "fields": {
                        "teilnehmer": ref("participants", rid(1)),
                        "kurs": ref("courses", rid(2)),
                        "anmeldedatum": "2024-01-10",
                        "bezahlt": True,
                    }
                }
            },
        )
        routes[("PATCH", records_url("registrations", rid(5)))] = FakeResponse(200, body=b"")
        dashboard, session = _dashboard(routes)

        dashboard.save_registration(rid(1), rid(3), record_id=rid(5))

        patch = [call for call in session.calls if call[0] == "PATCH"]
        self.assertEqual(
            patch[0][2],
            {
                "fields": {
                    "teilnehmer": ref("participants", rid(1)),
                    "kurs": ref("courses", rid(3)),
                    "anmeldedatum": "2024-01-10",
                    "bezahlt": True,
                }
            },
        )

    def test_update_registration_overrides_given_values(self) -> None:
        routes = empty_routes()
        routes[("GET", records_url("registrations"))] = FakeResponse(
            200, {rid(5): {"fields": {"anmeldedatum": "2024-01-10", "bezahlt": True}}}
        )
        routes[("PATCH", records_url("registrations", rid(5)))] = FakeResponse(200, body=b"")
        dashboard, session = _dashboard(routes)

        dashboard.save_registration(rid(1), rid(2), registration_date="2024-02-01", paid=False, record_id=rid(5))

        fields = [call for call in session.calls if call[0] == "PATCH"][0][2]["fields"]
        self.assertEqual(fields["anmeldedatum"], "2024-02-01")
        self.assertIs(fields["bezahlt"], False)

    def test_update_unknown_registration_sends_nothing(self) -> None:
        dashboard, session = _dashboard(empty_routes())
        with self.assertRaises(ValidationError) as ctx:
            dashboard.save_registration(rid(1), rid(2), record_id=rid(5))
        self.assertEqual(ctx.exception.field, "record_id")
        self.assertNotIn("PATCH", session.methods())

    def test_toggle_paid_sends_full_field_set(self) -> None:
        routes = empty_routes()
        routes[("GET", records_url("registrations"))] = FakeResponse(
            200,
            {
                rid(5): {
                    "fields": {
                        "teilnehmer": ref("participants", rid(1)),
                        "kurs": ref("courses", rid(2)),
                        "anmeldedatum": "2024-06-01",
                    }
                }
            },
        )
        routes[("PATCH", records_url("registrations", rid(5)))] = FakeResponse(200, body=b"")
        dashboard, session = _dashboard(routes)

        updated = dashboard.toggle_paid(rid(5))

        self.assertTrue(updated.paid)
        patch = [call for call in session.calls if call[0] == "PATCH"]
        self.assertEqual(
            patch[0][2],
            {
                "fields": {
                    "teilnehmer": ref("participants", rid(1)),
                    "kurs": ref("courses", rid(2)),
                    "anmeldedatum": "2024-06-01",
                    "bezahlt": True,
                }
            },
        )

    def test_toggle_unknown_registration(self) -> None:
        dashboard, session = _dashboard(empty_routes())
        with self.assertRaises(ValidationError):
            dashboard.toggle_paid(rid(5))
        self.assertNotIn("PATCH", session.methods())

    def test_delete_checks_id_first(self) -> None:
        dashboard, session = _dashboard(empty_routes())
        with self.assertRaises(ValidationError):
            dashboard.delete("courses", "not-an-id")
        self.assertEqual(session.calls, [])

    def test_delete_then_reload(self) -> None:
        routes = empty_routes()
        routes[("DELETE", records_url("rooms", rid(1)))] = FakeResponse(200, body=b"")
        dashboard, session = _dashboard(routes)

        dashboard.delete("rooms", rid(1))

        self.assertEqual(session.methods(), ["DELETE"] + ["GET"] * 5)

    def test_failed_mutation_does_not_reload(self) -> None:
        routes = empty_routes()
        routes[("POST", records_url("rooms"))] = FakeResponse(500, body=b"")
        dashboard, session = _dashboard(routes)

        with self.assertRaises(StoreError):
            dashboard.create("rooms", {"name": "Lab"})

        self.assertEqual(session.methods(), ["POST"])


if __name__ == "__main__":
    unittest.main()
