from pathlib import Path

import httpx
import pytest
from sqlalchemy import select

from app.core.config import Settings
from app.models.course import Course
from app.models.room import Room
from app.models.timetable import TimetableEvent
from app.models.zenturie import Zenturie
from app.services.ics_fetcher import FeedFetcher, build_feed_url, decode_body
from app.services.ics_import import TimetableReconciler, import_tenant_timetables, run_timetable_import
from app.services.ics_parser import parse_calendar

from conftest import utc

BASE_URL = "https://feeds.nordakademie.test/Stundenplaene"


def vevent(uid="evt-1", start="20250120T080000Z", end="20250120T093000Z", description=None, **extra) -> str:
    lines = ["BEGIN:VEVENT", f"UID:{uid}", f"DTSTART:{start}", f"DTEND:{end}"]
    lines.append(f"SUMMARY:{extra.get('summary', 'V I231 Algorithmen')}")
    lines.append(f"LOCATION:{extra.get('location', 'A104')}")
    if description is not None:
        lines.append(f"DESCRIPTION:{description}")
    lines.append("END:VEVENT")
    return "\r\n".join(lines)


def calendar(*events: str) -> str:
    return "\r\n".join(["BEGIN:VCALENDAR", "VERSION:2.0", *events, "END:VCALENDAR", ""])


ALGORITHMEN = "Veranstaltung: V I231 Algorithmen Dozent: Prof. Müller Pause: 15 Raum: A104 Anmerkung: -"


class FeedServer:
    """Serves feed bodies per URL through an httpx mock transport."""

    def __init__(self) -> None:
        self.bodies: dict[str, tuple[bytes, dict]] = {}
        self.requests: list[httpx.Request] = []

    def serve(
        self,
        url: str,
        text: str,
        *,
        charset: str | None = "utf-8",
        encoding: str | None = None,
        headers: dict | None = None,
    ) -> None:
        content_type = f"text/calendar; charset={charset}" if charset else "text/calendar"
        response_headers = {"content-type": content_type}
        response_headers.update(headers or {})
        self.bodies[url] = (text.encode(encoding or charset or "utf-8"), response_headers)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        found = self.bodies.get(str(request.url))
        if found is None:
            return httpx.Response(404)
        body, headers = found
        etag = headers.get("etag")
        if etag and request.headers.get("if-none-match") == etag:
            return httpx.Response(304)
        return httpx.Response(200, content=body, headers=headers)

    def fetcher(self) -> FeedFetcher:
        return FeedFetcher(BASE_URL, semesters=2, transport=httpx.MockTransport(self.handler))


@pytest.fixture()
def server():
    return FeedServer()


def test_first_import_creates_then_is_idempotent(db, tenant, make_zenturie, server):
    make_zenturie("I24c")
    server.serve(build_feed_url(BASE_URL, "I24c", 1), calendar(vevent(description=ALGORITHMEN)))

    with server.fetcher() as fetcher:
        first = import_tenant_timetables(db, tenant, fetcher)
        second = import_tenant_timetables(db, tenant, fetcher)

    assert (first.files_downloaded, first.events_created, first.errors) == (1, 1, 0)
    assert (second.events_created, second.events_updated, second.events_unchanged) == (0, 0, 1)

    event = db.execute(select(TimetableEvent).where(TimetableEvent.uid == "evt-1")).scalar_one()
    assert event.start_time == utc(2025, 1, 20, 8, 0)
    assert event.professor == "Prof. Müller"
    course = db.get(Course, event.course_id)
    assert course.module_number == "I231"
    room = db.get(Room, event.room_id)
    assert (room.room_number, room.building, room.floor) == ("A104", "A", "1")


def test_empty_and_missing_description_compare_equal(db, tenant, make_zenturie, server):
    make_zenturie("I24c")
    url = build_feed_url(BASE_URL, "I24c", 1)
    server.serve(url, calendar(vevent(description="")))
    with server.fetcher() as fetcher:
        import_tenant_timetables(db, tenant, fetcher)

    server.serve(url, calendar(vevent()))
    with server.fetcher() as fetcher:
        stats = import_tenant_timetables(db, tenant, fetcher)

    assert (stats.events_created, stats.events_updated, stats.events_unchanged) == (0, 0, 1)


def test_changed_times_update_the_row(db, tenant, make_zenturie, server):
    make_zenturie("I24c")
    url = build_feed_url(BASE_URL, "I24c", 1)
    server.serve(url, calendar(vevent(description=ALGORITHMEN)))
    with server.fetcher() as fetcher:
        import_tenant_timetables(db, tenant, fetcher)

    server.serve(url, calendar(vevent(end="20250120T100000Z", description=ALGORITHMEN)))
    with server.fetcher() as fetcher:
        stats = import_tenant_timetables(db, tenant, fetcher)

    assert stats.events_updated == 1
    db.expire_all()
    event = db.execute(select(TimetableEvent).where(TimetableEvent.uid == "evt-1")).scalar_one()
    assert event.end_time == utc(2025, 1, 20, 10, 0)


def test_unparseable_description_is_still_imported(db, tenant):
    events = parse_calendar(calendar(vevent(uid="evt-9", description="nur Freitext")))
    stats = TimetableReconciler(db, tenant.id).reconcile("I24c", events)

    assert stats.events_created == 1
    event = db.execute(select(TimetableEvent).where(TimetableEvent.uid == "evt-9")).scalar_one()
    assert event.description == "nur Freitext"
    assert event.professor is None
    assert event.course_id is None


def test_same_uid_in_two_cohorts_gives_two_rows(db, tenant):
    events = parse_calendar(calendar(vevent(uid="shared", description=ALGORITHMEN)))
    reconciler = TimetableReconciler(db, tenant.id)
    reconciler.reconcile("I24a", events)
    reconciler.reconcile("I24b", events)

    rows = db.execute(select(TimetableEvent).where(TimetableEvent.uid == "shared")).scalars().all()
    assert len(rows) == 2
    assert len(db.execute(select(Course)).scalars().all()) == 1


def test_elective_events_have_no_course(db, tenant):
    description = "Veranstaltung: WP I305 Data Science Dozent: N.N. Pause: - Raum: A104 Anmerkung: -"
    events = parse_calendar(calendar(vevent(uid="wp-1", description=description)))
    TimetableReconciler(db, tenant.id).reconcile("I24c", events)

    event = db.execute(select(TimetableEvent).where(TimetableEvent.uid == "wp-1")).scalar_one()
    assert event.course_type == "WP"
    assert event.course_id is None
    assert event.course_code == "I305"
    assert db.execute(select(Course)).first() is None


def test_events_without_uid_or_valid_times_count_as_errors(db, tenant):
    events = parse_calendar(
        calendar(
            vevent(uid=""),
            vevent(uid="backwards", start="20250120T100000Z", end="20250120T080000Z"),
            vevent(uid="fine"),
        )
    )
    stats = TimetableReconciler(db, tenant.id).reconcile("I24c", events)
    assert stats.errors == 2
    assert stats.events_created == 1


def test_declared_charset_is_honoured(db, tenant, make_zenturie, server):
    make_zenturie("I24c")
    url = build_feed_url(BASE_URL, "I24c", 1)
    server.serve(url, calendar(vevent(description=ALGORITHMEN)), charset="iso-8859-1")
    with server.fetcher() as fetcher:
        import_tenant_timetables(db, tenant, fetcher)

    server.serve(url, calendar(vevent(description=ALGORITHMEN)), charset="utf-8")
    with server.fetcher() as fetcher:
        stats = import_tenant_timetables(db, tenant, fetcher)

    assert stats.events_unchanged == 1
    event = db.execute(select(TimetableEvent).where(TimetableEvent.uid == "evt-1")).scalar_one()
    assert event.professor == "Prof. Müller"


def test_decode_body_sniffs_undeclared_encodings():
    assert decode_body("Müller".encode("utf-8"), "bogus-charset") == "Müller"
    assert decode_body("Müller".encode("utf-8"), None) == "Müller"
    assert decode_body("Prof. Müller".encode("latin-1"), None) == "Prof. Müller"
    assert decode_body("Größe – 5 €".encode("cp1252"), None) == "Größe – 5 €"
    # A wrong declaration falls back instead of failing.
    assert decode_body("Müller".encode("latin-1"), "utf-8") == "Müller"


def test_latin1_feed_without_charset_keeps_umlauts(db, tenant, make_zenturie, server):
    make_zenturie("I24c")
    url = build_feed_url(BASE_URL, "I24c", 1)
    server.serve(url, calendar(vevent(description=ALGORITHMEN)), charset=None, encoding="latin-1")
    with server.fetcher() as fetcher:
        stats = import_tenant_timetables(db, tenant, fetcher)

    assert stats.events_created == 1
    event = db.execute(select(TimetableEvent).where(TimetableEvent.uid == "evt-1")).scalar_one()
    assert event.professor == "Prof. Müller"
    assert "\ufffd" not in event.description


def test_short_cohort_name_has_empty_year(db, tenant):
    stats = TimetableReconciler(db, tenant.id).reconcile("I2", parse_calendar(calendar(vevent(description=ALGORITHMEN))))
    assert stats.events_created == 1
    zenturie = db.execute(select(Zenturie).where(Zenturie.name == "I2")).scalar_one()
    assert zenturie.year == ""
    event = db.execute(select(TimetableEvent).where(TimetableEvent.uid == "evt-1")).scalar_one()
    assert event.zenturie_id == zenturie.id


def test_missing_feeds_are_skipped_and_not_modified_reuses_body(server):
    url = build_feed_url(BASE_URL, "I24c", 1)
    server.serve(url, calendar(vevent()), headers={"etag": '"v1"'})

    with server.fetcher() as fetcher:
        first = list(fetcher.iter_payloads(["I24c"]))
        second = list(fetcher.iter_payloads(["I24c"]))

    assert [payload.semester for payload in first] == [1]
    assert second[0].text == first[0].text
    conditional = [request for request in server.requests if request.headers.get("if-none-match")]
    assert len(conditional) == 1


def test_empty_feed_is_not_counted(db, tenant, make_zenturie, server):
    make_zenturie("I24c")
    server.serve(build_feed_url(BASE_URL, "I24c", 1), calendar())
    with server.fetcher() as fetcher:
        stats = import_tenant_timetables(db, tenant, fetcher)
    assert stats.files_downloaded == 0
    assert stats.total_records == 0


def test_run_timetable_import_writes_statistics_line(session_factory, tenant, make_zenturie, server, tmp_path):
    make_zenturie("I24c")
    server.serve(build_feed_url(BASE_URL, "I24c", 1), calendar(vevent(description=ALGORITHMEN)))
    log_file = tmp_path / "imports.log"
    settings = Settings(ics_import_log_file=str(log_file), ics_base_url=BASE_URL)

    with server.fetcher() as fetcher:
        stats = run_timetable_import(session_factory, settings=settings, fetcher=fetcher)

    assert stats.events_created == 1
    line = Path(log_file).read_text(encoding="utf-8")
    assert "ICS-Import abgeschlossen - Dateien heruntergeladen: 1" in line
    assert "Neu hinzugefügt: 1" in line
    assert "Fehler: 0" in line
