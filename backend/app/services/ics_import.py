"""Reconciles parsed calendar events against the timetable tables.

Cohorts, courses and rooms are created lazily the first time an event
references them. Events are matched on ``(uid, zenturie_id)`` and only
written when a tracked field changed. Nothing is ever deleted here.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
import logging
import threading
from typing import Callable, Iterable

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.logging_config import get_import_stats_logger
from app.models.course import ELECTIVE_COURSE_TYPES, Course
from app.models.room import Room, extract_building_and_floor
from app.models.tenant import Tenant
from app.models.timetable import TimetableEvent
from app.models.zenturie import Zenturie, extract_year
from app.services.ics_fetcher import FeedFetcher
from app.services.ics_parser import ParsedEvent, parse_calendar

logger = logging.getLogger(__name__)

# Only the first few comparisons per run log their field diff.
DETAILED_CHANGE_LOG_LIMIT = 5


@dataclass
class ImportStatistics:
    files_downloaded: int = 0
    events_created: int = 0
    events_updated: int = 0
    events_unchanged: int = 0
    errors: int = 0

    @property
    def total_records(self) -> int:
        return self.events_created + self.events_updated + self.events_unchanged

    def merge(self, other: "ImportStatistics") -> None:
        self.files_downloaded += other.files_downloaded
        self.events_created += other.events_created
        self.events_updated += other.events_updated
        self.events_unchanged += other.events_unchanged
        self.errors += other.errors

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


class TimetableReconciler:
    """Writes parsed events of one tenant, one committed row at a time."""

    def __init__(self, db: Session, tenant_id: int) -> None:
        self.db = db
        self.tenant_id = tenant_id
        self._detailed_logs = 0

    def get_or_create_zenturie(self, name: str) -> Zenturie:
        zenturie = self.db.execute(
            select(Zenturie).where(Zenturie.tenant_id == self.tenant_id, Zenturie.name == name)
        ).scalar_one_or_none()
        if zenturie is not None:
            return zenturie
        zenturie = Zenturie(tenant_id=self.tenant_id, name=name, year=extract_year(name))
        self.db.add(zenturie)
        self.db.commit()
        logger.info("Created new zenturie %s", name)
        return zenturie

    def get_or_create_course(self, module_number: str | None, name: str | None, year: str) -> Course | None:
        if not module_number:
            return None
        course = self.db.execute(
            select(Course).where(Course.tenant_id == self.tenant_id, Course.module_number == module_number)
        ).scalar_one_or_none()
        if course is not None:
            return course
        course = Course(tenant_id=self.tenant_id, module_number=module_number, name=name or module_number, year=year)
        self.db.add(course)
        self.db.commit()
        logger.info("Created new course %s - %s", module_number, course.name)
        return course

    def get_or_create_room(self, room_number: str | None, room_name: str | None) -> Room | None:
        if not room_number:
            return None
        room = self.db.execute(
            select(Room).where(Room.tenant_id == self.tenant_id, Room.room_number == room_number)
        ).scalar_one_or_none()
        if room is not None:
            return room
        building, floor = extract_building_and_floor(room_number)
        room = Room(
            tenant_id=self.tenant_id,
            room_number=room_number,
            building=building,
            floor=floor,
            room_name=room_name,
        )
        self.db.add(room)
        self.db.commit()
        logger.info("Created new room %s (building %s, floor %s)", room_number, building, floor)
        return room

    def build_candidate(self, event: ParsedEvent, zenturie: Zenturie) -> TimetableEvent:
        course = None
        if event.course_type and event.course_type not in ELECTIVE_COURSE_TYPES:
            course = self.get_or_create_course(event.course_number, event.course_name, zenturie.year)
        room = self.get_or_create_room(event.room_number, event.room_name)
        return TimetableEvent(
            tenant_id=self.tenant_id,
            zenturie_id=zenturie.id,
            course_id=course.id if course is not None else None,
            room_id=room.id if room is not None else None,
            uid=event.uid,
            summary=event.summary,
            description=event.description,
            location=event.location,
            start_time=event.start_time,
            end_time=event.end_time,
            professor=event.professor,
            course_type=event.course_type,
            course_code=event.course_number,
        )

    def reconcile(self, zenturie_name: str, events: Iterable[ParsedEvent]) -> ImportStatistics:
        stats = ImportStatistics()
        try:
            zenturie = self.get_or_create_zenturie(zenturie_name)
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Failed to resolve zenturie %s", zenturie_name)
            stats.errors += 1
            return stats

        for event in events:
            if not event.uid:
                logger.warning("Skipping event without UID in %s", zenturie_name)
                stats.errors += 1
                continue
            if not event.has_valid_times:
                logger.warning(
                    "Skipping event %s with invalid times (%s - %s)",
                    event.uid,
                    event.start_time_raw,
                    event.end_time_raw,
                )
                stats.errors += 1
                continue
            try:
                outcome = self._write(event, zenturie)
            except SQLAlchemyError:
                self.db.rollback()
                logger.exception("Failed to store timetable event %s", event.uid)
                stats.errors += 1
                continue
            if outcome == "created":
                stats.events_created += 1
            elif outcome == "updated":
                stats.events_updated += 1
            else:
                stats.events_unchanged += 1

        logger.info(
            "Zenturie %s: %d created, %d updated, %d unchanged, %d errors",
            zenturie_name,
            stats.events_created,
            stats.events_updated,
            stats.events_unchanged,
            stats.errors,
        )
        return stats

    def _write(self, event: ParsedEvent, zenturie: Zenturie) -> str:
        candidate = self.build_candidate(event, zenturie)
        existing = self.db.execute(
            select(TimetableEvent).where(
                TimetableEvent.uid == event.uid,
                TimetableEvent.zenturie_id == zenturie.id,
            )
        ).scalar_one_or_none()

        if existing is None:
            self.db.add(candidate)
            self.db.commit()
            return "created"

        changed = existing.differs_from(candidate)
        if self._detailed_logs < DETAILED_CHANGE_LOG_LIMIT:
            self._detailed_logs += 1
            if changed:
                logger.info("Change detected for UID %s: %s", event.uid, ", ".join(changed))
            else:
                logger.debug("No changes for UID %s", event.uid)
        if not changed:
            return "unchanged"

        existing.apply(candidate)
        self.db.commit()
        return "updated"


def import_tenant_timetables(
    db: Session,
    tenant: Tenant,
    fetcher: FeedFetcher,
    *,
    stop_event: threading.Event | None = None,
) -> ImportStatistics:
    stats = ImportStatistics()
    names = list(
        db.execute(
            select(Zenturie.name).where(Zenturie.tenant_id == tenant.id).order_by(Zenturie.name)
        ).scalars()
    )
    if not names:
        logger.warning("No zenturien registered for tenant %s", tenant.slug)
        return stats

    logger.info("Fetching timetables of %d zenturien for tenant %s", len(names), tenant.slug)
    reconciler = TimetableReconciler(db, tenant.id)
    for payload in fetcher.iter_payloads(names, stop_event=stop_event):
        events = parse_calendar(payload.text)
        if not events:
            logger.warning("No events found in %s", payload.url)
            continue
        stats.files_downloaded += 1
        logger.info("Fetched %d events from %s", len(events), payload.url)
        stats.merge(reconciler.reconcile(payload.zenturie, events))
    return stats


def log_import_statistics(stats: ImportStatistics, log_file: str) -> None:
    try:
        stats_logger = get_import_stats_logger(log_file)
    except OSError:
        logger.warning("Unable to open import statistics log %s", log_file, exc_info=True)
        return
    stats_logger.info(
        "ICS-Import abgeschlossen - Dateien heruntergeladen: %d | Datensätze gesamt: %d | "
        "Neu hinzugefügt: %d | Geändert: %d | Bereits vorhanden: %d | Fehler: %d",
        stats.files_downloaded,
        stats.total_records,
        stats.events_created,
        stats.events_updated,
        stats.events_unchanged,
        stats.errors,
    )


def run_timetable_import(
    session_factory: Callable[[], Session],
    *,
    settings: Settings | None = None,
    fetcher: FeedFetcher | None = None,
    stop_event: threading.Event | None = None,
) -> ImportStatistics:
    """Fetch, parse and reconcile the feeds of every active tenant."""
    settings = settings or get_settings()
    owns_fetcher = fetcher is None
    if fetcher is None:
        fetcher = FeedFetcher(
            settings.ics_base_url,
            semesters=settings.ics_semesters,
            timeout_seconds=settings.ics_fetch_timeout_seconds,
        )

    stats = ImportStatistics()
    try:
        with session_factory() as db:
            tenants = list(
                db.execute(select(Tenant).where(Tenant.is_active.is_(True)).order_by(Tenant.id)).scalars()
            )
            for tenant in tenants:
                if stop_event is not None and stop_event.is_set():
                    break
                try:
                    stats.merge(import_tenant_timetables(db, tenant, fetcher, stop_event=stop_event))
                except SQLAlchemyError:
                    db.rollback()
                    logger.exception("Timetable import failed for tenant %s", tenant.slug)
                    stats.errors += 1
    finally:
        if owns_fetcher:
            fetcher.close()

    logger.info(
        "Import summary: %d files, %d created, %d updated, %d unchanged, %d errors",
        stats.files_downloaded,
        stats.events_created,
        stats.events_updated,
        stats.events_unchanged,
        stats.errors,
    )
    log_import_statistics(stats, settings.ics_import_log_file)
    return stats
