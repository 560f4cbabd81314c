"""Parser for the institution's line-oriented timetable calendar feed.

The feed is close to iCalendar but not strict enough for a general purpose
library: descriptions carry a German key/value layout, escaped newlines and
commas are rewritten before folding, and location values mix bare room
numbers with free text. Only ``VEVENT`` components are consumed.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from enum import Enum
import logging
import re
from typing import Callable
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)

INSTITUTION_TIMEZONE = ZoneInfo("Europe/Berlin")

UTC_FORMAT = "%Y%m%dT%H%M%SZ"
LOCAL_FORMAT = "%Y%m%dT%H%M%S"
DATE_FORMAT = "%Y%m%d"

ROOM_PATTERN = re.compile(r"(?P<room_number>[A-Z]\d+)")
DESCRIPTION_PATTERN = re.compile(
    r"Veranstaltung:\s*(?P<course>.*?)\s+Dozent:\s*(?P<professor>.*?)\s+Pause:\s*(?P<pause>.*?)"
    r"\s+Raum:\s*(?P<room>.*?)\s+Anmerkung:\s*(?P<annotation>.*)"
)
COURSE_PATTERNS = (
    re.compile(r"^(?P<course_type>\S+)\s+(?P<course_number>\S+)\s+(?P<course_name>.*)$"),
    re.compile(r"^(?P<course_type>\S+)\s+(?P<course_name>.*)$"),
)

BEGIN_EVENT = "BEGIN:VEVENT"
END_EVENT = "END:VEVENT"


class ICSProperty(str, Enum):
    uid = "UID"
    summary = "SUMMARY"
    dtstamp = "DTSTAMP"
    transp = "TRANSP"
    sequence = "SEQUENCE"
    priority = "PRIORITY"
    klass = "CLASS"
    categories = "CATEGORIES"
    dtstart = "DTSTART"
    dtend = "DTEND"
    location = "LOCATION"
    description = "DESCRIPTION"


@dataclass
class ParsedEvent:
    uid: str = ""
    summary: str = ""
    dtstamp: str | None = None
    transp: str | None = None
    sequence: str | None = None
    priority: str | None = None
    klass: str | None = None
    categories: str | None = None
    start_time: datetime | None = None
    start_time_raw: str | None = None
    end_time: datetime | None = None
    end_time_raw: str | None = None
    location: str | None = None
    room_number: str | None = None
    room_name: str | None = None
    description: str | None = None
    professor: str | None = None
    pause: str | None = None
    annotation: str | None = None
    course_type: str | None = None
    course_number: str | None = None
    course_name: str | None = None

    @property
    def has_valid_times(self) -> bool:
        return self.start_time is not None and self.end_time is not None and self.start_time < self.end_time


def clean_line(line: str) -> str:
    """Strip the trailing CR and rewrite escaped newlines and commas.

    Leading whitespace is kept, it marks a continuation line.
    """
    line = line.rstrip("\r")
    line = line.replace("\\n", " ")
    return line.replace("\\,", ", ")


TEXT_ESCAPE_PATTERN = re.compile(r"\\([\\;])")


def unescape_text(value: str) -> str:
    r"""Undo the ``\;`` and ``\\`` escapes that :func:`clean_line` leaves in text values."""
    return TEXT_ESCAPE_PATTERN.sub(r"\1", value)


def pattern_search(value: str, *patterns: re.Pattern) -> dict[str, str] | None:
    """Named groups of the first pattern that matches, stripped; ``None`` if none match."""
    value = value.strip()
    for pattern in patterns:
        match = pattern.search(value)
        if match:
            return {name: (group or "").strip() for name, group in match.groupdict().items()}
    return None


def parse_datetime(value: str) -> datetime | None:
    value = value.strip()
    try:
        if value.endswith("Z"):
            return datetime.strptime(value, UTC_FORMAT).replace(tzinfo=timezone.utc)
        if len(value) == 8:
            day = datetime.strptime(value, DATE_FORMAT).date()
            return _local_to_utc(day, time.min)
        local = datetime.strptime(value, LOCAL_FORMAT)
        return _local_to_utc(local.date(), local.time())
    except ValueError:
        logger.warning("Failed to parse datetime %r", value)
        return None


def _local_to_utc(day: date, moment: time) -> datetime:
    return datetime.combine(day, moment, tzinfo=INSTITUTION_TIMEZONE).astimezone(timezone.utc)


class EventBuilder:
    """Accumulates the properties of one ``VEVENT`` into a :class:`ParsedEvent`."""

    def __init__(self) -> None:
        self.event = ParsedEvent()
        self._handlers: dict[ICSProperty, Callable[[str], None]] = {
            ICSProperty.uid: self._set_uid,
            ICSProperty.summary: self._set_summary,
            ICSProperty.dtstamp: self._setter("dtstamp"),
            ICSProperty.transp: self._setter("transp"),
            ICSProperty.sequence: self._setter("sequence"),
            ICSProperty.priority: self._setter("priority"),
            ICSProperty.klass: self._setter("klass"),
            ICSProperty.categories: self._setter("categories"),
            ICSProperty.dtstart: self._set_start,
            ICSProperty.dtend: self._set_end,
            ICSProperty.location: self._set_location,
            ICSProperty.description: self._set_description,
        }

    def add(self, name: str, value: str) -> None:
        try:
            prop = ICSProperty(name)
        except ValueError:
            return
        self._handlers[prop](value)

    def build(self) -> ParsedEvent:
        return self.event

    def _setter(self, attribute: str) -> Callable[[str], None]:
        def handler(value: str) -> None:
            setattr(self.event, attribute, value)

        return handler

    def _set_uid(self, value: str) -> None:
        self.event.uid = value.strip()

    def _set_summary(self, value: str) -> None:
        self.event.summary = unescape_text(value).strip()

    def _set_start(self, value: str) -> None:
        self.event.start_time_raw = value
        self.event.start_time = parse_datetime(value)

    def _set_end(self, value: str) -> None:
        self.event.end_time_raw = value
        self.event.end_time = parse_datetime(value)

    def _set_location(self, value: str) -> None:
        value = unescape_text(value).strip()
        self.event.location = value or None
        if len(value) <= 4:
            self.event.room_number = value or None
            return
        found = pattern_search(value, ROOM_PATTERN)
        if found is None:
            logger.warning("No room number in location %r (UID: %s)", value, self.event.uid)
        else:
            self.event.room_number = found["room_number"]
        self.event.room_name = value

    def _set_description(self, value: str) -> None:
        value = unescape_text(value)
        self.event.description = value.strip() or None
        fields = pattern_search(value, DESCRIPTION_PATTERN)
        if fields is None:
            if value.strip():
                logger.warning("Failed to parse description field (UID: %s): %r", self.event.uid, value)
            return
        self.event.professor = fields["professor"] or None
        self.event.pause = fields["pause"] or None
        self.event.annotation = fields["annotation"] or None

        if not fields["course"]:
            return
        course = pattern_search(fields["course"], *COURSE_PATTERNS)
        if course is None:
            logger.warning(
                "Failed to parse module info (UID: %s): %r", self.event.uid, fields["course"]
            )
            return
        self.event.course_type = course["course_type"] or None
        self.event.course_number = course.get("course_number") or None
        self.event.course_name = course["course_name"] or None


def _split_property(line: str) -> tuple[str, str] | None:
    colon = line.find(":")
    if colon == -1:
        return None
    head = line[:colon]
    semicolon = head.find(";")
    name = head[:semicolon] if semicolon != -1 else head
    return name.strip().upper(), line[colon + 1:]


def parse_calendar(content: str) -> list[ParsedEvent]:
    events: list[ParsedEvent] = []
    builder: EventBuilder | None = None
    field: str | None = None
    value = ""

    for raw_line in content.split("\n"):
        line = clean_line(raw_line)

        if line == BEGIN_EVENT:
            builder = EventBuilder()
            field, value = None, ""
            continue

        if line == END_EVENT and builder is not None:
            if field is not None:
                builder.add(field, value)
            events.append(builder.build())
            builder, field, value = None, None, ""
            continue

        if builder is None:
            continue

        if line[:1] in (" ", "\t"):
            value += line.lstrip(" \t")
            continue

        if field is not None:
            builder.add(field, value)
            field, value = None, ""

        split = _split_property(line)
        if split is None:
            if line.strip():
                logger.debug("Skipping malformed calendar line %r", line)
            continue
        field, value = split

    return events
