"""Fuzzy search across a user's timetable, custom hours, exams, rooms and friends."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.custom_hour import CustomHour
from app.models.exam import Exam
from app.models.room import Room
from app.models.timetable import TimetableEvent
from app.models.user import User
from app.services.friends import list_friends

MIN_SCORE = 0.3
MAX_RESULTS_PER_GROUP = 10


@dataclass
class SearchHit:
    result_type: str
    id: int
    name: str
    score: float
    details: str | None = None
    start_time: datetime | None = None
    location: str | None = None


@dataclass
class GroupedResults:
    timetables: list[SearchHit] = field(default_factory=list)
    custom_hours: list[SearchHit] = field(default_factory=list)
    exams: list[SearchHit] = field(default_factory=list)
    rooms: list[SearchHit] = field(default_factory=list)
    friends: list[SearchHit] = field(default_factory=list)

    def finalize(self) -> "GroupedResults":
        for name in ("timetables", "custom_hours", "exams", "rooms", "friends"):
            hits = sorted(getattr(self, name), key=lambda hit: hit.score, reverse=True)
            setattr(self, name, hits[:MAX_RESULTS_PER_GROUP])
        return self


def levenshtein_distance(left: str, right: str) -> int:
    if not left:
        return len(right)
    if not right:
        return len(left)
    previous = list(range(len(right) + 1))
    for i, left_char in enumerate(left, start=1):
        current = [i]
        for j, right_char in enumerate(right, start=1):
            cost = 0 if left_char == right_char else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def longest_common_subsequence(left: str, right: str) -> int:
    previous = [0] * (len(right) + 1)
    for left_char in left:
        current = [0]
        for j, right_char in enumerate(right, start=1):
            if left_char == right_char:
                current.append(previous[j - 1] + 1)
            else:
                current.append(max(previous[j], current[j - 1]))
        previous = current
    return previous[-1]


def similarity(query: str, text: str | None) -> float:
    """Score in [0, 1]; substring and word-prefix hits outrank fuzzy matches."""
    if not query or not text:
        return 0.0
    query = query.lower()
    text = text.lower()
    if query == text:
        return 1.0
    if query in text:
        return 0.85 + 0.15 * len(query) / len(text)

    words = text.split()
    if any(word.startswith(query) for word in words):
        return 0.75
    query_words = query.split()
    if query_words and all(any(q in word for word in words) for q in query_words):
        return 0.65

    ratio = 1.0 - levenshtein_distance(query, text) / max(len(query), len(text))
    if ratio > 0.4:
        return ratio * 0.5

    common = longest_common_subsequence(query, text)
    if common > 3 and common / len(query) > 0.5:
        return common / len(query) * 0.4
    return 0.0


def best_score(query: str, fields: Iterable[str | None]) -> float:
    return max((similarity(query, value) for value in fields), default=0.0)


def search(db: Session, user: User, query: str) -> GroupedResults:
    results = GroupedResults()
    query = query.strip()

    if user.zenturie_id is not None:
        events = db.execute(select(TimetableEvent).where(TimetableEvent.zenturie_id == user.zenturie_id)).scalars()
        for event in events:
            score = best_score(
                query, (event.summary, event.description, event.professor, event.course_code, event.location)
            )
            if score >= MIN_SCORE:
                results.timetables.append(
                    SearchHit(
                        result_type="event",
                        id=event.id,
                        name=event.summary,
                        score=score,
                        details=f"Professor: {event.professor}" if event.professor else None,
                        start_time=event.start_time,
                        location=event.room_number or event.location,
                    )
                )

    for item in db.execute(select(CustomHour).where(CustomHour.user_id == user.id)).scalars():
        score = best_score(query, (item.title, item.description, item.location))
        if score >= MIN_SCORE:
            results.custom_hours.append(
                SearchHit(
                    result_type="custom_hour",
                    id=item.id,
                    name=item.title,
                    score=score,
                    details=item.description,
                    start_time=item.start_time,
                    location=item.location,
                )
            )

    for exam in db.execute(select(Exam).where(Exam.user_id == user.id)).scalars():
        score = best_score(query, (exam.course.name, exam.course.module_number, exam.room_number))
        if score >= MIN_SCORE:
            results.exams.append(
                SearchHit(
                    result_type="exam",
                    id=exam.id,
                    name=exam.course.name,
                    score=score,
                    details=f"{exam.course.module_number} - {exam.duration} Minuten",
                    start_time=exam.start_time,
                    location=exam.room_number,
                )
            )

    for room in db.execute(select(Room).where(Room.tenant_id == user.tenant_id)).scalars():
        score = best_score(query, (room.room_number, room.room_name, room.building, f"Etage {room.floor}"))
        if score >= MIN_SCORE:
            location = f"Gebäude {room.building}, Etage {room.floor}"
            results.rooms.append(
                SearchHit(
                    result_type="room",
                    id=room.id,
                    name=room.room_number,
                    score=score,
                    details=room.room_name or location,
                    location=location,
                )
            )

    for friend in list_friends(db, user):
        score = best_score(
            query, (friend.first_name, friend.last_name, friend.initials, friend.zenturie_name, friend.email)
        )
        if score >= MIN_SCORE:
            results.friends.append(
                SearchHit(
                    result_type="friend",
                    id=friend.id,
                    name=friend.full_name,
                    score=score,
                    details=f"Zenturie: {friend.zenturie_name or ''}",
                )
            )

    return results.finalize()
