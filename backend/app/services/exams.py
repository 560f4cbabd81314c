from __future__ import annotations

from datetime import datetime, timezone
import logging

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError, InvalidInputError, PermissionDeniedError, ResourceNotFoundError
from app.models.course import Course
from app.models.exam import EXAM_DURATIONS, Exam
from app.models.room import Room
from app.models.user import User
from app.models.zenturie import Zenturie

logger = logging.getLogger(__name__)

VERIFICATION_THRESHOLD = 3


def _group_filter(course_id: int, start_time: datetime, duration: int) -> tuple:
    return (Exam.course_id == course_id, Exam.start_time == start_time, Exam.duration == duration)


def record_exam(
    db: Session,
    *,
    user: User,
    course: Course,
    start_time: datetime,
    duration: int,
    room: Room | None = None,
) -> Exam:
    """Insert one user's exam report and verify its group once enough users agree.

    The course row is locked for the duration of the transaction so the
    recount and the group update see every concurrent insert for that course.
    """
    if duration not in EXAM_DURATIONS:
        raise InvalidInputError(
            f"duration must be one of {', '.join(str(item) for item in EXAM_DURATIONS)}",
            details={"duration": duration},
        )
    if start_time.tzinfo is None:
        start_time = start_time.replace(tzinfo=timezone.utc)
    start_time = start_time.astimezone(timezone.utc).replace(microsecond=0)

    db.execute(select(Course.id).where(Course.id == course.id).with_for_update()).scalar_one()

    duplicate = db.execute(
        select(Exam.id).where(Exam.user_id == user.id, *_group_filter(course.id, start_time, duration))
    ).first()
    if duplicate is not None:
        db.rollback()
        raise ConflictError("Exam already reported", details={"exam_id": duplicate.id})

    exam = Exam(
        user_id=user.id,
        course_id=course.id,
        start_time=start_time,
        duration=duration,
        room_id=room.id if room is not None else None,
        is_verified=False,
    )
    db.add(exam)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("Exam already reported") from exc

    reporters = db.execute(
        select(func.count(func.distinct(Exam.user_id))).where(*_group_filter(course.id, start_time, duration))
    ).scalar_one()
    if reporters >= VERIFICATION_THRESHOLD:
        db.execute(
            update(Exam)
            .where(*_group_filter(course.id, start_time, duration), Exam.is_verified.is_(False))
            .values(is_verified=True)
            .execution_options(synchronize_session=False)
        )
        exam.is_verified = True
        logger.info(
            "Exam group verified: course %s at %s (%d min) by %d users",
            course.module_number,
            start_time.isoformat(),
            duration,
            reporters,
        )
    db.commit()
    db.refresh(exam)
    return exam


def list_upcoming_exams(db: Session, user: User, now: datetime | None = None) -> list[Exam]:
    """Exams reported by anyone in a cohort sharing the user's program and year."""
    if user.zenturie is None:
        return []
    now = now or datetime.now(timezone.utc)
    prefix = user.zenturie.study_program_prefix
    reporters = (
        select(User.id)
        .join(Zenturie, User.zenturie_id == Zenturie.id)
        .where(Zenturie.tenant_id == user.tenant_id, Zenturie.name.startswith(prefix, autoescape=True))
    )
    statement = (
        select(Exam)
        .where(Exam.user_id.in_(reporters), Exam.start_time >= now)
        .order_by(Exam.start_time, Exam.id)
    )
    return list(db.execute(statement).unique().scalars())


def delete_exam(db: Session, user: User, exam_id: int) -> None:
    exam = db.get(Exam, exam_id)
    if exam is None:
        raise ResourceNotFoundError("Exam", exam_id)
    if exam.user_id != user.id:
        raise PermissionDeniedError("Only the reporting user can delete an exam")
    db.delete(exam)
    db.commit()
