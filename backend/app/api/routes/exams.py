from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db
from app.core.exceptions import InvalidInputError
from app.models.exam import Exam
from app.models.user import User
from app.schemas.exam import ExamCreate, ExamOut
from app.services.exams import delete_exam, list_upcoming_exams, record_exam
from app.services.room_availability import get_room
from app.services.timetable import get_course

router = APIRouter()


def _out(exam: Exam, user: User) -> ExamOut:
    return ExamOut(
        id=exam.id,
        module_number=exam.course.module_number,
        course_name=exam.course.name,
        start_time=exam.start_time,
        end_time=exam.end_time,
        duration=exam.duration,
        room_number=exam.room_number,
        is_verified=exam.is_verified,
        reported_by_me=exam.user_id == user.id,
    )


@router.post("/", response_model=ExamOut, status_code=status.HTTP_201_CREATED)
def add_exam(
    payload: ExamCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ExamOut:
    if current_user.zenturie_id is None:
        raise InvalidInputError("Assign a zenturie before reporting exams")
    course = get_course(db, current_user.tenant_id, payload.module_number)
    room = get_room(db, current_user.tenant_id, payload.room_number) if payload.room_number else None
    exam = record_exam(
        db,
        user=current_user,
        course=course,
        start_time=payload.start_time,
        duration=payload.duration,
        room=room,
    )
    return _out(exam, current_user)


@router.get("/", response_model=list[ExamOut])
def upcoming_exams(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> list[ExamOut]:
    return [_out(exam, current_user) for exam in list_upcoming_exams(db, current_user)]


@router.delete("/{exam_id}")
def remove_exam(exam_id: int, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> dict:
    delete_exam(db, current_user, exam_id)
    return {"success": True}
