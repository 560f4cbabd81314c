from datetime import date
import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_background_runner, get_current_user, get_db
from app.core.config import get_settings
from app.models.friend_request import FriendRequest
from app.models.user import User
from app.schemas.friend import (
    FriendOut,
    FriendRequestAnswer,
    FriendRequestCreate,
    FriendRequestOut,
    FriendRequestsOut,
    FriendScheduleOut,
)
from app.schemas.timetable import BusyBlockEntry, FriendCalendarEvent, TimetableEntry
from app.services import friends as friend_service
from app.services.background import BackgroundTaskRunner
from app.services.email import send_email_quietly
from app.services.rate_limit import FRIEND_REQUEST_LIMIT, enforce_rate_limit
from app.services.timetable import day_window

logger = logging.getLogger(__name__)

router = APIRouter()


def _request_out(request: FriendRequest) -> FriendRequestOut:
    return FriendRequestOut(
        id=request.id,
        status=request.status,
        requester=FriendOut.from_user(request.requester),
        receiver=FriendOut.from_user(request.receiver),
        created_at=request.created_at,
    )


@router.post("/request", response_model=FriendRequestOut, status_code=status.HTTP_201_CREATED)
def send_request(
    payload: FriendRequestCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    runner: BackgroundTaskRunner = Depends(get_background_runner),
) -> FriendRequestOut:
    enforce_rate_limit(FRIEND_REQUEST_LIMIT, user_id=current_user.id)
    request = friend_service.send_friend_request(db, current_user, payload.email)
    if friend_service.wants_email_notifications(db, request.receiver):
        subject, text = friend_service.friend_request_email(request, get_settings().frontend_url)
        runner.submit(send_email_quietly, to_email=request.receiver.email, subject=subject, text_content=text)
    return _request_out(request)


@router.get("/requests", response_model=FriendRequestsOut)
def pending_requests(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    incoming, outgoing = friend_service.list_pending_requests(db, current_user)
    return FriendRequestsOut(
        incoming=[_request_out(item) for item in incoming],
        outgoing=[_request_out(item) for item in outgoing],
    )


@router.post("/accept", response_model=FriendRequestOut)
def accept_request(
    payload: FriendRequestAnswer,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> FriendRequestOut:
    return _request_out(friend_service.respond_to_request(db, current_user, payload.request_id, accept=True))


@router.post("/reject", response_model=FriendRequestOut)
def reject_request(
    payload: FriendRequestAnswer,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> FriendRequestOut:
    return _request_out(friend_service.respond_to_request(db, current_user, payload.request_id, accept=False))


@router.delete("/request/{request_id}")
def cancel_request(request_id: int, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    friend_service.cancel_request(db, current_user, request_id)
    return {"success": True}


@router.get("/", response_model=list[FriendOut])
def list_friends(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> list[FriendOut]:
    return [FriendOut.from_user(friend) for friend in friend_service.list_friends(db, current_user)]


@router.delete("/{friend_id}")
def remove_friend(friend_id: int, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    friend_service.remove_friend(db, current_user, friend_id)
    return {"success": True}


@router.get("/{friend_id}/events", response_model=FriendScheduleOut)
def friend_events(
    friend_id: int,
    day: date = Query(alias="date"),
    end: date | None = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> FriendScheduleOut:
    start_time, end_time = day_window(day, end)
    friend, events, blocks = friend_service.get_friend_schedule(db, current_user, friend_id, start_time, end_time)
    entries: list[FriendCalendarEvent] = [TimetableEntry.from_event(event) for event in events]
    entries.extend(BusyBlockEntry.from_slot(block) for block in blocks)
    entries.sort(key=lambda entry: entry.start_time)
    return FriendScheduleOut(friend=FriendOut.from_user(friend), events=entries)
