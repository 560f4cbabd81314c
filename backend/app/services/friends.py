from __future__ import annotations

from datetime import datetime
import logging

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError, InvalidInputError, PermissionDeniedError, ResourceNotFoundError
from app.models.custom_hour import CustomHour
from app.models.friend_request import FriendRequest, FriendRequestStatus
from app.models.timetable import TimetableEvent
from app.models.user import User, UserSettings
from app.services.room_availability import BlockedSlot

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = (FriendRequestStatus.pending, FriendRequestStatus.accepted)


def _between(user_a: int, user_b: int):
    return or_(
        and_(FriendRequest.requester_id == user_a, FriendRequest.receiver_id == user_b),
        and_(FriendRequest.requester_id == user_b, FriendRequest.receiver_id == user_a),
    )


def send_friend_request(db: Session, requester: User, receiver_email: str) -> FriendRequest:
    email = receiver_email.strip().lower()
    receiver = db.execute(
        select(User).where(User.tenant_id == requester.tenant_id, func.lower(User.email) == email)
    ).scalar_one_or_none()
    if receiver is None:
        raise ResourceNotFoundError("User", receiver_email)
    if receiver.id == requester.id:
        raise InvalidInputError("You cannot send a friend request to yourself")

    existing = db.execute(
        select(FriendRequest).where(_between(requester.id, receiver.id), FriendRequest.status.in_(ACTIVE_STATUSES))
    ).scalars().first()
    if existing is not None:
        if existing.status == FriendRequestStatus.accepted:
            raise ConflictError("You are already friends with this user")
        raise ConflictError("A pending friend request already exists", details={"request_id": existing.id})

    request = FriendRequest(requester_id=requester.id, receiver_id=receiver.id, status=FriendRequestStatus.pending)
    db.add(request)
    db.commit()
    db.refresh(request)
    logger.info("Friend request %s sent from user %s to user %s", request.id, requester.id, receiver.id)
    return request


def list_pending_requests(db: Session, user: User) -> tuple[list[FriendRequest], list[FriendRequest]]:
    """(incoming, outgoing) pending requests, newest first."""
    statement = select(FriendRequest).where(FriendRequest.status == FriendRequestStatus.pending)
    incoming = db.execute(
        statement.where(FriendRequest.receiver_id == user.id).order_by(FriendRequest.id.desc())
    ).scalars()
    outgoing = db.execute(
        statement.where(FriendRequest.requester_id == user.id).order_by(FriendRequest.id.desc())
    ).scalars()
    return list(incoming), list(outgoing)


def _get_request(db: Session, request_id: int) -> FriendRequest:
    request = db.get(FriendRequest, request_id)
    if request is None:
        raise ResourceNotFoundError("Friend request", request_id)
    return request


def respond_to_request(db: Session, user: User, request_id: int, *, accept: bool) -> FriendRequest:
    request = _get_request(db, request_id)
    if request.receiver_id != user.id:
        raise PermissionDeniedError("Only the receiver can answer a friend request")
    if request.status != FriendRequestStatus.pending:
        raise InvalidInputError(f"Friend request is already {request.status.value}")
    request.status = FriendRequestStatus.accepted if accept else FriendRequestStatus.rejected
    db.commit()
    db.refresh(request)
    return request


def cancel_request(db: Session, user: User, request_id: int) -> None:
    request = _get_request(db, request_id)
    if request.requester_id != user.id:
        raise PermissionDeniedError("Only the sender can cancel a friend request")
    if request.status != FriendRequestStatus.pending:
        raise InvalidInputError("Only pending friend requests can be cancelled")
    db.delete(request)
    db.commit()


def list_friends(db: Session, user: User) -> list[User]:
    requests = db.execute(
        select(FriendRequest).where(
            FriendRequest.status == FriendRequestStatus.accepted,
            or_(FriendRequest.requester_id == user.id, FriendRequest.receiver_id == user.id),
        )
    ).scalars()
    friends = [request.other_party(user.id) for request in requests]
    return sorted(friends, key=lambda friend: (friend.last_name.lower(), friend.first_name.lower()))


def are_friends(db: Session, user_a: int, user_b: int) -> bool:
    found = db.execute(
        select(FriendRequest.id).where(_between(user_a, user_b), FriendRequest.status == FriendRequestStatus.accepted)
    ).first()
    return found is not None


def remove_friend(db: Session, user: User, friend_id: int) -> None:
    request = db.execute(
        select(FriendRequest).where(_between(user.id, friend_id), FriendRequest.status == FriendRequestStatus.accepted)
    ).scalars().first()
    if request is None:
        raise ResourceNotFoundError("Friend", friend_id)
    db.delete(request)
    db.commit()


def get_friend_schedule(
    db: Session, user: User, friend_id: int, start: datetime, end: datetime
) -> tuple[User, list[TimetableEvent], list[BlockedSlot]]:
    """A friend's cohort timetable plus their custom hours reduced to busy blocks."""
    if not are_friends(db, user.id, friend_id):
        raise PermissionDeniedError("You can only view the schedule of your friends")
    friend = db.get(User, friend_id)
    if friend is None:
        raise ResourceNotFoundError("User", friend_id)

    events: list[TimetableEvent] = []
    if friend.zenturie_id is not None:
        events = list(
            db.execute(
                select(TimetableEvent)
                .where(
                    TimetableEvent.zenturie_id == friend.zenturie_id,
                    TimetableEvent.start_time < end,
                    TimetableEvent.end_time > start,
                )
                .order_by(TimetableEvent.start_time)
            ).scalars()
        )
    custom_hours = db.execute(
        select(CustomHour)
        .where(CustomHour.user_id == friend.id, CustomHour.start_time < end, CustomHour.end_time > start)
        .order_by(CustomHour.start_time)
    ).scalars()
    return friend, events, [BlockedSlot.from_custom_hour(item) for item in custom_hours]


def wants_email_notifications(db: Session, user: User) -> bool:
    settings = db.execute(select(UserSettings).where(UserSettings.user_id == user.id)).scalar_one_or_none()
    # Users who never opened their settings have the default preference, which includes e-mail.
    return settings is None or settings.wants_email


def friend_request_email(request: FriendRequest, frontend_url: str) -> tuple[str, str]:
    requester = request.requester
    subject = "NORA: Neue Freundschaftsanfrage"
    text = (
        f"Hallo {request.receiver.first_name},\n\n"
        f"{requester.full_name} ({requester.email}) möchte mit dir auf NORA befreundet sein.\n\n"
        f"Anfrage ansehen: {frontend_url.rstrip('/')}/friends\n\n"
        "Viele Grüße\nDein NORA-Team"
    )
    return subject, text
