from app.models.course import Course  # noqa: F401
from app.models.custom_hour import CustomHour  # noqa: F401
from app.models.exam import Exam  # noqa: F401
from app.models.friend_request import FriendRequest, FriendRequestStatus  # noqa: F401
from app.models.room import Room  # noqa: F401
from app.models.tenant import Tenant  # noqa: F401
from app.models.timetable import TimetableEvent  # noqa: F401
from app.models.user import NotificationPreference, Theme, User, UserRole, UserSettings  # noqa: F401
from app.models.zenturie import Zenturie  # noqa: F401
