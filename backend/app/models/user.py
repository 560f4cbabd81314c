from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Enum as SAEnum, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from app.db.base import Base
from app.models.zenturie import Zenturie


class UserRole(str, Enum):
    admin = "admin"
    teacher = "teacher"
    student = "student"
    support = "support"


class Theme(str, Enum):
    auto = "auto"
    hell = "hell"
    dunkel = "dunkel"


class NotificationPreference(str, Enum):
    email = "email"
    mobile = "mobile"
    beide = "beide"
    keine = "keine"


class User(Base):
    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("tenant_id", "keycloak_user_id", name="uq_users_tenant_subject"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenants.id", ondelete="CASCADE"), index=True, nullable=False)
    keycloak_user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), index=True, nullable=False, default="")
    first_name: Mapped[str] = mapped_column(String(255), nullable=False)
    last_name: Mapped[str] = mapped_column(String(255), nullable=False)
    initials: Mapped[str] = mapped_column(String(2), nullable=False)
    zenturie_id: Mapped[int | None] = mapped_column(ForeignKey("zenturien.id", ondelete="SET NULL"), index=True)
    subscription_uuid: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    zenturie: Mapped[Zenturie | None] = relationship(lazy="joined")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def zenturie_name(self) -> str | None:
        return self.zenturie.name if self.zenturie is not None else None


class UserSettings(Base):
    __tablename__ = "user_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    theme: Mapped[Theme] = mapped_column(SAEnum(Theme, name="theme"), nullable=False, default=Theme.auto)
    notification_preference: Mapped[NotificationPreference] = mapped_column(
        SAEnum(NotificationPreference, name="notification_preference"),
        nullable=False,
        default=NotificationPreference.beide,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    @property
    def wants_email(self) -> bool:
        return self.notification_preference in (NotificationPreference.email, NotificationPreference.beide)
