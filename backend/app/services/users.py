from __future__ import annotations

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import ResourceNotFoundError
from app.models.tenant import Tenant
from app.models.user import User, UserSettings
from app.models.zenturie import Zenturie

logger = logging.getLogger(__name__)


def names_from_email(email: str) -> tuple[str, str]:
    """``max.mustermann@nordakademie.de`` -> (``Max``, ``Mustermann``)."""
    local_part = email.split("@", 1)[0]
    first, _, last = local_part.partition(".")
    return first.strip().capitalize(), last.strip().capitalize()


def initials_for(first_name: str, last_name: str) -> str:
    if not first_name or not last_name:
        return "UU"
    return f"{first_name[0]}{last_name[0]}".upper()


def get_or_create_user(db: Session, tenant: Tenant, *, subject: str, email: str | None) -> User:
    """User row for an identity-provider subject, created on first sight."""
    statement = select(User).where(User.tenant_id == tenant.id, User.keycloak_user_id == subject)
    user = db.execute(statement).scalar_one_or_none()
    if user is not None:
        if email and user.email != email:
            user.email = email
            db.commit()
        return user

    email = email or ""
    first_name, last_name = names_from_email(email)
    user = User(
        tenant_id=tenant.id,
        keycloak_user_id=subject,
        email=email,
        first_name=first_name,
        last_name=last_name,
        initials=initials_for(first_name, last_name),
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # A concurrent request for the same subject won the insert.
        db.rollback()
        return db.execute(statement).scalar_one()
    db.refresh(user)
    logger.info("Provisioned user %s for tenant %s", user.id, tenant.slug)
    return user


def assign_zenturie(db: Session, user: User, zenturie_name: str) -> User:
    zenturie = db.execute(
        select(Zenturie).where(Zenturie.tenant_id == user.tenant_id, Zenturie.name == zenturie_name.strip())
    ).scalar_one_or_none()
    if zenturie is None:
        raise ResourceNotFoundError("Zenturie", zenturie_name)
    user.zenturie_id = zenturie.id
    user.zenturie = zenturie
    db.commit()
    return user


def rotate_subscription(db: Session, user: User) -> str:
    user.subscription_uuid = str(uuid.uuid4())
    db.commit()
    return user.subscription_uuid


def find_user_by_subscription(db: Session, token: str) -> User:
    user = db.execute(select(User).where(User.subscription_uuid == token)).scalar_one_or_none()
    if user is None:
        raise ResourceNotFoundError("Subscription", token)
    return user


def get_or_create_settings(db: Session, user: User) -> UserSettings:
    settings = db.execute(select(UserSettings).where(UserSettings.user_id == user.id)).scalar_one_or_none()
    if settings is None:
        settings = UserSettings(user_id=user.id)
        db.add(settings)
        db.commit()
        db.refresh(settings)
    return settings
