from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, get_token_claims
from app.core.config import get_settings
from app.core.security import TokenClaims
from app.models.user import User
from app.schemas.user import SubscriptionOut, UserOut, UserSettingsOut, UserSettingsUpdate, ZenturieAssign
from app.services.users import assign_zenturie, get_or_create_settings, rotate_subscription

router = APIRouter()


def _user_out(user: User, claims: TokenClaims) -> UserOut:
    return UserOut(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        initials=user.initials,
        zenturie=user.zenturie_name,
        subscription_uuid=user.subscription_uuid,
        roles=sorted(claims.roles),
        created_at=user.created_at,
    )


@router.get("/user", response_model=UserOut)
def get_user(
    claims: TokenClaims = Depends(get_token_claims),
    current_user: User = Depends(get_current_user),
) -> UserOut:
    return _user_out(current_user, claims)


@router.post("/zenturie", response_model=UserOut)
def set_zenturie(
    payload: ZenturieAssign,
    claims: TokenClaims = Depends(get_token_claims),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> UserOut:
    user = assign_zenturie(db, current_user, payload.zenturie)
    return _user_out(user, claims)


@router.post("/subscription", response_model=SubscriptionOut)
def create_subscription(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> SubscriptionOut:
    token = rotate_subscription(db, current_user)
    settings = get_settings()
    url = f"{settings.frontend_url.rstrip('/')}{settings.api_prefix}/subscription/{token}.ics"
    return SubscriptionOut(subscription_uuid=token, url=url)


@router.get("/user_settings", response_model=UserSettingsOut)
def get_user_settings(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return get_or_create_settings(db, current_user)


@router.post("/user_settings", response_model=UserSettingsOut)
def update_user_settings(
    payload: UserSettingsUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    user_settings = get_or_create_settings(db, current_user)
    for key, value in payload.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(user_settings, key, value)
    db.commit()
    db.refresh(user_settings)
    return user_settings
