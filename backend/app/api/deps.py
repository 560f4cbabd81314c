from collections.abc import Callable, Generator

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.security import JWKSCache, TokenClaims, decode_token
from app.db.session import SessionLocal
from app.models.tenant import Tenant
from app.models.user import User, UserRole
from app.services.background import BackgroundTaskRunner
from app.services.scheduler import TimetableScheduler
from app.services.users import get_or_create_user

security = HTTPBearer(auto_error=False)

ADMIN_ROLES = (UserRole.admin,)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_tenant(request: Request, db: Session = Depends(get_db)) -> Tenant:
    slug = getattr(request.state, "tenant_slug", None) or get_settings().default_tenant_slug
    tenant = db.execute(
        select(Tenant).where(Tenant.slug == slug, Tenant.is_active.is_(True))
    ).scalar_one_or_none()
    if tenant is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Tenant '{slug}' not found or inactive")
    return tenant


def get_jwks_cache(request: Request) -> JWKSCache:
    cache = getattr(request.app.state, "jwks_cache", None)
    if cache is None:
        settings = get_settings()
        cache = JWKSCache(
            ttl_seconds=settings.jwks_cache_seconds,
            timeout_seconds=settings.identity_timeout_seconds,
        )
        request.app.state.jwks_cache = cache
    return cache


def get_token_claims(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    tenant: Tenant = Depends(get_current_tenant),
    jwks_cache: JWKSCache = Depends(get_jwks_cache),
) -> TokenClaims:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise credentials_exception
    try:
        return decode_token(
            credentials.credentials,
            issuer=tenant.issuer,
            jwks_url=tenant.jwks_url,
            jwks_cache=jwks_cache,
        )
    except JWTError as exc:
        raise credentials_exception from exc


def get_current_user(
    claims: TokenClaims = Depends(get_token_claims),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db),
) -> User:
    return get_or_create_user(db, tenant, subject=claims.subject, email=claims.email)


def require_roles(*roles: UserRole) -> Callable[..., User]:
    def role_checker(
        claims: TokenClaims = Depends(get_token_claims),
        current_user: User = Depends(get_current_user),
    ) -> User:
        if not claims.has_any_role(*roles):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return current_user

    return role_checker


def get_scheduler(request: Request) -> TimetableScheduler:
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Scheduler not initialized")
    return scheduler


def get_background_runner(request: Request) -> BackgroundTaskRunner:
    runner = getattr(request.app.state, "background_runner", None)
    if runner is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Background runner not initialized")
    return runner
