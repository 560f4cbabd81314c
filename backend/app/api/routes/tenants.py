import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.api.deps import ADMIN_ROLES, get_db, require_roles
from app.core.config import get_settings
from app.core.exceptions import ConflictError
from app.models.tenant import Tenant
from app.models.user import User
from app.schemas.tenant import TenantCreate, TenantOut, TenantUpdate
from app.services.keycloak_admin import IdentityProviderError, KeycloakAdminClient, realm_id_for_slug

logger = logging.getLogger(__name__)

router = APIRouter()


def get_keycloak_admin() -> KeycloakAdminClient:
    with KeycloakAdminClient(get_settings()) as client:
        yield client


@router.get("/", response_model=list[TenantOut])
def list_tenants(
    current_user: User = Depends(require_roles(*ADMIN_ROLES)),
    db: Session = Depends(get_db),
) -> list[Tenant]:
    return list(db.execute(select(Tenant).order_by(Tenant.slug)).scalars())


@router.post("/", response_model=TenantOut, status_code=status.HTTP_201_CREATED)
def create_tenant(
    payload: TenantCreate,
    current_user: User = Depends(require_roles(*ADMIN_ROLES)),
    db: Session = Depends(get_db),
    keycloak: KeycloakAdminClient = Depends(get_keycloak_admin),
) -> Tenant:
    existing = db.execute(select(Tenant).where(Tenant.slug == payload.slug)).scalar_one_or_none()
    if existing is not None:
        raise ConflictError("Tenant slug already exists", details={"slug": payload.slug})

    settings = get_settings()
    tenant = Tenant(
        name=payload.name,
        slug=payload.slug,
        keycloak_realm_id=realm_id_for_slug(payload.slug),
        keycloak_url=settings.keycloak_url,
        keycloak_client_id=settings.keycloak_client_id,
        is_active=True,
    )
    try:
        keycloak.create_tenant_realm(
            slug=tenant.slug,
            realm_id=tenant.keycloak_realm_id,
            display_name=tenant.name,
            client_id=tenant.keycloak_client_id,
        )
    except IdentityProviderError as exc:
        logger.error("Realm provisioning for tenant %s failed: %s", tenant.slug, exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to provision identity realm") from exc

    db.add(tenant)
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Storing tenant %s failed, removing its realm", tenant.slug)
        try:
            keycloak.delete_tenant_realm(tenant.keycloak_realm_id)
        except IdentityProviderError:
            logger.exception("Realm %s could not be removed after a failed tenant insert", tenant.keycloak_realm_id)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to create tenant") from exc
    db.refresh(tenant)
    logger.info("Created tenant %s with realm %s", tenant.slug, tenant.keycloak_realm_id)
    return tenant


def _get_tenant(db: Session, tenant_id: int) -> Tenant:
    tenant = db.get(Tenant, tenant_id)
    if tenant is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tenant not found")
    return tenant


@router.get("/{tenant_id}", response_model=TenantOut)
def get_tenant(
    tenant_id: int,
    current_user: User = Depends(require_roles(*ADMIN_ROLES)),
    db: Session = Depends(get_db),
) -> Tenant:
    return _get_tenant(db, tenant_id)


@router.put("/{tenant_id}", response_model=TenantOut)
def update_tenant(
    tenant_id: int,
    payload: TenantUpdate,
    current_user: User = Depends(require_roles(*ADMIN_ROLES)),
    db: Session = Depends(get_db),
) -> Tenant:
    tenant = _get_tenant(db, tenant_id)
    for key, value in payload.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(tenant, key, value)
    db.commit()
    db.refresh(tenant)
    return tenant
