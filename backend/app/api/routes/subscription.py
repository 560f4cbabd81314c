from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.models.tenant import Tenant
from app.services.ics_export import CONTENT_TYPE, DOWNLOAD_FILENAME, build_subscription_calendar
from app.services.users import find_user_by_subscription

router = APIRouter()


@router.get("/subscription/{token}.ics")
def subscription_feed(token: str, db: Session = Depends(get_db)) -> Response:
    user = find_user_by_subscription(db, token)
    tenant = db.get(Tenant, user.tenant_id)
    if tenant is None or not tenant.is_active:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invalid subscription")
    content = build_subscription_calendar(db, user, tenant)
    return Response(
        content=content,
        media_type=CONTENT_TYPE,
        headers={"Content-Disposition": f"attachment; filename={DOWNLOAD_FILENAME}"},
    )
