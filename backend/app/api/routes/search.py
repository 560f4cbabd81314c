from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db
from app.models.user import User
from app.schemas.search import SearchResponse
from app.services.rate_limit import SEARCH_LIMIT, enforce_rate_limit
from app.services.search import search

router = APIRouter()


@router.get("/search", response_model=SearchResponse)
def search_everything(
    parameter: str = Query(min_length=1, max_length=200),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> SearchResponse:
    enforce_rate_limit(SEARCH_LIMIT, user_id=current_user.id)
    return SearchResponse.model_validate(search(db, current_user, parameter))
