from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from app.core.config import settings
from app.db.session import get_session
from app.models.user import User, UserRead
from app.routers.auth import get_current_user
from app.routers.products import parse_product_status
from app.services.product import ProductService
from app.services.query import ProductQuery

router = APIRouter()


def get_product_service(session: Session = Depends(get_session)) -> ProductService:
    return ProductService(session)


@router.get("", response_model=UserRead)
def read_user_me(current_user: User = Depends(get_current_user)):
    """
    Get current user.
    """
    return current_user


@router.get("/products")
def read_my_products(
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    sort: str = "created_at",
    order: str = "desc",
    current_user: User = Depends(get_current_user),
    service: ProductService = Depends(get_product_service),
):
    """Products the current user submitted, in every moderation state."""
    query = ProductQuery(
        page=page,
        limit=limit,
        sort=sort,
        order=order,
        status=parse_product_status(status, default=None),
    )
    return service.list_own_products(query, current_user).render("products")
